"""Order fulfillment -> NFT mint pipeline.

For each line item of a fulfilled order, mint an LSP8 token to the
customer's Universal Profile and record the token id on the product.

Event-level short-circuits (in order):
1. no customer on the order -> skip event
2. no offline session for the shop -> abort event (error)
3. no ``lukso/profile_address`` on the customer -> skip event

Item-level short-circuits:
4. product missing or deleted -> skip item
5/6. ``lukso/nft_token_id`` already set -> skip item (already minted)
7. contract address or base URI unset -> skip item (not configured)
8. mint, then write ``lukso/nft_token_id``; failures are logged and the
   next item is processed

Partial mints: when the mint transaction confirms but the follow-up
``setData`` does not, the minter raises MetadataNotSetError. Although the
mint call raised, ``lukso/nft_token_id`` is still written, together with a
``lukso/nft_metadata_pending`` marker. This deliberately departs from the
rule that a failed mint skips the write: the token exists on chain, and an
unrecorded token would be minted again on the next fulfillment.

Known limitations:
- The already-minted check and the mint are not atomic. Two concurrent
  deliveries for orders containing the same product can both pass step 6
  and mint twice. There is no lock, local or remote.
- Nonces for the shared controller account are serialized inside one
  process only (see LSP8Minter). Several bridge processes signing with the
  same key can still collide on a nonce.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

import httpx
from web3 import Web3

from lukso_bridge.config import Settings
from lukso_bridge.errors import ErrorKind, MetadataNotSetError, RemoteCallError
from lukso_bridge.models import FulfillmentEvent, LineItem, MintResult, ProcessingReport
from lukso_bridge.sessions import OfflineSession, OfflineSessionStore
from lukso_bridge.shopify import metafields
from lukso_bridge.shopify.client import ShopifyAdminClient

logger = logging.getLogger(__name__)


class Minter(Protocol):
    async def mint(
        self, recipient: str, token_id: str, metadata_uri: str, contract_address: str
    ) -> str: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def compute_token_id(order_id: str, line_item_id: str, customer_id: str, timestamp: int) -> str:
    """keccak256 of ``{order}-{line item}-{customer}-{timestamp}`` as 0x-hex bytes32."""
    seed = f"{order_id}-{line_item_id}-{customer_id}-{timestamp}"
    return Web3.keccak(text=seed).to_0x_hex()


def build_metadata_uri(base_uri: str, token_id: str) -> str:
    return f"{base_uri.rstrip('/')}/{token_id}.json"


class OrderFulfillmentProcessor:
    """Runs the mint pipeline for one ``orders/fulfilled`` event at a time.

    Args:
        settings: Bridge settings (API version is read from here)
        sessions: Offline session lookup
        http: Shared async HTTP client for the Admin API
        minter: Anything with an async ``mint(recipient, token_id, uri, contract)``
        clock: Millisecond timestamp source for token ids
    """

    def __init__(
        self,
        settings: Settings,
        sessions: OfflineSessionStore,
        http: httpx.AsyncClient,
        minter: Minter,
        clock: Callable[[], int] = _now_ms,
    ):
        self._settings = settings
        self._sessions = sessions
        self._http = http
        self._minter = minter
        self._clock = clock

    def client_for(self, session: OfflineSession) -> ShopifyAdminClient:
        return ShopifyAdminClient(self._http, session, self._settings.shopify_api_version)

    async def process(self, event: FulfillmentEvent) -> ProcessingReport:
        report = ProcessingReport(order_id=event.order_id)

        if not event.customer_id:
            logger.info("Order %s has no customer, skipping", event.order_id)
            report.reason = "no_customer"
            return report

        session = await self._sessions.load(event.shop)
        if session is None:
            logger.error("No offline session for %s, cannot process order %s", event.shop, event.order_id)
            report.aborted = True
            report.reason = "no_session"
            return report

        client = self.client_for(session)

        try:
            profile_address = await metafields.get_customer_profile_address(client, event.customer_id)
        except RemoteCallError as e:
            logger.error(
                "Profile address lookup failed for %s on order %s: %s",
                event.customer_id,
                event.order_id,
                e,
            )
            report.aborted = True
            report.reason = f"customer_lookup_{e.kind.value}"
            return report

        if not profile_address:
            logger.info("Customer %s has no profile address, skipping order %s", event.customer_id, event.order_id)
            report.reason = "no_profile_address"
            return report

        for item in event.line_items:
            await self._process_line_item(client, event, item, profile_address, report)

        logger.info(
            "Order %s processed: minted=%d skipped=%d failed=%d",
            event.order_id,
            len(report.minted),
            report.skipped,
            report.failed,
        )
        return report

    async def _process_line_item(
        self,
        client: ShopifyAdminClient,
        event: FulfillmentEvent,
        item: LineItem,
        profile_address: str,
        report: ProcessingReport,
    ) -> None:
        product_gid = item.product_gid
        if not product_gid or not item.product_exists:
            logger.info("Line item %s has no live product, skipping", item.line_item_id)
            report.skipped += 1
            return

        try:
            config = await metafields.get_product_nft_config(client, product_gid)
        except RemoteCallError as e:
            _log_item_failure(e, event, item)
            report.failed += 1
            return
        except Exception:
            logger.exception("Unexpected failure reading %s for line item %s", product_gid, item.line_item_id)
            report.failed += 1
            return

        if config.already_minted:
            logger.info("Product %s already minted as %s, skipping", product_gid, config.token_id)
            report.skipped += 1
            return

        if not config.mintable:
            logger.info("Product %s has no NFT contract or base URI, skipping", product_gid)
            report.skipped += 1
            return

        token_id = compute_token_id(event.order_id, item.line_item_id, event.customer_id, self._clock())
        metadata_uri = build_metadata_uri(config.base_uri, token_id)

        try:
            tx_hash = await self._minter.mint(profile_address, token_id, metadata_uri, config.contract_address)
        except MetadataNotSetError as e:
            # The token exists; record it so the product is not minted again.
            logger.warning(
                "Token %s minted (tx=%s) but metadata not set: %s",
                token_id,
                e.mint_tx_hash,
                e,
            )
            if not await self._record_token(client, product_gid, token_id, e.mint_tx_hash, metadata_uri):
                report.failed += 1
                return
            report.minted.append(MintResult(tx_hash=e.mint_tx_hash, token_id=token_id))
            return
        except RemoteCallError as e:
            _log_item_failure(e, event, item)
            report.failed += 1
            return
        except Exception:
            logger.exception("Unexpected mint failure for line item %s on order %s", item.line_item_id, event.order_id)
            report.failed += 1
            return

        if not await self._record_token(client, product_gid, token_id, tx_hash):
            report.failed += 1
            return

        logger.info("Minted %s for product %s on order %s (tx=%s)", token_id, product_gid, event.order_id, tx_hash)
        report.minted.append(MintResult(tx_hash=tx_hash, token_id=token_id))

    async def _record_token(
        self,
        client: ShopifyAdminClient,
        product_gid: str,
        token_id: str,
        tx_hash: str,
        pending_metadata_uri: str | None = None,
    ) -> bool:
        """Write ``nft_token_id`` (and the pending marker if given). False if any write failed."""
        try:
            await metafields.set_product_token_id(client, product_gid, token_id)
            if pending_metadata_uri is not None:
                await metafields.set_product_metadata_pending(client, product_gid, pending_metadata_uri)
        except RemoteCallError as e:
            _log_orphaned_token(e, product_gid, token_id, tx_hash)
            return False
        except Exception as e:
            logger.exception("Unexpected failure recording token %s on %s", token_id, product_gid)
            _log_orphaned_token(e, product_gid, token_id, tx_hash)
            return False
        return True


def _log_item_failure(err: RemoteCallError, event: FulfillmentEvent, item: LineItem) -> None:
    if err.kind is ErrorKind.AUTH:
        logger.error("Access token for %s rejected on line item %s: %s", event.shop, item.line_item_id, err)
    elif err.kind is ErrorKind.CONTRACT_REVERT:
        logger.error("Mint reverted for line item %s on order %s: %s", item.line_item_id, event.order_id, err)
    elif err.kind is ErrorKind.NETWORK:
        logger.warning("Network failure on line item %s of order %s: %s", item.line_item_id, event.order_id, err)
    else:
        logger.error("Line item %s of order %s failed: %s", item.line_item_id, event.order_id, err)


def _log_orphaned_token(err: Exception, product_gid: str, token_id: str, tx_hash: str) -> None:
    logger.error(
        "Token %s is on chain (tx=%s) but could not be recorded on %s: %s",
        token_id,
        tx_hash,
        product_gid,
        err,
    )

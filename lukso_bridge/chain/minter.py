"""LSP8 minting with the controller key.

Minting is two transactions with no atomicity between them:
1. mint(recipient, tokenId, force=true, data=0x), awaited to its receipt
2. setData(LSP4Metadata, abi.encode(string uri)), awaited to its receipt

If (2) fails after (1) confirmed, MetadataNotSetError carries the mint tx
hash so the caller can still record the token.

Concurrent mints share the controller account, so the nonce read, signing
and submission run under a per-instance lock. Receipts are awaited outside
it.
"""

from __future__ import annotations

import asyncio
import logging

from eth_abi import encode
from eth_account import Account
from hexbytes import HexBytes
from web3 import AsyncWeb3

from lukso_bridge.chain.abi import LSP4_METADATA_KEY, LSP8_ABI
from lukso_bridge.chain.rpc import build_web3, classify_chain_error
from lukso_bridge.config import Settings
from lukso_bridge.errors import ErrorKind, MetadataNotSetError, RemoteCallError

logger = logging.getLogger(__name__)


def encode_metadata_uri(metadata_uri: str) -> bytes:
    """ABI-encode the metadata URI as a single ``string`` value."""
    return encode(["string"], [metadata_uri])


class LSP8Minter:
    """Submits mint + setData transactions to an LSP8 collection."""

    def __init__(self, settings: Settings, w3: AsyncWeb3 | None = None):
        if not settings.controller_private_key:
            raise ValueError("controller_private_key is not configured")
        self._w3 = w3 or build_web3(settings)
        self._account = Account.from_key(settings.controller_private_key)
        self._chain_id = settings.chain_id
        self._nonce_lock = asyncio.Lock()

    @property
    def controller_address(self) -> str:
        return self._account.address

    async def mint(
        self,
        recipient: str,
        token_id: str,
        metadata_uri: str,
        contract_address: str,
    ) -> str:
        """Mint ``token_id`` to ``recipient`` and attach its metadata URI.

        Returns:
            Hex transaction hash of the mint transaction

        Raises:
            RemoteCallError: mint failed (nothing changed on chain)
            MetadataNotSetError: mint confirmed, setData failed
        """
        contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=LSP8_ABI,
        )

        try:
            mint_hash = await self._send(
                contract.functions.mint(
                    AsyncWeb3.to_checksum_address(recipient),
                    HexBytes(token_id),
                    True,
                    b"",
                )
            )
        except Exception as e:
            raise classify_chain_error(e) from e
        logger.info("Minted token %s to %s (tx=%s)", token_id, recipient, mint_hash)

        try:
            data_hash = await self._send(
                contract.functions.setData(
                    HexBytes(LSP4_METADATA_KEY),
                    encode_metadata_uri(metadata_uri),
                )
            )
        except Exception as e:
            err = classify_chain_error(e)
            raise MetadataNotSetError(err.kind, err.message, mint_tx_hash=mint_hash) from e
        logger.info("Set LSP4 metadata for token %s (tx=%s)", token_id, data_hash)

        return mint_hash

    async def _send(self, call) -> str:
        """Sign, submit and await one contract transaction."""
        async with self._nonce_lock:
            nonce = await self._w3.eth.get_transaction_count(self._account.address, "pending")
            tx = await call.build_transaction(
                {
                    "from": self._account.address,
                    "nonce": nonce,
                    "chainId": self._chain_id,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise RemoteCallError(
                ErrorKind.CONTRACT_REVERT,
                f"Transaction {tx_hash.to_0x_hex()} reverted",
            )
        return tx_hash.to_0x_hex()

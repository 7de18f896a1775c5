"""Request-scoped data carried through one fulfillment webhook."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

PRODUCT_GID_PREFIX = "gid://shopify/Product/"
ORDER_GID_PREFIX = "gid://shopify/Order/"
CUSTOMER_GID_PREFIX = "gid://shopify/Customer/"


class EventParseError(ValueError):
    """The webhook body is not a usable order payload."""


@dataclass(frozen=True)
class LineItem:
    """One line of a fulfilled order."""

    line_item_id: str
    product_id: str | None
    product_exists: bool

    @property
    def product_gid(self) -> str | None:
        if not self.product_id:
            return None
        return f"{PRODUCT_GID_PREFIX}{self.product_id}"


@dataclass(frozen=True)
class FulfillmentEvent:
    """Parsed ``orders/fulfilled`` delivery."""

    shop: str
    order_id: str
    customer_id: str | None
    line_items: list[LineItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, shop: str, raw: str | bytes) -> FulfillmentEvent:
        """Parse the JSON order body Shopify sends for ``orders/fulfilled``.

        Raises:
            EventParseError: body is not JSON, not an object, or has no order id
        """
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EventParseError(f"Invalid JSON body: {e}") from e
        if not isinstance(payload, dict):
            raise EventParseError("Order payload must be a JSON object")
        return cls.from_dict(shop, payload)

    @classmethod
    def from_dict(cls, shop: str, payload: dict[str, Any]) -> FulfillmentEvent:
        order_id = payload.get("admin_graphql_api_id")
        if not order_id and payload.get("id") is not None:
            order_id = f"{ORDER_GID_PREFIX}{payload['id']}"
        if not order_id:
            raise EventParseError("Order payload has no id")

        customer_id = None
        customer = payload.get("customer")
        if isinstance(customer, dict):
            customer_id = customer.get("admin_graphql_api_id")
            if not customer_id and customer.get("id") is not None:
                customer_id = f"{CUSTOMER_GID_PREFIX}{customer['id']}"

        raw_items = payload.get("line_items") or []
        if not isinstance(raw_items, list):
            raise EventParseError("line_items must be a list")

        items = []
        for raw_item in raw_items:
            if not isinstance(raw_item, dict):
                raise EventParseError("line item must be an object")
            product_id = raw_item.get("product_id")
            items.append(
                LineItem(
                    line_item_id=str(raw_item.get("id", "")),
                    product_id=str(product_id) if product_id is not None else None,
                    product_exists=bool(raw_item.get("product_exists", False)),
                )
            )

        return cls(
            shop=shop,
            order_id=str(order_id),
            customer_id=str(customer_id) if customer_id else None,
            line_items=items,
        )


@dataclass(frozen=True)
class ProductNftConfig:
    """NFT metafields on a product. Any of them may be unset."""

    contract_address: str | None = None
    base_uri: str | None = None
    token_id: str | None = None

    @property
    def already_minted(self) -> bool:
        return bool(self.token_id)

    @property
    def mintable(self) -> bool:
        return bool(self.contract_address) and bool(self.base_uri)


@dataclass(frozen=True)
class MintResult:
    """Outcome of a confirmed mint."""

    tx_hash: str
    token_id: str


@dataclass
class ProcessingReport:
    """Per-event tally of line-item outcomes."""

    order_id: str
    minted: list[MintResult] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0
    aborted: bool = False
    reason: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "minted": len(self.minted),
            "skipped": self.skipped,
            "failed": self.failed,
            "aborted": self.aborted,
            "reason": self.reason,
        }

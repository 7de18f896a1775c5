"""Webhook topic routing.

Maps the X-Shopify-Topic of a verified delivery to its handler and reports
an outcome the HTTP layer turns into a status code:
- ``processed`` / ``acknowledged`` -> 200
- ``invalid`` -> 400 (body could not be parsed)
- ``failed`` -> 500 (top-level failure, Shopify will redeliver)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from lukso_bridge.fulfillment import OrderFulfillmentProcessor
from lukso_bridge.models import EventParseError, FulfillmentEvent
from lukso_bridge.sessions import OfflineSessionStore

logger = logging.getLogger(__name__)

ORDERS_FULFILLED = "orders/fulfilled"
APP_UNINSTALLED = "app/uninstalled"

# Mandatory privacy topics. The bridge stores no customer data of its own:
# addresses live in Shopify metafields, tokens live on chain.
COMPLIANCE_TOPICS = frozenset(
    {
        "customers/data_request",
        "customers/redact",
        "shop/redact",
    }
)


@dataclass
class WebhookOutcome:
    status: str
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return {"invalid": 400, "failed": 500}.get(self.status, 200)


class WebhookDispatcher:
    """Routes verified deliveries to their handlers."""

    def __init__(self, processor: OrderFulfillmentProcessor, sessions: OfflineSessionStore):
        self._processor = processor
        self._sessions = sessions

    async def dispatch(self, topic: str, shop: str, body: bytes) -> WebhookOutcome:
        if topic == ORDERS_FULFILLED:
            return await self._orders_fulfilled(shop, body)
        if topic in COMPLIANCE_TOPICS:
            logger.info("Compliance webhook %s for %s acknowledged, no stored data", topic, shop)
            return WebhookOutcome("acknowledged")
        if topic == APP_UNINSTALLED:
            try:
                await self._sessions.delete(shop)
            except Exception:
                logger.exception("Could not delete offline session for uninstalled shop %s", shop)
                return WebhookOutcome("failed")
            return WebhookOutcome("acknowledged")

        logger.info("Unrecognized webhook topic %s from %s, skipping", topic, shop)
        return WebhookOutcome("acknowledged")

    async def _orders_fulfilled(self, shop: str, body: bytes) -> WebhookOutcome:
        try:
            event = FulfillmentEvent.from_payload(shop, body)
        except EventParseError as e:
            logger.error("Rejected %s payload from %s: %s", ORDERS_FULFILLED, shop, e)
            return WebhookOutcome("invalid")

        try:
            report = await self._processor.process(event)
        except Exception:
            logger.exception("Order %s from %s aborted", event.order_id, shop)
            return WebhookOutcome("failed", {"order_id": event.order_id})

        if report.aborted:
            return WebhookOutcome("failed", report.as_dict())
        return WebhookOutcome("processed", report.as_dict())

"""Offline Shopify sessions, stored in Redis.

Offline sessions are long-lived, non-user-bound access tokens written by the
app's install flow. Webhook processing only reads them.

Key pattern: shopify:session:offline_{shop}
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass

import redis.asyncio as redis

from lukso_bridge.config import Settings

logger = logging.getLogger(__name__)

_KEY_PREFIX = "shopify:session"


@dataclass(frozen=True)
class OfflineSession:
    """Access token for background work against one shop."""

    shop: str
    access_token: str
    scope: str = ""

    @property
    def id(self) -> str:
        return f"offline_{self.shop}"


def _key(shop: str) -> str:
    return f"{_KEY_PREFIX}:offline_{shop}"


class OfflineSessionStore:
    """Redis-backed offline session lookup.

    Falls back to the static custom-app credential from settings when the
    requested shop matches ``shopify_shop_domain``.
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        self._settings = settings
        self._redis = client or redis.from_url(settings.redis_url, decode_responses=True)

    async def load(self, shop: str) -> OfflineSession | None:
        """Return the offline session for ``shop`` or None.

        Redis errors propagate; a store outage is not the same as "no session".
        """
        raw = await self._redis.get(_key(shop))
        if raw:
            data = json.loads(raw)
            return OfflineSession(
                shop=data["shop"],
                access_token=data["access_token"],
                scope=data.get("scope", ""),
            )

        if (
            self._settings.shopify_access_token
            and self._settings.shopify_shop_domain == shop
        ):
            logger.debug("Using static access token for %s", shop)
            return OfflineSession(shop=shop, access_token=self._settings.shopify_access_token)

        return None

    async def save(self, session: OfflineSession) -> None:
        await self._redis.set(_key(session.shop), json.dumps(asdict(session)))
        logger.info("Stored offline session for %s", session.shop)

    async def delete(self, shop: str) -> bool:
        """Remove the stored session. Returns True if one existed."""
        removed = await self._redis.delete(_key(shop))
        if removed:
            logger.info("Deleted offline session for %s", shop)
        return bool(removed)

    async def close(self) -> None:
        await self._redis.aclose()

"""FastAPI application factory.

Remote resources (Redis, the pooled HTTP client, AsyncWeb3, the minter) are
created in the lifespan unless injected, and exposed on ``app.state``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from lukso_bridge.chain.minter import LSP8Minter
from lukso_bridge.chain.rpc import build_web3
from lukso_bridge.config import Settings, get_settings
from lukso_bridge.fulfillment import Minter, OrderFulfillmentProcessor
from lukso_bridge.logging_config import setup_logging
from lukso_bridge.routers import balance, health, proxy
from lukso_bridge.sessions import OfflineSessionStore
from lukso_bridge.webhooks import handlers
from lukso_bridge.webhooks.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    sessions: OfflineSessionStore | None = None,
    http: httpx.AsyncClient | None = None,
    web3=None,
    minter: Minter | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if minter is None and not settings.controller_private_key:
            logger.error("LUKSO_BRIDGE_CONTROLLER_PRIVATE_KEY is not set; the bridge cannot sign mints and will not start")
            raise RuntimeError("controller_private_key is required")

        owned_http = http is None
        owned_sessions = sessions is None

        app.state.settings = settings
        app.state.http = http if not owned_http else httpx.AsyncClient(timeout=settings.http_timeout)
        app.state.sessions = sessions if not owned_sessions else OfflineSessionStore(settings)
        app.state.web3 = web3 if web3 is not None else build_web3(settings)
        app.state.minter = minter if minter is not None else LSP8Minter(settings, app.state.web3)

        processor = OrderFulfillmentProcessor(
            settings,
            app.state.sessions,
            app.state.http,
            app.state.minter,
        )
        app.state.dispatcher = WebhookDispatcher(processor, app.state.sessions)
        logger.info("Bridge started (chain_id=%d, api_version=%s)", settings.chain_id, settings.shopify_api_version)

        try:
            yield
        finally:
            if owned_http:
                await app.state.http.aclose()
            if owned_sessions:
                await app.state.sessions.close()

    app = FastAPI(title="LUKSO Shopify Bridge", lifespan=lifespan)
    app.include_router(health.router)
    app.include_router(handlers.router)
    app.include_router(balance.router)
    app.include_router(proxy.router)
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    main()

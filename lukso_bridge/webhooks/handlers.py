"""Webhook HTTP handler: single FastAPI route for all Shopify topics.

The handler:
1. Reads raw body (needed for HMAC verification)
2. Verifies the Shopify signature
3. Dispatches on X-Shopify-Topic and awaits processing
4. Returns 200 once the payload is accepted

Security contract:
- Never return error details to webhook caller (info disclosure)
- Return 401 only for signature failures
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from lukso_bridge.webhooks.verification import WEBHOOK_SIGNATURE_HEADER, verify_shopify

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _log_webhook(topic: str, shop: str, webhook_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    logger.info(
        "WEBHOOK_AUDIT topic=%s shop=%s id=%s status=%s",
        topic,
        shop,
        webhook_id,
        status,
    )


@router.post("/webhooks")
async def shopify_webhook(request: Request) -> JSONResponse:
    """Receive Shopify webhooks (signature-verified)."""
    start = time.time()

    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    topic = headers.get("x-shopify-topic", "")
    shop = headers.get("x-shopify-shop-domain", "")
    webhook_id = headers.get("x-shopify-webhook-id", "")

    settings = request.app.state.settings
    if not verify_shopify(body, headers.get(WEBHOOK_SIGNATURE_HEADER), settings.shopify_api_secret):
        _log_webhook(topic or "unknown", shop or "unknown", webhook_id, "signature_failed")
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    outcome = await request.app.state.dispatcher.dispatch(topic, shop, body)
    _log_webhook(topic, shop, webhook_id, outcome.status)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s", elapsed_ms, topic)

    if outcome.status_code != 200:
        return JSONResponse({"status": "error"}, status_code=outcome.status_code)
    return JSONResponse({"status": "received"}, status_code=200)

"""Storefront app-proxy routes.

Shopify forwards ``/apps/<subpath>/...`` storefront requests here, signed
with the app secret and carrying ``shop`` and ``logged_in_customer_id``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from web3 import Web3

from lukso_bridge.errors import RemoteCallError
from lukso_bridge.models import CUSTOMER_GID_PREFIX
from lukso_bridge.shopify import metafields
from lukso_bridge.shopify.client import ShopifyAdminClient
from lukso_bridge.webhooks.verification import verify_app_proxy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy", tags=["proxy"])


class ProfileAddressInput(BaseModel):
    address: str = Field(description="Universal Profile address (0x...)")


@router.post("/profile-address")
async def register_profile_address(request: Request):
    """Store the logged-in customer's Universal Profile address as a metafield.

    The body is only parsed once the proxy signature checks out, so unsigned
    callers get a bare 401 and never see validation details.
    """
    settings = request.app.state.settings
    if not verify_app_proxy(request.query_params.multi_items(), settings.shopify_api_secret):
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    try:
        body = ProfileAddressInput.model_validate_json(await request.body())
    except ValidationError:
        raise HTTPException(status_code=422, detail="Invalid request body")

    shop = request.query_params.get("shop", "")
    customer = request.query_params.get("logged_in_customer_id", "")
    if not customer:
        return JSONResponse({"error": "Customer not logged in"}, status_code=401)
    if not Web3.is_address(body.address):
        raise HTTPException(status_code=422, detail="Invalid address")

    session = await request.app.state.sessions.load(shop)
    if session is None:
        logger.error("Profile address registration for %s without an offline session", shop)
        return JSONResponse({"error": "Shop not installed"}, status_code=403)

    client = ShopifyAdminClient(request.app.state.http, session, settings.shopify_api_version)
    customer_gid = f"{CUSTOMER_GID_PREFIX}{customer}"
    address = Web3.to_checksum_address(body.address)
    try:
        await metafields.set_customer_profile_address(client, customer_gid, address)
    except RemoteCallError as e:
        logger.error("Could not store profile address for %s on %s: %s", customer_gid, shop, e)
        return JSONResponse({"error": "Could not save address"}, status_code=502)

    logger.info("Registered profile address %s for %s on %s", address, customer_gid, shop)
    return {"customer_id": customer_gid, "profile_address": address}

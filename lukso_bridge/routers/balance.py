"""Token balance API: one ``balanceOf`` call against the LUKSO RPC."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from web3 import Web3

from lukso_bridge.chain.balances import get_token_balance
from lukso_bridge.errors import RemoteCallError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/balance", tags=["balance"])


@router.get("/{address}")
async def token_balance(request: Request, address: str, contract: str | None = Query(default=None)):
    """Balance of ``address`` on ``contract`` (defaults to the configured token)."""
    contract = contract or request.app.state.settings.token_contract_address
    if not contract:
        raise HTTPException(status_code=400, detail="No token contract configured")
    if not Web3.is_address(address):
        raise HTTPException(status_code=422, detail="Invalid address")
    if not Web3.is_address(contract):
        raise HTTPException(status_code=422, detail="Invalid contract address")

    try:
        balance = await get_token_balance(request.app.state.web3, contract, address)
    except RemoteCallError as e:
        logger.warning("Balance lookup failed for %s on %s: %s", address, contract, e)
        return JSONResponse({"error": "Cannot reach LUKSO RPC"}, status_code=502)

    return {
        "address": Web3.to_checksum_address(address),
        "contract": Web3.to_checksum_address(contract),
        "balance": str(balance),
    }

"""Health route."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Liveness only; remote dependencies are not probed."""
    return {"status": "ok", "service": "lukso-shopify-bridge"}

"""Shopify request signature verification, constant-time HMAC.

Security contract:
- All comparisons use hmac.compare_digest()
- Missing secret -> verification always fails (fail-closed)
- Webhooks: base64 HMAC-SHA256 of the raw body in X-Shopify-Hmac-SHA256
- App proxy: hex HMAC-SHA256 of the sorted query parameters in ``signature``
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

WEBHOOK_SIGNATURE_HEADER = "x-shopify-hmac-sha256"


def verify_shopify(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Verify a Shopify webhook HMAC-SHA256 signature.

    Args:
        body: Raw request body bytes
        signature_header: Value of X-Shopify-Hmac-SHA256 header
        secret: App API secret

    Returns:
        True if signature is valid
    """
    if not secret:
        logger.warning("Shopify API secret not set, rejecting webhook")
        return False
    if not signature_header:
        return False

    computed = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    computed_b64 = base64.b64encode(computed).decode("utf-8")

    return hmac.compare_digest(computed_b64, signature_header)


def verify_app_proxy(params: Iterable[tuple[str, str]], secret: str) -> bool:
    """Verify the ``signature`` parameter Shopify adds to app proxy requests.

    Shopify signs every other query parameter: pairs are rendered as
    ``key=value`` (repeated keys joined with commas), sorted, and
    concatenated with no separator.

    Args:
        params: Query parameters as (key, value) pairs, repeats allowed
        secret: App API secret

    Returns:
        True if signature is valid
    """
    if not secret:
        logger.warning("Shopify API secret not set, rejecting app proxy request")
        return False

    signature = None
    grouped: dict[str, list[str]] = {}
    for key, value in params:
        if key == "signature":
            signature = value
            continue
        grouped.setdefault(key, []).append(value)

    if not signature:
        return False

    message = "".join(sorted(f"{key}={','.join(values)}" for key, values in grouped.items()))
    expected = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()

    return hmac.compare_digest(expected, signature)

"""Tagged errors for remote calls (Shopify Admin API, LUKSO JSON-RPC).

Remote-call wrappers raise RemoteCallError with a closed ErrorKind tag.
Callers branch on ``err.kind`` instead of on SDK exception classes.
"""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """Classification of remote-call failures."""

    AUTH = "auth"                        # 401/403 from Shopify
    NETWORK = "network"                  # transport failure, 5xx, RPC unreachable
    API = "api"                          # GraphQL errors / userErrors
    CONTRACT_REVERT = "contract_revert"  # receipt status 0 or eth_call revert
    UNKNOWN = "unknown"


class RemoteCallError(Exception):
    """A remote call failed. ``kind`` says how."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class MetadataNotSetError(RemoteCallError):
    """The mint transaction confirmed but the follow-up setData did not.

    The token exists on chain; only its LSP4 metadata is missing.
    """

    def __init__(self, kind: ErrorKind, message: str, mint_tx_hash: str) -> None:
        super().__init__(kind, message)
        self.mint_tx_hash = mint_tx_hash


def classify_http_error(exc: Exception) -> RemoteCallError:
    """Map an httpx exception onto a tagged RemoteCallError."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return RemoteCallError(ErrorKind.AUTH, f"HTTP {status} from {exc.request.url.host}")
        return RemoteCallError(ErrorKind.NETWORK, f"HTTP {status} from {exc.request.url.host}")
    if isinstance(exc, httpx.TransportError):
        return RemoteCallError(ErrorKind.NETWORK, f"{type(exc).__name__}: {exc}")
    return RemoteCallError(ErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}")

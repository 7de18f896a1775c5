"""AsyncWeb3 construction and chain error classification."""

from __future__ import annotations

import asyncio

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from lukso_bridge.config import Settings
from lukso_bridge.errors import ErrorKind, RemoteCallError


def build_web3(settings: Settings) -> AsyncWeb3:
    return AsyncWeb3(
        AsyncHTTPProvider(
            settings.rpc_url,
            request_kwargs={"timeout": settings.http_timeout},
        )
    )


def classify_chain_error(exc: Exception) -> RemoteCallError:
    """Map a web3 / transport exception onto a tagged RemoteCallError."""
    if isinstance(exc, RemoteCallError):
        return exc
    if isinstance(exc, ContractLogicError):
        return RemoteCallError(ErrorKind.CONTRACT_REVERT, f"Execution reverted: {exc}")
    if isinstance(exc, (TimeExhausted, asyncio.TimeoutError, ConnectionError, OSError)):
        return RemoteCallError(ErrorKind.NETWORK, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, Web3Exception):
        return RemoteCallError(ErrorKind.NETWORK, f"RPC error: {exc}")
    return RemoteCallError(ErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}")

"""Shopify GraphQL Admin API client.

One instance per shop session. REST is deprecated, so everything goes
through GraphQL. Failures surface as RemoteCallError:
- HTTP 401/403 -> AUTH
- other HTTP errors, transport errors -> NETWORK
- top-level ``errors``, mutation ``userErrors``, non-JSON or malformed bodies -> API
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from lukso_bridge.errors import ErrorKind, RemoteCallError, classify_http_error
from lukso_bridge.sessions import OfflineSession

logger = logging.getLogger(__name__)


class ShopifyAdminClient:
    """Thin async wrapper around ``POST /admin/api/{version}/graphql.json``."""

    def __init__(self, http: httpx.AsyncClient, session: OfflineSession, api_version: str):
        self._http = http
        self._session = session
        self._endpoint = f"https://{session.shop}/admin/api/{api_version}/graphql.json"

    @property
    def shop(self) -> str:
        return self._session.shop

    async def query(self, document: str, variables: dict | None = None) -> dict[str, Any]:
        """Execute a query or mutation and return its ``data`` object."""
        try:
            response = await self._http.post(
                self._endpoint,
                json={"query": document, "variables": variables or {}},
                headers={
                    "X-Shopify-Access-Token": self._session.access_token,
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteCallError(ErrorKind.API, f"Non-JSON response from {self.shop}: {e}") from e
        if not isinstance(body, dict):
            raise RemoteCallError(ErrorKind.API, f"Unexpected response body from {self.shop}")

        errors = body.get("errors")
        if errors:
            raise RemoteCallError(ErrorKind.API, f"GraphQL error on {self.shop}: {_first_error_message(errors)}")

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise RemoteCallError(ErrorKind.API, f"Unexpected data object from {self.shop}")
        return data

    async def mutate(self, document: str, variables: dict, root_field: str) -> dict[str, Any]:
        """Execute a mutation and fail on ``userErrors`` under ``root_field``."""
        data = await self.query(document, variables)
        payload = data.get(root_field) or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            first = user_errors[0]
            raise RemoteCallError(
                ErrorKind.API,
                f"{root_field} rejected on {self.shop}: {first.get('message')} (field={first.get('field')})",
            )
        return payload


def _first_error_message(errors: Any) -> str:
    if isinstance(errors, list):
        first = errors[0]
        if isinstance(first, dict):
            return str(first.get("message", "unknown error"))
        return str(first)
    return str(errors)

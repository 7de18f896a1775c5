"""Shared fixtures: settings, a fake Shopify Admin API, sessions, minter."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from lukso_bridge.config import Settings
from lukso_bridge.sessions import OfflineSession

SHOP = "bridge-test.myshopify.com"
ACCESS_TOKEN = "shpat_test_token"
API_SECRET = "shopify-test-secret"
# Well-known test key (hardhat account #0); never funded on LUKSO
CONTROLLER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

PROFILE_ADDRESS = "0x1111111111111111111111111111111111111111"
CONTRACT_ADDRESS = "0x2222222222222222222222222222222222222222"


class FakeShopify:
    """In-memory Shopify Admin GraphQL endpoint for httpx.MockTransport.

    Customers and products hold ``lukso`` metafields as plain dicts.
    Every request is recorded as (operation, variables).
    """

    def __init__(self) -> None:
        self.customers: dict[str, dict[str, str]] = {}
        self.products: dict[str, dict[str, str]] = {}
        self.requests: list[tuple[str, dict]] = []
        self.fail_status: int | None = None
        self.user_errors: list[dict] = []

    @property
    def operations(self) -> list[str]:
        return [op for op, _ in self.requests]

    @property
    def writes(self) -> list[dict]:
        return [v for op, v in self.requests if op == "metafieldsSet"]

    def _field(self, values: dict[str, str] | None, key: str) -> dict | None:
        if values is None or key not in values:
            return None
        return {"value": values[key]}

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Shopify-Access-Token"] == ACCESS_TOKEN
        body = json.loads(request.content)
        query, variables = body["query"], body["variables"]

        if "customerProfileAddress" in query:
            op = "customerProfileAddress"
        elif "productNftConfig" in query:
            op = "productNftConfig"
        elif "metafieldsSet" in query:
            op = "metafieldsSet"
        else:
            op = "unknown"
        self.requests.append((op, variables))

        if self.fail_status:
            return httpx.Response(self.fail_status, json={"errors": "failure"})

        if op == "customerProfileAddress":
            values = self.customers.get(variables["id"])
            customer = None if values is None else {"profileAddress": self._field(values, "profile_address")}
            return httpx.Response(200, json={"data": {"customer": customer}})

        if op == "productNftConfig":
            values = self.products.get(variables["id"])
            product = None
            if values is not None:
                product = {
                    "contractAddress": self._field(values, "nft_contract_address"),
                    "baseUri": self._field(values, "nft_base_uri"),
                    "tokenId": self._field(values, "nft_token_id"),
                }
            return httpx.Response(200, json={"data": {"product": product}})

        if op == "metafieldsSet":
            if self.user_errors:
                return httpx.Response(
                    200,
                    json={"data": {"metafieldsSet": {"metafields": [], "userErrors": self.user_errors}}},
                )
            for mf in variables["metafields"]:
                store = self.customers if "/Customer/" in mf["ownerId"] else self.products
                store.setdefault(mf["ownerId"], {})[mf["key"]] = mf["value"]
            return httpx.Response(
                200,
                json={"data": {"metafieldsSet": {"metafields": [{"id": "gid://shopify/Metafield/1"}], "userErrors": []}}},
            )

        return httpx.Response(200, json={"errors": [{"message": "unknown operation"}]})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        shopify_api_secret=API_SECRET,
        controller_private_key=CONTROLLER_KEY,
        token_contract_address=CONTRACT_ADDRESS,
        redis_url="redis://localhost:6379/15",
        _env_file=None,
    )


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def http(fake_shopify: FakeShopify) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_shopify.handler))


@pytest.fixture
def session() -> OfflineSession:
    return OfflineSession(shop=SHOP, access_token=ACCESS_TOKEN, scope="write_products,read_customers")


@pytest.fixture
def sessions(session: OfflineSession) -> MagicMock:
    store = MagicMock()
    store.load = AsyncMock(return_value=session)
    store.delete = AsyncMock(return_value=True)
    return store


@pytest.fixture
def minter() -> MagicMock:
    m = MagicMock()
    m.mint = AsyncMock(return_value="0x" + "ab" * 32)
    return m

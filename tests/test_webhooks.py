"""Tests for the webhook inbound system.

Tests:
- Signature verification for webhooks and app proxy requests (constant-time HMAC)
- Topic dispatch (fulfillment, compliance, uninstall, unknown)
- Handler integration (full request flow through FastAPI)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from lukso_bridge.app import create_app
from lukso_bridge.errors import ErrorKind, RemoteCallError
from lukso_bridge.models import ProcessingReport
from lukso_bridge.webhooks.dispatcher import WebhookDispatcher
from lukso_bridge.webhooks.verification import verify_app_proxy, verify_shopify

from tests.conftest import API_SECRET, CONTRACT_ADDRESS, PROFILE_ADDRESS, SHOP


def _sign(body: bytes, secret: str = API_SECRET) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def _order_body(**overrides) -> bytes:
    payload = {
        "id": 1,
        "admin_graphql_api_id": "gid://shopify/Order/1",
        "customer": {"id": 5, "admin_graphql_api_id": "gid://shopify/Customer/5"},
        "line_items": [{"id": 10, "product_id": 7, "product_exists": True}],
    }
    payload.update(overrides)
    return json.dumps(payload).encode()


# ── Signature Verification ────────────────────────────────────────────────


class TestShopifyVerification:
    """Shopify HMAC-SHA256 verification (base64-encoded)."""

    def test_valid_signature(self):
        body = b'{"id": 123}'
        assert verify_shopify(body, _sign(body), API_SECRET) is True

    def test_invalid_signature(self):
        assert verify_shopify(b'{"id": 123}', "invalid-signature", API_SECRET) is False

    def test_tampered_body(self):
        sig = _sign(b'{"id": 123}')
        assert verify_shopify(b'{"id": 456}', sig, API_SECRET) is False

    def test_missing_signature(self):
        assert verify_shopify(b"body", None, API_SECRET) is False

    def test_missing_secret_rejects(self):
        """No secret configured -> always reject (fail-closed)."""
        body = b'{"id": 123}'
        assert verify_shopify(body, _sign(body, ""), "") is False


class TestAppProxyVerification:
    """App proxy signature: hex HMAC over sorted key=value pairs."""

    def _signed(self, params: list[tuple[str, str]]) -> list[tuple[str, str]]:
        grouped: dict[str, list[str]] = {}
        for k, v in params:
            grouped.setdefault(k, []).append(v)
        message = "".join(sorted(f"{k}={','.join(v)}" for k, v in grouped.items()))
        sig = hmac.new(API_SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()
        return params + [("signature", sig)]

    def test_valid_signature(self):
        params = self._signed([("shop", SHOP), ("logged_in_customer_id", "5"), ("timestamp", "1700000000")])
        assert verify_app_proxy(params, API_SECRET) is True

    def test_repeated_keys_joined_with_commas(self):
        params = self._signed([("shop", SHOP), ("ids", "1"), ("ids", "2")])
        assert verify_app_proxy(params, API_SECRET) is True

    def test_tampered_param(self):
        params = self._signed([("shop", SHOP), ("logged_in_customer_id", "5")])
        params[1] = ("logged_in_customer_id", "6")
        assert verify_app_proxy(params, API_SECRET) is False

    def test_missing_signature(self):
        assert verify_app_proxy([("shop", SHOP)], API_SECRET) is False

    def test_missing_secret_rejects(self):
        params = self._signed([("shop", SHOP)])
        assert verify_app_proxy(params, "") is False


# ── Dispatch ──────────────────────────────────────────────────────────────


class TestWebhookDispatcher:
    @pytest.fixture
    def processor(self) -> MagicMock:
        p = MagicMock()
        p.process = AsyncMock(return_value=ProcessingReport(order_id="gid://shopify/Order/1"))
        return p

    @pytest.mark.asyncio
    async def test_fulfillment_goes_to_processor(self, processor, sessions):
        outcome = await WebhookDispatcher(processor, sessions).dispatch("orders/fulfilled", SHOP, _order_body())

        assert outcome.status == "processed"
        assert outcome.status_code == 200
        event = processor.process.call_args[0][0]
        assert event.shop == SHOP
        assert event.order_id == "gid://shopify/Order/1"

    @pytest.mark.asyncio
    async def test_invalid_payload_is_400(self, processor, sessions):
        outcome = await WebhookDispatcher(processor, sessions).dispatch("orders/fulfilled", SHOP, b"not json")

        assert outcome.status_code == 400
        processor.process.assert_not_called()

    @pytest.mark.asyncio
    async def test_aborted_event_is_500(self, processor, sessions):
        processor.process.return_value = ProcessingReport(order_id="x", aborted=True, reason="no_session")

        outcome = await WebhookDispatcher(processor, sessions).dispatch("orders/fulfilled", SHOP, _order_body())

        assert outcome.status_code == 500

    @pytest.mark.asyncio
    async def test_processor_crash_is_500(self, processor, sessions):
        processor.process.side_effect = ConnectionError("redis down")

        outcome = await WebhookDispatcher(processor, sessions).dispatch("orders/fulfilled", SHOP, _order_body())

        assert outcome.status_code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("topic", ["customers/data_request", "customers/redact", "shop/redact"])
    async def test_compliance_topics_acknowledged(self, processor, sessions, topic):
        outcome = await WebhookDispatcher(processor, sessions).dispatch(topic, SHOP, b"{}")

        assert outcome.status_code == 200
        processor.process.assert_not_called()

    @pytest.mark.asyncio
    async def test_uninstall_deletes_session(self, processor, sessions):
        outcome = await WebhookDispatcher(processor, sessions).dispatch("app/uninstalled", SHOP, b"{}")

        assert outcome.status_code == 200
        sessions.delete.assert_awaited_once_with(SHOP)

    @pytest.mark.asyncio
    async def test_uninstall_session_store_failure_is_500(self, processor, sessions):
        sessions.delete.side_effect = ConnectionError("redis down")

        outcome = await WebhookDispatcher(processor, sessions).dispatch("app/uninstalled", SHOP, b"{}")

        assert outcome.status == "failed"
        assert outcome.status_code == 500

    @pytest.mark.asyncio
    async def test_unknown_topic_acknowledged(self, processor, sessions):
        outcome = await WebhookDispatcher(processor, sessions).dispatch("products/update", SHOP, b"{}")

        assert outcome.status_code == 200
        processor.process.assert_not_called()


# ── Handler integration ───────────────────────────────────────────────────


class TestWebhookEndpoint:
    @pytest.fixture
    def client(self, settings, sessions, http, minter):
        app = create_app(settings, sessions=sessions, http=http, web3=MagicMock(), minter=minter)
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c

    def _post(self, client, body: bytes, topic: str = "orders/fulfilled", signature: str | None = None):
        return client.post(
            "/webhooks",
            content=body,
            headers={
                "X-Shopify-Topic": topic,
                "X-Shopify-Shop-Domain": SHOP,
                "X-Shopify-Webhook-Id": "wh_1",
                "X-Shopify-Hmac-SHA256": signature if signature is not None else _sign(body),
                "Content-Type": "application/json",
            },
        )

    def test_bad_signature_is_401(self, client, minter):
        resp = self._post(client, _order_body(), signature="forged")

        assert resp.status_code == 401
        assert resp.json() == {"status": "unauthorized"}
        minter.mint.assert_not_called()

    def test_fulfillment_mints_and_acknowledges(self, client, fake_shopify, minter):
        fake_shopify.customers["gid://shopify/Customer/5"] = {"profile_address": PROFILE_ADDRESS}
        fake_shopify.products["gid://shopify/Product/7"] = {
            "nft_contract_address": CONTRACT_ADDRESS,
            "nft_base_uri": "https://meta.example.com/c",
        }

        resp = self._post(client, _order_body())

        assert resp.status_code == 200
        assert resp.json() == {"status": "received"}
        minter.mint.assert_awaited_once()
        assert fake_shopify.products["gid://shopify/Product/7"]["nft_token_id"].startswith("0x")

    def test_mint_failure_still_acknowledged(self, client, fake_shopify, minter):
        fake_shopify.customers["gid://shopify/Customer/5"] = {"profile_address": PROFILE_ADDRESS}
        fake_shopify.products["gid://shopify/Product/7"] = {
            "nft_contract_address": CONTRACT_ADDRESS,
            "nft_base_uri": "https://meta.example.com/c",
        }
        minter.mint.side_effect = RemoteCallError(ErrorKind.NETWORK, "rpc down")

        resp = self._post(client, _order_body())

        assert resp.status_code == 200
        assert fake_shopify.writes == []

    def test_no_customer_acknowledged_without_calls(self, client, fake_shopify):
        resp = self._post(client, _order_body(customer=None))

        assert resp.status_code == 200
        assert fake_shopify.requests == []

    def test_missing_session_is_500_without_details(self, client, sessions):
        sessions.load.return_value = None

        resp = self._post(client, _order_body())

        assert resp.status_code == 500
        assert resp.json() == {"status": "error"}

    def test_unparseable_body_is_400(self, client):
        resp = self._post(client, b"{broken")
        assert resp.status_code == 400

    def test_compliance_topic(self, client):
        resp = self._post(client, b'{"shop_domain": "x"}', topic="shop/redact")
        assert resp.status_code == 200

    def test_uninstall_store_failure_is_audited(self, client, sessions, caplog):
        sessions.delete.side_effect = ConnectionError("redis down")

        with caplog.at_level("INFO", logger="lukso_bridge.webhooks.handlers"):
            resp = self._post(client, b"{}", topic="app/uninstalled")

        assert resp.status_code == 500
        assert resp.json() == {"status": "error"}
        assert "WEBHOOK_AUDIT topic=app/uninstalled" in caplog.text


class TestNonJsonAdminResponses:
    """A maintenance page from the Admin API after a mint must not abort the order."""

    @pytest.fixture
    def client(self, settings, sessions, fake_shopify, minter):
        original = fake_shopify.handler

        def handler(request):
            if b"metafieldsSet" in request.content:
                return httpx.Response(200, text="<html>maintenance</html>")
            return original(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app = create_app(settings, sessions=sessions, http=http, web3=MagicMock(), minter=minter)
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c

    def test_every_item_attempted_and_acknowledged(self, client, fake_shopify, minter):
        fake_shopify.customers["gid://shopify/Customer/5"] = {"profile_address": PROFILE_ADDRESS}
        for product_id in ("7", "8"):
            fake_shopify.products[f"gid://shopify/Product/{product_id}"] = {
                "nft_contract_address": CONTRACT_ADDRESS,
                "nft_base_uri": "https://meta.example.com/c",
            }
        body = _order_body(
            line_items=[
                {"id": 10, "product_id": 7, "product_exists": True},
                {"id": 11, "product_id": 8, "product_exists": True},
            ]
        )

        resp = client.post(
            "/webhooks",
            content=body,
            headers={
                "X-Shopify-Topic": "orders/fulfilled",
                "X-Shopify-Shop-Domain": SHOP,
                "X-Shopify-Hmac-SHA256": _sign(body),
                "Content-Type": "application/json",
            },
        )

        assert resp.status_code == 200
        assert minter.mint.await_count == 2

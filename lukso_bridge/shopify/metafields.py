"""Reads and writes of the ``lukso`` metafields on customers and products."""

from __future__ import annotations

import logging

from lukso_bridge.models import ProductNftConfig
from lukso_bridge.shopify.client import ShopifyAdminClient

logger = logging.getLogger(__name__)

NAMESPACE = "lukso"
PROFILE_ADDRESS_KEY = "profile_address"
CONTRACT_ADDRESS_KEY = "nft_contract_address"
BASE_URI_KEY = "nft_base_uri"
TOKEN_ID_KEY = "nft_token_id"
METADATA_PENDING_KEY = "nft_metadata_pending"

_CUSTOMER_PROFILE_QUERY = """
query customerProfileAddress($id: ID!) {
  customer(id: $id) {
    profileAddress: metafield(namespace: "lukso", key: "profile_address") {
      value
    }
  }
}
"""

_PRODUCT_NFT_QUERY = """
query productNftConfig($id: ID!) {
  product(id: $id) {
    contractAddress: metafield(namespace: "lukso", key: "nft_contract_address") {
      value
    }
    baseUri: metafield(namespace: "lukso", key: "nft_base_uri") {
      value
    }
    tokenId: metafield(namespace: "lukso", key: "nft_token_id") {
      value
    }
  }
}
"""

_METAFIELDS_SET = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      id
      key
      namespace
    }
    userErrors {
      field
      message
    }
  }
}
"""


def _value(node: dict | None, alias: str) -> str | None:
    """Extract ``alias.value`` from a GraphQL node, treating blanks as unset."""
    if not node:
        return None
    metafield = node.get(alias)
    if not metafield:
        return None
    value = (metafield.get("value") or "").strip()
    return value or None


async def get_customer_profile_address(client: ShopifyAdminClient, customer_id: str) -> str | None:
    data = await client.query(_CUSTOMER_PROFILE_QUERY, {"id": customer_id})
    return _value(data.get("customer"), "profileAddress")


async def get_product_nft_config(client: ShopifyAdminClient, product_id: str) -> ProductNftConfig:
    data = await client.query(_PRODUCT_NFT_QUERY, {"id": product_id})
    product = data.get("product")
    return ProductNftConfig(
        contract_address=_value(product, "contractAddress"),
        base_uri=_value(product, "baseUri"),
        token_id=_value(product, "tokenId"),
    )


async def _set_metafield(client: ShopifyAdminClient, owner_id: str, key: str, value: str) -> None:
    await client.mutate(
        _METAFIELDS_SET,
        {
            "metafields": [
                {
                    "ownerId": owner_id,
                    "namespace": NAMESPACE,
                    "key": key,
                    "type": "single_line_text_field",
                    "value": value,
                }
            ]
        },
        root_field="metafieldsSet",
    )
    logger.debug("Set %s/%s on %s", NAMESPACE, key, owner_id)


async def set_customer_profile_address(client: ShopifyAdminClient, customer_id: str, address: str) -> None:
    await _set_metafield(client, customer_id, PROFILE_ADDRESS_KEY, address)


async def set_product_token_id(client: ShopifyAdminClient, product_id: str, token_id: str) -> None:
    await _set_metafield(client, product_id, TOKEN_ID_KEY, token_id)


async def set_product_metadata_pending(client: ShopifyAdminClient, product_id: str, metadata_uri: str) -> None:
    """Flag a product whose token was minted without LSP4 metadata."""
    await _set_metafield(client, product_id, METADATA_PENDING_KEY, metadata_uri)

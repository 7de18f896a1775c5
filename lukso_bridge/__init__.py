"""Shopify order fulfillment -> LUKSO LSP8 NFT bridge."""

__version__ = "0.1.0"

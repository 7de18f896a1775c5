"""Webhook inbound system.

Receives Shopify webhooks on a single endpoint. Each delivery is
signature-verified and dispatched on its topic.
"""

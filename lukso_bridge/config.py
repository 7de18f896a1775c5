"""Bridge configuration.

Every component receives the Settings instance through its constructor;
nothing below this module reads the process environment.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

# LUKSO testnet
DEFAULT_CHAIN_ID = 4201


class Settings(BaseSettings):
    """Environment-driven settings for the Shopify <-> LUKSO bridge."""

    # Shopify app credentials
    shopify_api_secret: str = ""
    shopify_api_version: str = "2025-01"

    # Static offline credential for single-shop custom app installs (optional)
    shopify_shop_domain: str = ""
    shopify_access_token: str = ""

    # Offline session store
    redis_url: str = "redis://localhost:6379/0"

    # LUKSO network
    rpc_url: str = "https://rpc.testnet.lukso.network"
    chain_id: int = DEFAULT_CHAIN_ID
    # Required: the app refuses to start without it (it signs every mint)
    controller_private_key: str = ""
    token_contract_address: str = ""

    http_timeout: float = 30.0

    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "LUKSO_BRIDGE_", "env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the process-wide settings once."""
    return Settings()

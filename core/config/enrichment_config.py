#!/usr/bin/env python3
"""Enrichment workflow configuration

Outbound webhook to the external workflow engine and the shared key it uses
when calling back with campaign status.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


AUTH_MODE_BEARER = "bearer"
AUTH_MODE_API_KEY = "x-api-key"


@dataclass
class EnrichmentConfig:
    """Workflow engine endpoint, credentials and campaign policy switches"""

    webhook_url: Optional[str] = None
    webhook_api_key: Optional[str] = None
    # "bearer" -> Authorization: Bearer <key>, "x-api-key" -> x-api-key: <key>
    webhook_auth_mode: str = AUTH_MODE_BEARER
    webhook_timeout: float = 30.0

    callback_api_key: Optional[str] = None

    require_active_subscription: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url) and bool(self.webhook_api_key)

    @property
    def expected_callback_key(self) -> Optional[str]:
        return self.callback_api_key or self.webhook_api_key

    @classmethod
    def from_env(cls) -> 'EnrichmentConfig':
        """Load enrichment config from environment"""
        auth_mode = os.getenv("ENRICHMENT_WEBHOOK_AUTH_MODE", AUTH_MODE_BEARER).strip().lower()
        if auth_mode not in (AUTH_MODE_BEARER, AUTH_MODE_API_KEY):
            auth_mode = AUTH_MODE_BEARER

        return cls(
            webhook_url=os.getenv("ENRICHMENT_WEBHOOK_URL") or None,
            webhook_api_key=os.getenv("ENRICHMENT_WEBHOOK_API_KEY") or None,
            webhook_auth_mode=auth_mode,
            webhook_timeout=_float(os.getenv("ENRICHMENT_WEBHOOK_TIMEOUT", "30"), 30.0),
            callback_api_key=os.getenv("ENRICHMENT_CALLBACK_API_KEY") or None,
            require_active_subscription=_bool(os.getenv("REQUIRE_ACTIVE_SUBSCRIPTION", "false")),
        )

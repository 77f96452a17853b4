#!/usr/bin/env python3
"""Campaign service main configuration

Combines all sub-configs for the lead enrichment campaign service.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .enrichment_config import EnrichmentConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class AppConfig:
    """Main configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Service settings
    host: str = "0.0.0.0"
    port: int = 8251

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int(os.getenv("SERVICE_PORT") or os.getenv("PORT", "8251"), 8251),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            enrichment=EnrichmentConfig.from_env(),
        )

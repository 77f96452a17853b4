#!/usr/bin/env python3
"""
Core Module for the Campaign Service

Shared infrastructure used by the service package.

COMPONENTS:
    - config/: Environment-driven configuration (dataclasses + python-dotenv)
    - postgres_client.py: asyncpg connection pool with explicit lifecycle
    - auth_dependencies.py: FastAPI dependencies for gateway-forwarded identity

USAGE:
    from core.config import get_settings
    from core.postgres_client import AsyncPostgresClient

    settings = get_settings()
    db = AsyncPostgresClient(settings.infrastructure.postgres_dsn)
"""

__version__ = "1.0.0"

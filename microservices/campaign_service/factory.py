"""
Campaign Service Factory

Factory for creating campaign service instances with proper dependency injection.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx

from core.config import AppConfig, get_settings
from core.postgres_client import AsyncPostgresClient

from .account_repository import AccountRepository
from .campaign_repository import CampaignRepository
from .campaign_service import CampaignService
from .clients.workflow_client import WorkflowClient
from .credential_gate import DEFAULT_POLICY
from .dispatcher import EnrichmentDispatcher
from .integration_repository import IntegrationRepository
from .integration_service import IntegrationService

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


async def ensure_schema(db: AsyncPostgresClient) -> None:
    """Apply the bundled migrations in file order (all are idempotent DDL)"""
    for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
        await db.execute(migration.read_text())
        logger.info(f"Schema migration applied: {migration.name}")


class CampaignServiceFactory:
    """Factory for creating campaign service components"""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or get_settings()
        self._db: Optional[AsyncPostgresClient] = None
        self._http_client: Optional[httpx.AsyncClient] = None
        self._account_repository: Optional[AccountRepository] = None
        self._integration_repository: Optional[IntegrationRepository] = None
        self._campaign_repository: Optional[CampaignRepository] = None
        self._workflow_client: Optional[WorkflowClient] = None
        self._integration_service: Optional[IntegrationService] = None
        self._service: Optional[CampaignService] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Campaign Service components...")

        infra = self.config.infrastructure
        self._db = AsyncPostgresClient(
            dsn=infra.postgres_dsn,
            min_size=infra.postgres_pool_min,
            max_size=infra.postgres_pool_max,
            service_name=self.config.logging.service_name,
        )
        await self._db.connect()
        await ensure_schema(self._db)

        # Repositories
        self._account_repository = AccountRepository(self._db)
        self._integration_repository = IntegrationRepository(self._db)
        self._campaign_repository = CampaignRepository(self._db)

        # Workflow engine, one pooled HTTP client for the process
        enrichment = self.config.enrichment
        self._http_client = httpx.AsyncClient(timeout=enrichment.webhook_timeout)
        self._workflow_client = WorkflowClient(enrichment, client=self._http_client)
        if not self._workflow_client.is_configured:
            logger.warning("Workflow engine not configured - campaigns will stay pending")
        if not enrichment.expected_callback_key:
            logger.warning("No callback API key configured - status callbacks will be rejected")

        # Services
        self._integration_service = IntegrationService(
            repository=self._integration_repository,
            policy=DEFAULT_POLICY,
        )
        self._service = CampaignService(
            repository=self._campaign_repository,
            integration_service=self._integration_service,
            dispatcher=EnrichmentDispatcher(self._campaign_repository, self._workflow_client),
            require_active_subscription=enrichment.require_active_subscription,
            callback_api_key=enrichment.expected_callback_key,
        )

        logger.info("Campaign Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Campaign Service components...")

        if self._workflow_client:
            await self._workflow_client.close()
        if self._db:
            await self._db.close()

        logger.info("Campaign Service components closed")

    @property
    def db(self) -> AsyncPostgresClient:
        """Get database client"""
        if not self._db:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._db

    @property
    def account_repository(self) -> AccountRepository:
        """Get account repository"""
        if not self._account_repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._account_repository

    @property
    def integration_service(self) -> IntegrationService:
        """Get integration service"""
        if not self._integration_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._integration_service

    @property
    def service(self) -> CampaignService:
        """Get campaign service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def workflow_client(self) -> WorkflowClient:
        """Get workflow engine client"""
        if not self._workflow_client:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._workflow_client


__all__ = [
    "CampaignServiceFactory",
    "ensure_schema",
    "MIGRATIONS_DIR",
]

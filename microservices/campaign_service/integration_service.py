"""
Integration Service Business Logic

Credential store operations and the credential gate evaluation that reads from
it.
"""

import logging
from typing import List

from .credential_gate import DEFAULT_POLICY, CredentialPolicy, GateDecision
from .models import Integration, ServiceName
from .protocols import (
    IntegrationConflictError,
    IntegrationNotFoundError,
    IntegrationRepositoryProtocol,
    IntegrationValidationError,
)

logger = logging.getLogger(__name__)


class IntegrationService:
    """Per-user API keys for external services"""

    def __init__(
        self,
        repository: IntegrationRepositoryProtocol,
        policy: CredentialPolicy = DEFAULT_POLICY,
    ):
        self.repository = repository
        self.policy = policy

    async def list_integrations(self, user_id: str) -> List[Integration]:
        return await self.repository.list_integrations(user_id)

    async def get_integration(self, user_id: str, service_name: ServiceName) -> Integration:
        """
        Get the caller's integration for one service.

        Raises:
            IntegrationNotFoundError: no row for (user, service)
        """
        integration = await self.repository.get_integration(user_id, service_name)
        if not integration:
            raise IntegrationNotFoundError(f"No {service_name.value} integration configured")
        return integration

    async def save_integration(
        self,
        user_id: str,
        service_name: ServiceName,
        api_key: str,
    ) -> Integration:
        """
        Create or replace the caller's key for a service and mark it active.

        Raises:
            IntegrationValidationError: blank key
            IntegrationConflictError: key already active for another user
        """
        api_key = (api_key or "").strip()
        if not api_key:
            raise IntegrationValidationError("API key is required")

        # Fast path; the partial unique index is the real guard under concurrency
        owner = await self.repository.find_active_key_owner(
            service_name, api_key, exclude_user_id=user_id
        )
        if owner:
            logger.warning(
                f"Rejected {service_name.value} key for {user_id}: already active for another user"
            )
            raise IntegrationConflictError(
                f"This {service_name.value} API key is already in use by another account"
            )

        integration = await self.repository.upsert_integration(user_id, service_name, api_key)
        logger.info(f"Integration saved: {service_name.value} for {user_id}")
        return integration

    async def delete_integration(self, user_id: str, service_name: ServiceName) -> None:
        deleted = await self.repository.delete_integration(user_id, service_name)
        if not deleted:
            raise IntegrationNotFoundError(f"No {service_name.value} integration configured")
        logger.info(f"Integration deleted: {service_name.value} for {user_id}")

    async def evaluate_gate(self, user_id: str) -> GateDecision:
        """Evaluate the caller's current active integrations; never cached"""
        active = await self.repository.get_active_service_names(user_id)
        return self.policy.evaluate(active)


__all__ = ["IntegrationService"]

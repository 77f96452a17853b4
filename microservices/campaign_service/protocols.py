"""
Campaign Service Protocols

Defines interfaces for dependency injection and testing.
NO import-time I/O dependencies - safe to import anywhere.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Protocol, runtime_checkable

from .models import (
    Campaign,
    CampaignStatus,
    Contact,
    Integration,
    ServiceName,
    User,
)


# ====================
# Repository Protocols
# ====================


@runtime_checkable
class AccountRepositoryProtocol(Protocol):
    """Protocol for the local user store"""

    async def ensure_user(
        self, external_id: str, email: str = "", first_name: Optional[str] = None
    ) -> User:
        """Find-or-create the user for an identity-provider subject (atomic)"""
        ...


@runtime_checkable
class IntegrationRepositoryProtocol(Protocol):
    """Protocol for the credential store"""

    async def list_integrations(self, user_id: str) -> List[Integration]:
        """All integrations owned by a user"""
        ...

    async def get_integration(
        self, user_id: str, service_name: ServiceName
    ) -> Optional[Integration]:
        """One integration by owner and service"""
        ...

    async def get_active_service_names(self, user_id: str) -> FrozenSet[ServiceName]:
        """Names of the user's active integrations"""
        ...

    async def find_active_key_owner(
        self, service_name: ServiceName, api_key: str, exclude_user_id: str
    ) -> Optional[Integration]:
        """Active integration with this key held by a different user"""
        ...

    async def upsert_integration(
        self, user_id: str, service_name: ServiceName, api_key: str
    ) -> Integration:
        """Insert or replace the (user, service) row, marking it active"""
        ...

    async def delete_integration(self, user_id: str, service_name: ServiceName) -> bool:
        """Delete the (user, service) row"""
        ...


@runtime_checkable
class CampaignRepositoryProtocol(Protocol):
    """Protocol for campaign data repository"""

    async def save_campaign(self, campaign: Campaign) -> Campaign:
        """Insert a campaign"""
        ...

    async def count_campaigns(self, user_id: str) -> int:
        """Number of campaigns owned by a user"""
        ...

    async def get_campaign_for_user(
        self, campaign_id: str, user_id: str
    ) -> Optional[Campaign]:
        """Get campaign by ID scoped to its owner"""
        ...

    async def list_campaigns(self, user_id: str) -> List[Campaign]:
        """List a user's campaigns, newest first"""
        ...

    async def update_campaign_status(
        self, campaign_id: str, status: CampaignStatus
    ) -> Optional[Campaign]:
        """Unconditionally write campaign status"""
        ...

    async def touch_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Bump updated_at only"""
        ...

    async def claim_for_dispatch(self, campaign_id: str) -> Optional[Campaign]:
        """Compare-and-set pending -> processing; None when not pending"""
        ...

    async def rename_campaign(
        self, campaign_id: str, user_id: str, name: str
    ) -> Optional[Campaign]:
        """Rename an owned campaign"""
        ...

    async def delete_campaign(self, campaign_id: str, user_id: str) -> bool:
        """Delete an owned campaign and its contacts"""
        ...

    async def list_contacts(self, campaign_id: str) -> List[Contact]:
        """Contacts of a campaign, newest first"""
        ...


# ====================
# Client Protocols
# ====================


class WorkflowClientProtocol(Protocol):
    """Protocol for the external workflow engine"""

    @property
    def is_configured(self) -> bool:
        """Whether endpoint and key are both present"""
        ...

    async def submit_job(self, payload: Dict[str, Any]) -> None:
        """Submit an enrichment job; raises on failure"""
        ...


# ====================
# Exceptions
# ====================


class CampaignServiceError(Exception):
    """Base exception for campaign service errors"""
    pass


class CampaignNotFoundError(CampaignServiceError):
    """Raised when a campaign does not exist or is not owned by the caller"""
    pass


class CampaignValidationError(CampaignServiceError):
    """Raised when campaign input is invalid"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidCampaignStateError(CampaignServiceError):
    """Raised when campaign is in invalid state for operation"""

    def __init__(self, message: str, current_status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.current_status = current_status


class CredentialGateError(CampaignServiceError):
    """Raised when the user's integrations do not permit creating a campaign"""

    def __init__(
        self,
        message: str,
        missing_mandatory: Optional[List[str]] = None,
        lead_source_satisfied: bool = False,
    ):
        super().__init__(message)
        self.missing_mandatory = missing_mandatory or []
        self.lead_source_satisfied = lead_source_satisfied


class SubscriptionRequiredError(CampaignServiceError):
    """Raised when billing does not allow creating campaigns"""
    pass


class CallbackAuthenticationError(CampaignServiceError):
    """Raised when the workflow engine callback key is missing or wrong"""
    pass


class IntegrationServiceError(CampaignServiceError):
    """Base exception for integration errors"""
    pass


class IntegrationNotFoundError(IntegrationServiceError):
    """Raised when an integration does not exist"""
    pass


class IntegrationValidationError(IntegrationServiceError):
    """Raised when integration input is invalid"""
    pass


class IntegrationConflictError(IntegrationServiceError):
    """Raised when an API key is already active for another user"""
    pass


class WorkflowDispatchError(CampaignServiceError):
    """Raised by the workflow client when the engine rejects a job"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    # Protocols
    "AccountRepositoryProtocol",
    "IntegrationRepositoryProtocol",
    "CampaignRepositoryProtocol",
    "WorkflowClientProtocol",
    # Exceptions
    "CampaignServiceError",
    "CampaignNotFoundError",
    "CampaignValidationError",
    "InvalidCampaignStateError",
    "CredentialGateError",
    "SubscriptionRequiredError",
    "CallbackAuthenticationError",
    "IntegrationServiceError",
    "IntegrationNotFoundError",
    "IntegrationValidationError",
    "IntegrationConflictError",
    "WorkflowDispatchError",
]

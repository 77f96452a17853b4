"""
Campaign Service Data Models

Canonical data structures for lead enrichment campaigns, their contacts, and the
per-user integration credentials that gate campaign creation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field


# =============================================================================
# ENUMS
# =============================================================================

class ServiceName(str, Enum):
    """External data/verification services a user can store a key for"""
    APOLLO = "Apollo API"
    LEADMAGIC = "LeadMagic"
    ICYPEAS = "IcyPeas"
    TRYKITT = "TryKitt"
    A_LEADS = "A-Leads"
    MAILVERIFY = "MailVerify"
    ENRICHLY = "Enrichly"


class CampaignStatus(str, Enum):
    """Campaign lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"  # Set only by the workflow engine


TERMINAL_STATUSES = frozenset({CampaignStatus.COMPLETED, CampaignStatus.FAILED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all contracts"""

    model_config = {
        "from_attributes": True,
    }


# =============================================================================
# DOMAIN MODELS
# =============================================================================

class User(BaseContract):
    """Local user anchored to an identity-provider subject"""
    user_id: str = Field(default_factory=lambda: f"usr_{uuid4().hex[:16]}")
    external_id: str = Field(..., min_length=1)
    email: str = ""
    first_name: Optional[str] = None

    # Billing state, written by the payment processor webhooks elsewhere
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_current_period_end: Optional[datetime] = None

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def can_create_campaigns(self, now: Optional[datetime] = None) -> bool:
        """True while the user has a subscription whose period has not ended"""
        if not self.stripe_subscription_id or not self.stripe_current_period_end:
            return False
        now = now or _now()
        period_end = self.stripe_current_period_end
        if period_end.tzinfo is None:
            period_end = period_end.replace(tzinfo=timezone.utc)
        return period_end > now


class Integration(BaseContract):
    """One stored credential for a named external service"""
    integration_id: str = Field(default_factory=lambda: f"int_{uuid4().hex[:16]}")
    user_id: str
    service_name: ServiceName
    api_key: str = Field(..., min_length=1)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Contact(BaseContract):
    """One row of enrichment output; every field fills in over time"""
    contact_id: str = Field(default_factory=lambda: f"con_{uuid4().hex[:16]}")
    campaign_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    company_domain: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    enriched_by: Optional[str] = None
    email_verified: Optional[bool] = None
    email_verification_status: Optional[str] = None
    status: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Campaign(BaseContract):
    """Core Campaign model"""
    campaign_id: str = Field(default_factory=lambda: f"cmp_{uuid4().hex[:16]}")
    user_id: str
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    status: CampaignStatus = Field(default=CampaignStatus.PENDING)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    # Loaded only by the detail read
    contacts: List[Contact] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# =============================================================================
# READ MODELS
# =============================================================================

class CampaignProgress(BaseContract):
    """Progress derived from the live contact rows"""
    total: int = Field(default=0, ge=0)
    processed: int = Field(default=0, ge=0)

    @computed_field
    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.processed >= self.total

    @computed_field
    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round(min(self.processed, self.total) * 100.0 / self.total, 1)


class PollState(BaseContract):
    """Tells a caller whether to read the campaign again"""
    should_poll: bool
    interval_seconds: int


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CampaignCreateRequest(BaseContract):
    """Request to create and dispatch a campaign"""
    url: Optional[str] = Field(None, description="Lead-source URL")
    name: Optional[str] = Field(None, max_length=255)


class CampaignRenameRequest(BaseContract):
    """Request to rename a campaign"""
    name: Optional[str] = Field(None, max_length=255)


class CampaignStatusUpdateRequest(BaseContract):
    """Status reported by the workflow engine; omitted status only touches updated_at"""
    status: Optional[CampaignStatus] = None


class IntegrationSaveRequest(BaseContract):
    """Request to create or replace a credential"""
    service_name: ServiceName
    api_key: str = Field(..., max_length=1024)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CampaignResponse(BaseContract):
    """Single campaign response"""
    campaign: Campaign


class CampaignCreateResponse(BaseContract):
    """Campaign creation/resubmission result"""
    campaign: Campaign
    dispatched: bool = False
    warning: Optional[str] = None


class CampaignDetailResponse(BaseContract):
    """Pollable campaign read model"""
    campaign: Campaign
    progress: CampaignProgress
    poll: PollState


class CampaignListResponse(BaseContract):
    """Campaign list response"""
    campaigns: List[Campaign] = Field(default_factory=list)


class IntegrationSummary(BaseContract):
    """Integration without the secret"""
    service_name: ServiceName
    is_active: bool
    api_key_hint: str
    updated_at: datetime

    @classmethod
    def from_integration(cls, integration: Integration) -> "IntegrationSummary":
        key = integration.api_key
        hint = f"****{key[-4:]}" if len(key) > 4 else "****"
        return cls(
            service_name=integration.service_name,
            is_active=integration.is_active,
            api_key_hint=hint,
            updated_at=integration.updated_at,
        )


class IntegrationListResponse(BaseContract):
    """Integration list response"""
    integrations: List[IntegrationSummary] = Field(default_factory=list)


class IntegrationResponse(BaseContract):
    """Single integration save response"""
    integration: IntegrationSummary


class IntegrationKeyResponse(BaseContract):
    """Stored key for one service"""
    service_name: ServiceName
    api_key: str
    is_active: bool


class GateStatusResponse(BaseContract):
    """Credential gate evaluation for the caller"""
    allowed: bool
    missing_mandatory: List[str] = Field(default_factory=list)
    lead_source_satisfied: bool
    message: Optional[str] = None


class SuccessResponse(BaseContract):
    """Generic acknowledgement"""
    success: bool = True


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float


__all__ = [
    # Enums
    "ServiceName",
    "CampaignStatus",
    "TERMINAL_STATUSES",
    # Domain
    "BaseContract",
    "User",
    "Integration",
    "Contact",
    "Campaign",
    # Read models
    "CampaignProgress",
    "PollState",
    # Requests
    "CampaignCreateRequest",
    "CampaignRenameRequest",
    "CampaignStatusUpdateRequest",
    "IntegrationSaveRequest",
    # Responses
    "CampaignResponse",
    "CampaignCreateResponse",
    "CampaignDetailResponse",
    "CampaignListResponse",
    "IntegrationSummary",
    "IntegrationListResponse",
    "IntegrationResponse",
    "IntegrationKeyResponse",
    "GateStatusResponse",
    "SuccessResponse",
    "HealthResponse",
    "ReadinessResponse",
    "LivenessResponse",
]

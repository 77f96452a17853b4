"""
Campaign Service Business Logic

Implements the enrichment campaign lifecycle: gated creation, dispatch to the
workflow engine, owner-scoped reads with derived progress, and the status
callback the engine uses to report completion.
"""

import hmac
import logging
from typing import List, Optional

from .dispatcher import DispatchResult, EnrichmentDispatcher
from .integration_service import IntegrationService
from .models import (
    Campaign,
    CampaignDetailResponse,
    CampaignStatus,
    User,
)
from .progress import compute_progress, poll_state
from .protocols import (
    CallbackAuthenticationError,
    CampaignNotFoundError,
    CampaignRepositoryProtocol,
    CampaignValidationError,
    CredentialGateError,
    InvalidCampaignStateError,
    SubscriptionRequiredError,
)

logger = logging.getLogger(__name__)


class CampaignService:
    """Campaign service business logic layer"""

    MAX_NAME_LENGTH = 255

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        integration_service: IntegrationService,
        dispatcher: EnrichmentDispatcher,
        require_active_subscription: bool = False,
        callback_api_key: Optional[str] = None,
    ):
        self.repository = repository
        self.integration_service = integration_service
        self.dispatcher = dispatcher
        self.require_active_subscription = require_active_subscription
        self.callback_api_key = callback_api_key

    # ====================
    # Creation and dispatch
    # ====================

    async def submit_campaign(
        self,
        user: User,
        url: Optional[str],
        name: Optional[str] = None,
    ) -> DispatchResult:
        """
        Validate, gate, persist as pending, then dispatch.

        Persistence is the commitment point: once the row is saved the call
        succeeds, and dispatch problems come back as a warning on the result.

        Raises:
            CampaignValidationError: blank url
            SubscriptionRequiredError: billing gate enabled and not satisfied
            CredentialGateError: active integrations do not satisfy the policy
        """
        url = self._validate_url(url)
        self._check_subscription(user)
        await self._check_gate(user.user_id)

        campaign = await self.create_campaign(user.user_id, url, name)
        return await self.dispatcher.dispatch(campaign)

    async def create_campaign(
        self,
        user_id: str,
        url: str,
        name: Optional[str] = None,
    ) -> Campaign:
        """Persist a pending campaign; a blank name becomes "Campaign {n+1}" """
        url = self._validate_url(url)
        name = (name or "").strip()
        if not name:
            count = await self.repository.count_campaigns(user_id)
            name = f"Campaign {count + 1}"
        self._validate_name(name)

        campaign = Campaign(
            user_id=user_id,
            name=name,
            url=url,
            status=CampaignStatus.PENDING,
        )
        campaign = await self.repository.save_campaign(campaign)

        logger.info(f"Campaign created: {campaign.campaign_id} for {user_id}")
        return campaign

    async def resubmit_campaign(self, campaign_id: str, user: User) -> DispatchResult:
        """
        Dispatch an owned pending campaign again.

        Gate and subscription are re-evaluated since integrations may have
        changed since creation.
        """
        campaign = await self._get_owned(campaign_id, user.user_id)
        if campaign.status != CampaignStatus.PENDING:
            raise InvalidCampaignStateError(
                f"Only pending campaigns can be dispatched, campaign is {campaign.status.value}",
                current_status=campaign.status,
            )

        self._check_subscription(user)
        await self._check_gate(user.user_id)

        logger.info(f"Resubmitting campaign {campaign_id}")
        return await self.dispatcher.dispatch(campaign)

    # ====================
    # Reads
    # ====================

    async def get_campaign_with_contacts(self, campaign_id: str, user_id: str) -> Campaign:
        """Owned campaign with its contacts, newest first"""
        campaign = await self._get_owned(campaign_id, user_id)
        contacts = await self.repository.list_contacts(campaign_id)
        return campaign.model_copy(update={"contacts": contacts})

    async def get_campaign_detail(self, campaign_id: str, user_id: str) -> CampaignDetailResponse:
        """Campaign, contacts, progress and polling hint in one read"""
        campaign = await self.get_campaign_with_contacts(campaign_id, user_id)
        progress = compute_progress(campaign.contacts)
        return CampaignDetailResponse(
            campaign=campaign,
            progress=progress,
            poll=poll_state(campaign.status, progress),
        )

    async def list_campaigns(self, user_id: str) -> List[Campaign]:
        return await self.repository.list_campaigns(user_id)

    # ====================
    # Mutations
    # ====================

    async def rename_campaign(
        self, campaign_id: str, user_id: str, name: Optional[str]
    ) -> Campaign:
        name = (name or "").strip()
        self._validate_name(name)

        campaign = await self.repository.rename_campaign(campaign_id, user_id, name)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")

        logger.info(f"Campaign renamed: {campaign_id}")
        return campaign

    async def delete_campaign(self, campaign_id: str, user_id: str) -> None:
        deleted = await self.repository.delete_campaign(campaign_id, user_id)
        if not deleted:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        logger.info(f"Campaign deleted: {campaign_id}")

    async def update_status(self, campaign_id: str, status: CampaignStatus) -> Campaign:
        """
        Write a campaign status unconditionally.

        No transition checks: the workflow engine may move a campaign to any
        status, including back from a terminal one.
        """
        campaign = await self.repository.update_campaign_status(campaign_id, status)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")

        logger.info(f"Campaign {campaign_id} status -> {status.value}")
        return campaign

    # ====================
    # Workflow engine callback
    # ====================

    def verify_callback_key(self, presented_key: Optional[str]) -> None:
        """
        Raises:
            CallbackAuthenticationError: no key configured, none presented,
                or a mismatch
        """
        if not self.callback_api_key:
            raise CallbackAuthenticationError("Status callback is not configured")
        if not presented_key or not hmac.compare_digest(
            presented_key.encode(), self.callback_api_key.encode()
        ):
            raise CallbackAuthenticationError("Invalid API key")

    async def handle_engine_callback(
        self,
        campaign_id: str,
        status: Optional[CampaignStatus],
        presented_key: Optional[str],
    ) -> Campaign:
        """Write the reported status; without one the engine is only signalling activity"""
        self.verify_callback_key(presented_key)
        if status is not None:
            return await self.update_status(campaign_id, status)

        campaign = await self.repository.touch_campaign(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        return campaign

    # ====================
    # Validation
    # ====================

    async def _get_owned(self, campaign_id: str, user_id: str) -> Campaign:
        # Another user's campaign is indistinguishable from a missing one
        campaign = await self.repository.get_campaign_for_user(campaign_id, user_id)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        return campaign

    def _validate_url(self, url: Optional[str]) -> str:
        url = (url or "").strip()
        if not url:
            raise CampaignValidationError("Campaign URL is required", "url")
        return url

    def _validate_name(self, name: str) -> None:
        if not name:
            raise CampaignValidationError("Campaign name is required", "name")
        if len(name) > self.MAX_NAME_LENGTH:
            raise CampaignValidationError(
                f"Name must not exceed {self.MAX_NAME_LENGTH} characters", "name"
            )

    def _check_subscription(self, user: User) -> None:
        if self.require_active_subscription and not user.can_create_campaigns():
            raise SubscriptionRequiredError("An active subscription is required to create campaigns")

    async def _check_gate(self, user_id: str) -> None:
        decision = await self.integration_service.evaluate_gate(user_id)
        if decision.allowed:
            return

        logger.info(f"Credential gate denied campaign creation for {user_id}")
        raise CredentialGateError(
            decision.describe(),
            missing_mandatory=sorted(s.value for s in decision.missing_mandatory),
            lead_source_satisfied=decision.lead_source_satisfied,
        )


__all__ = ["CampaignService"]

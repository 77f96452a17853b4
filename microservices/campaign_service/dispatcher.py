"""
Enrichment Dispatcher

Submits a freshly created (or resubmitted) pending campaign to the workflow
engine and reconciles the campaign status with the outcome.

Only two writes ever happen here: pending -> processing before the call, and
processing -> pending when the call does not succeed. Completed and failed are
set by the engine through its status callback.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import Campaign, CampaignStatus
from .protocols import (
    CampaignRepositoryProtocol,
    InvalidCampaignStateError,
    WorkflowClientProtocol,
    WorkflowDispatchError,
)

logger = logging.getLogger(__name__)


NOT_CONFIGURED_WARNING = (
    "Enrichment workflow is not configured; the campaign was saved as pending"
)
DISPATCH_FAILED_WARNING = (
    "Enrichment workflow did not accept the job; the campaign was left pending"
)


@dataclass
class DispatchResult:
    """Campaign state after a dispatch attempt"""
    campaign: Campaign
    dispatched: bool
    warning: Optional[str] = None


def build_job_payload(campaign: Campaign) -> Dict[str, Any]:
    """Webhook body in the engine's camelCase contract"""
    return {
        "campaignId": campaign.campaign_id,
        "userId": campaign.user_id,
        "apolloUrl": campaign.url,
    }


class EnrichmentDispatcher:
    """Dispatches campaigns to the workflow engine"""

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        workflow_client: WorkflowClientProtocol,
    ):
        self.repository = repository
        self.workflow_client = workflow_client

    async def dispatch(self, campaign: Campaign) -> DispatchResult:
        """
        Dispatch a pending campaign.

        Never raises for engine-side problems: an unconfigured engine leaves the
        campaign pending with a warning, and a rejected, timed-out or failed
        call is rolled back to pending. The rollback sits in a finally block so
        it also runs if the request task is cancelled mid-call.

        Raises:
            InvalidCampaignStateError: another dispatch already claimed the
                campaign, or it left pending since it was read
        """
        if not self.workflow_client.is_configured:
            logger.warning(
                f"Workflow engine not configured, campaign {campaign.campaign_id} stays pending"
            )
            return DispatchResult(campaign=campaign, dispatched=False, warning=NOT_CONFIGURED_WARNING)

        # Durable before the call: a crash mid-call leaves a visible processing row.
        # Only one caller can win the pending -> processing claim.
        claimed = await self.repository.claim_for_dispatch(campaign.campaign_id)
        if claimed is None:
            raise InvalidCampaignStateError(
                f"Campaign {campaign.campaign_id} is no longer pending",
                current_status=campaign.status,
            )
        campaign = claimed

        accepted = False
        try:
            await self.workflow_client.submit_job(build_job_payload(campaign))
            accepted = True

        except WorkflowDispatchError as e:
            logger.warning(f"Dispatch of campaign {campaign.campaign_id} failed: {e}")

        except Exception as e:
            logger.error(
                f"Unexpected error dispatching campaign {campaign.campaign_id}: {e}",
                exc_info=True,
            )

        finally:
            if not accepted:
                campaign = await self._write_status(campaign, CampaignStatus.PENDING)

        if not accepted:
            return DispatchResult(campaign=campaign, dispatched=False, warning=DISPATCH_FAILED_WARNING)

        logger.info(f"Campaign {campaign.campaign_id} dispatched to workflow engine")
        return DispatchResult(campaign=campaign, dispatched=True)

    async def _write_status(self, campaign: Campaign, status: CampaignStatus) -> Campaign:
        updated = await self.repository.update_campaign_status(campaign.campaign_id, status)
        if updated is None:
            # Row vanished (deleted concurrently); report the intended state
            return campaign.model_copy(update={"status": status})
        return updated


__all__ = [
    "DispatchResult",
    "EnrichmentDispatcher",
    "build_job_payload",
    "NOT_CONFIGURED_WARNING",
    "DISPATCH_FAILED_WARNING",
]

"""
Campaign Service Client

Client for other services (and scripts) to call campaign_service, including a
reference poller that follows the campaign read model until it settles.
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from .models import CampaignDetailResponse
from .progress import POLL_INTERVAL_SECONDS, should_poll

logger = logging.getLogger(__name__)


class CampaignClient:
    """Client for campaign_service"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if base_url is None:
            host = os.getenv("CAMPAIGN_SERVICE_HOST", "localhost")
            port = os.getenv("CAMPAIGN_SERVICE_PORT", "8251")
            base_url = os.getenv("CAMPAIGN_SERVICE_URL", f"http://{host}:{port}")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _request(
        self,
        method: str,
        path: str,
        user_id: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"X-User-Id": user_id}
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, json=json, headers=headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, json=json, headers=headers)

    async def create_campaign(
        self,
        url: str,
        user_id: str,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a campaign.

        Args:
            url: Lead-source URL
            user_id: Identity-provider subject of the caller
            name: Optional campaign name

        Returns:
            {campaign, dispatched, warning}
        """
        request_data: Dict[str, Any] = {"url": url}
        if name:
            request_data["name"] = name

        try:
            response = await self._request("POST", "/api/v1/campaigns", user_id, json=request_data)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Error creating campaign: {e.response.text}")
            raise

    async def get_campaign(self, campaign_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the campaign read model.

        Returns:
            {campaign, progress, poll} or None if not found
        """
        try:
            response = await self._request("GET", f"/api/v1/campaigns/{campaign_id}", user_id)
            if response.status_code == 404:
                return None

            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Error getting campaign {campaign_id}: {e.response.text}")
            raise

    async def list_campaigns(self, user_id: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", "/api/v1/campaigns", user_id)
        response.raise_for_status()
        return response.json().get("campaigns", [])

    async def wait_for_completion(
        self,
        campaign_id: str,
        user_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_wait: Optional[float] = None,
    ) -> CampaignDetailResponse:
        """
        Poll a campaign at a fixed interval until it settles.

        Settled means the status is no longer processing and every known
        contact is processed. No backoff.

        Raises:
            LookupError: campaign not found (or not owned by user_id)
            asyncio.TimeoutError: still unsettled after max_wait seconds
        """
        started = time.monotonic()

        while True:
            data = await self.get_campaign(campaign_id, user_id)
            if data is None:
                raise LookupError(f"Campaign not found: {campaign_id}")

            detail = CampaignDetailResponse.model_validate(data)
            if not should_poll(detail.campaign.status, detail.progress):
                return detail

            logger.debug(
                f"Campaign {campaign_id} {detail.campaign.status.value}: "
                f"{detail.progress.processed}/{detail.progress.total} processed"
            )

            if max_wait is not None and time.monotonic() - started + interval > max_wait:
                raise asyncio.TimeoutError(
                    f"Campaign {campaign_id} did not settle within {max_wait:g}s"
                )

            await asyncio.sleep(interval)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


__all__ = ["CampaignClient"]

"""
Workflow Engine Client

Submits enrichment jobs to the external workflow engine's webhook.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from core.config import AUTH_MODE_API_KEY, EnrichmentConfig, get_settings

from ..protocols import WorkflowDispatchError

logger = logging.getLogger(__name__)


class WorkflowClient:
    """Client for the workflow engine webhook"""

    def __init__(
        self,
        config: Optional[EnrichmentConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if config is None:
            config = get_settings().enrichment

        self.webhook_url = config.webhook_url
        self.api_key = config.webhook_api_key
        self.auth_mode = config.webhook_auth_mode
        self.timeout = config.webhook_timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url) and bool(self.api_key)

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_mode == AUTH_MODE_API_KEY:
            headers["x-api-key"] = self.api_key
        else:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = self._build_headers()
        if self._client is not None:
            return await self._client.post(self.webhook_url, json=payload, headers=headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.webhook_url, json=payload, headers=headers)

    async def submit_job(self, payload: Dict[str, Any]) -> None:
        """
        Submit an enrichment job.

        The whole call is bounded by the configured timeout, not just each
        connect/read phase.

        Raises:
            WorkflowDispatchError: not configured, timed out, transport
                failure, or a non-2xx response
        """
        if not self.is_configured:
            raise WorkflowDispatchError("Workflow engine endpoint or API key is not configured")

        try:
            response = await asyncio.wait_for(self._post(payload), timeout=self.timeout)

        except asyncio.TimeoutError as e:
            raise WorkflowDispatchError(
                f"Workflow engine did not respond within {self.timeout:g}s"
            ) from e

        except httpx.TimeoutException as e:
            raise WorkflowDispatchError(f"Workflow engine request timed out: {e}") from e

        except httpx.HTTPError as e:
            raise WorkflowDispatchError(f"Workflow engine request failed: {e}") from e

        if not response.is_success:
            raise WorkflowDispatchError(
                f"Workflow engine rejected job with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug(f"Workflow engine accepted job: HTTP {response.status_code}")

    async def close(self) -> None:
        """Close the shared HTTP client, if one was given"""
        if self._client is not None:
            await self._client.aclose()


__all__ = ["WorkflowClient"]

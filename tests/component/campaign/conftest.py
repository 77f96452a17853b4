"""
Component Test Fixtures for Campaign Service

Provides fixtures for component testing with mocked dependencies: in-memory
repositories that honour the same constraints as the database, and a fake
workflow engine.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import pytest
import pytest_asyncio

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.campaign.data_contract import (
    Campaign,
    CampaignStatus,
    CampaignTestDataFactory,
    Contact,
    GATE_SATISFYING_SERVICES,
    Integration,
    ServiceName,
    User,
)
from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.dispatcher import EnrichmentDispatcher
from microservices.campaign_service.integration_service import IntegrationService
from microservices.campaign_service.protocols import (
    IntegrationConflictError,
    WorkflowDispatchError,
)

CALLBACK_KEY = "engine-callback-key"


# ====================
# Mock Repositories
# ====================


class MockAccountRepository:
    """Mock local user store"""

    def __init__(self):
        self.users: Dict[str, User] = {}

    async def ensure_user(
        self, external_id: str, email: str = "", first_name: Optional[str] = None
    ) -> User:
        user = self.users.get(external_id)
        if user is None:
            user = User(external_id=external_id, email=email, first_name=first_name)
        else:
            user = user.model_copy(update={
                "email": email or user.email,
                "first_name": first_name or user.first_name,
            })
        self.users[external_id] = user
        return user

    def add_user(self, user: User) -> User:
        self.users[user.external_id] = user
        return user


class MockIntegrationRepository:
    """Mock credential store enforcing one active owner per (service, key)"""

    def __init__(self):
        self.integrations: Dict[Tuple[str, ServiceName], Integration] = {}

    async def list_integrations(self, user_id: str) -> List[Integration]:
        items = [i for (uid, _), i in self.integrations.items() if uid == user_id]
        return sorted(items, key=lambda i: i.service_name.value)

    async def get_integration(
        self, user_id: str, service_name: ServiceName
    ) -> Optional[Integration]:
        return self.integrations.get((user_id, service_name))

    async def get_active_service_names(self, user_id: str) -> FrozenSet[ServiceName]:
        return frozenset(
            i.service_name
            for (uid, _), i in self.integrations.items()
            if uid == user_id and i.is_active
        )

    async def find_active_key_owner(
        self, service_name: ServiceName, api_key: str, exclude_user_id: str
    ) -> Optional[Integration]:
        for (uid, name), integration in self.integrations.items():
            if (
                name == service_name
                and uid != exclude_user_id
                and integration.is_active
                and integration.api_key == api_key
            ):
                return integration
        return None

    async def upsert_integration(
        self, user_id: str, service_name: ServiceName, api_key: str
    ) -> Integration:
        # Same rule as the partial unique index
        if await self.find_active_key_owner(service_name, api_key, user_id):
            raise IntegrationConflictError(
                f"This {service_name.value} API key is already in use by another account"
            )

        existing = self.integrations.get((user_id, service_name))
        now = datetime.now(timezone.utc)
        if existing:
            integration = existing.model_copy(
                update={"api_key": api_key, "is_active": True, "updated_at": now}
            )
        else:
            integration = Integration(user_id=user_id, service_name=service_name, api_key=api_key)
        self.integrations[(user_id, service_name)] = integration
        return integration

    async def delete_integration(self, user_id: str, service_name: ServiceName) -> bool:
        return self.integrations.pop((user_id, service_name), None) is not None

    def add(self, integration: Integration) -> Integration:
        self.integrations[(integration.user_id, integration.service_name)] = integration
        return integration


class MockCampaignRepository:
    """Mock campaign store; records every status write"""

    def __init__(self):
        self.campaigns: Dict[str, Campaign] = {}
        self.contacts: Dict[str, List[Contact]] = {}
        self.status_writes: List[Tuple[str, CampaignStatus]] = []
        self.fail_status_writes = False
        # Simulated round-trip on reads so concurrent callers interleave
        self.read_delay: float = 0

    async def save_campaign(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.campaign_id] = campaign
        return campaign

    async def count_campaigns(self, user_id: str) -> int:
        return sum(1 for c in self.campaigns.values() if c.user_id == user_id)

    async def get_campaign_for_user(
        self, campaign_id: str, user_id: str
    ) -> Optional[Campaign]:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        campaign = self.campaigns.get(campaign_id)
        if campaign and campaign.user_id == user_id:
            return campaign
        return None

    async def list_campaigns(self, user_id: str) -> List[Campaign]:
        # Insertion order stands in for created_at
        owned = [c for c in self.campaigns.values() if c.user_id == user_id]
        return list(reversed(owned))

    async def update_campaign_status(
        self, campaign_id: str, status: CampaignStatus
    ) -> Optional[Campaign]:
        if self.fail_status_writes:
            raise RuntimeError("database unavailable")

        campaign = self.campaigns.get(campaign_id)
        if not campaign:
            return None
        self.status_writes.append((campaign_id, status))
        updated = campaign.model_copy(
            update={"status": status, "updated_at": datetime.now(timezone.utc)}
        )
        self.campaigns[campaign_id] = updated
        return updated

    async def touch_campaign(self, campaign_id: str) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        if not campaign:
            return None
        touched = campaign.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.campaigns[campaign_id] = touched
        return touched

    async def claim_for_dispatch(self, campaign_id: str) -> Optional[Campaign]:
        # Check and write without an await in between, like the conditional UPDATE
        if self.fail_status_writes:
            raise RuntimeError("database unavailable")

        campaign = self.campaigns.get(campaign_id)
        if not campaign or campaign.status != CampaignStatus.PENDING:
            return None
        self.status_writes.append((campaign_id, CampaignStatus.PROCESSING))
        claimed = campaign.model_copy(
            update={"status": CampaignStatus.PROCESSING, "updated_at": datetime.now(timezone.utc)}
        )
        self.campaigns[campaign_id] = claimed
        return claimed

    async def rename_campaign(
        self, campaign_id: str, user_id: str, name: str
    ) -> Optional[Campaign]:
        campaign = await self.get_campaign_for_user(campaign_id, user_id)
        if not campaign:
            return None
        updated = campaign.model_copy(update={"name": name})
        self.campaigns[campaign_id] = updated
        return updated

    async def delete_campaign(self, campaign_id: str, user_id: str) -> bool:
        campaign = await self.get_campaign_for_user(campaign_id, user_id)
        if not campaign:
            return False
        del self.campaigns[campaign_id]
        self.contacts.pop(campaign_id, None)
        return True

    async def list_contacts(self, campaign_id: str) -> List[Contact]:
        return list(reversed(self.contacts.get(campaign_id, [])))

    def add_contacts(self, campaign_id: str, contacts: List[Contact]) -> None:
        self.contacts.setdefault(campaign_id, []).extend(contacts)


# ====================
# Fake Workflow Engine
# ====================


class FakeWorkflowClient:
    """
    Stand-in for the workflow engine webhook.

    Records each payload and the campaign's stored status at the moment the
    engine was called.
    """

    def __init__(self, repository: MockCampaignRepository, configured: bool = True):
        self.repository = repository
        self.configured = configured
        self.error: Optional[BaseException] = None
        self.delay: float = 0
        self.payloads: List[Dict[str, Any]] = []
        self.status_at_call: List[CampaignStatus] = []
        self.started = asyncio.Event()

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def submit_job(self, payload: Dict[str, Any]) -> None:
        self.payloads.append(payload)
        stored = self.repository.campaigns.get(payload["campaignId"])
        if stored:
            self.status_at_call.append(stored.status)
        self.started.set()

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

    def reject(self, status_code: int = 500) -> None:
        self.error = WorkflowDispatchError(
            f"Workflow engine rejected job with HTTP {status_code}", status_code=status_code
        )


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory() -> CampaignTestDataFactory:
    """Provide test data factory"""
    return CampaignTestDataFactory()


@pytest.fixture
def mock_account_repository() -> MockAccountRepository:
    return MockAccountRepository()


@pytest.fixture
def mock_integration_repository() -> MockIntegrationRepository:
    return MockIntegrationRepository()


@pytest.fixture
def mock_repository() -> MockCampaignRepository:
    return MockCampaignRepository()


@pytest.fixture
def workflow_client(mock_repository) -> FakeWorkflowClient:
    return FakeWorkflowClient(mock_repository)


@pytest.fixture
def dispatcher(mock_repository, workflow_client) -> EnrichmentDispatcher:
    return EnrichmentDispatcher(mock_repository, workflow_client)


@pytest.fixture
def integration_service(mock_integration_repository) -> IntegrationService:
    return IntegrationService(mock_integration_repository)


@pytest.fixture
def campaign_service(mock_repository, integration_service, dispatcher) -> CampaignService:
    return CampaignService(
        repository=mock_repository,
        integration_service=integration_service,
        dispatcher=dispatcher,
        callback_api_key=CALLBACK_KEY,
    )


@pytest.fixture
def user(factory, mock_account_repository) -> User:
    """User without integrations"""
    return mock_account_repository.add_user(factory.make_user())


@pytest.fixture
def gated_user(factory, mock_account_repository, mock_integration_repository) -> User:
    """User whose integrations satisfy the default policy"""
    user = mock_account_repository.add_user(factory.make_user())
    for integration in factory.make_integrations(user.user_id, GATE_SATISFYING_SERVICES):
        mock_integration_repository.add(integration)
    return user


@pytest_asyncio.fixture
async def pending_campaign(mock_repository, factory, gated_user) -> Campaign:
    return await mock_repository.save_campaign(factory.make_campaign(user_id=gated_user.user_id))


@pytest.fixture
def callback_key() -> str:
    return CALLBACK_KEY

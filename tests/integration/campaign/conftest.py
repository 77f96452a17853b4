"""
Integration Test Fixtures for Campaign Service

Provides a connected AsyncPostgresClient with the enrichment schema applied.
Requires: PostgreSQL reachable at CAMPAIGN_TEST_DATABASE_URL.
"""

import os

import pytest
import pytest_asyncio

import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.postgres_client import AsyncPostgresClient
from tests.contracts.campaign.data_contract import CampaignTestDataFactory
from microservices.campaign_service.account_repository import AccountRepository
from microservices.campaign_service.campaign_repository import CampaignRepository
from microservices.campaign_service.factory import ensure_schema
from microservices.campaign_service.integration_repository import IntegrationRepository


@pytest_asyncio.fixture
async def db():
    client = AsyncPostgresClient(os.environ["CAMPAIGN_TEST_DATABASE_URL"], max_size=4)
    await client.connect()

    await ensure_schema(client)
    await client.execute(
        "TRUNCATE enrichment.contacts, enrichment.campaigns, "
        "enrichment.integrations, enrichment.users CASCADE"
    )

    yield client

    await client.close()


@pytest.fixture
def factory() -> CampaignTestDataFactory:
    return CampaignTestDataFactory()


@pytest.fixture
def account_repository(db) -> AccountRepository:
    return AccountRepository(db)


@pytest.fixture
def integration_repository(db) -> IntegrationRepository:
    return IntegrationRepository(db)


@pytest.fixture
def campaign_repository(db) -> CampaignRepository:
    return CampaignRepository(db)


@pytest_asyncio.fixture
async def user(account_repository, factory):
    return await account_repository.ensure_user(factory.make_external_id(), email=factory.make_email())

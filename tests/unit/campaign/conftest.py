"""
Unit Test Fixtures for Campaign Service

Pure-function fixtures. Uses CampaignTestDataFactory from the data contract.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.campaign.data_contract import CampaignTestDataFactory


@pytest.fixture
def factory() -> CampaignTestDataFactory:
    """Provide test data factory"""
    return CampaignTestDataFactory()


@pytest.fixture
def campaign_id(factory) -> str:
    return factory.make_campaign_id()

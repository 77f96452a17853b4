"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers (Top-Down TDD):
    - integration/: Repository tests against a real PostgreSQL
    - component/  : Component tests (mocked repositories and workflow engine)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys
from typing import Any, Dict, List

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


# =============================================================================
# Test Configuration
# =============================================================================

class TestConfig:
    """Centralized test configuration"""

    # Set to run integration tests against a disposable database
    DATABASE_URL = os.getenv("CAMPAIGN_TEST_DATABASE_URL")


# =============================================================================
# Assertion Helpers
# =============================================================================

class AssertionHelpers:
    """Custom assertion helpers for tests"""

    @staticmethod
    def assert_http_success(response, expected_status: int = 200):
        """Assert HTTP response is successful"""
        assert response.status_code == expected_status, \
            f"Expected {expected_status}, got {response.status_code}: {response.text}"

    @staticmethod
    def assert_has_fields(data: Dict[str, Any], fields: List[str]):
        """Assert dict has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def assertions() -> AssertionHelpers:
    """Provide assertion helpers"""
    return AssertionHelpers()


# =============================================================================
# Skip Markers Based on Environment
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers and skip logic"""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "requires_db: Needs CAMPAIGN_TEST_DATABASE_URL")


def pytest_collection_modifyitems(config, items):
    """Modify test collection based on markers and environment"""
    skip_db = pytest.mark.skip(reason="CAMPAIGN_TEST_DATABASE_URL not set")

    for item in items:
        if "requires_db" in item.keywords and not TestConfig.DATABASE_URL:
            item.add_marker(skip_db)


# =============================================================================
# Logging Configuration
# =============================================================================

@pytest.fixture(autouse=True)
def test_logger(request):
    """Log test start/end for debugging"""
    test_name = request.node.name
    print(f"\n{'='*60}")
    print(f"Starting: {test_name}")
    print(f"{'='*60}")

    yield

    print(f"\n{'='*60}")
    print(f"Finished: {test_name}")
    print(f"{'='*60}")

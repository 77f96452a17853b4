"""
Component Tests for the Campaign Service HTTP API

Drives the FastAPI app in-process with the mocked repositories wired in place
of the factory.
"""

from urllib.parse import quote

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.contracts.campaign.data_contract import CampaignStatus, ServiceName
from microservices.campaign_service import main

pytestmark = pytest.mark.component


class StubDatabase:

    def __init__(self, healthy: bool = True):
        self.healthy = healthy

    async def health_check(self) -> bool:
        return self.healthy


class StubFactory:
    """Exposes the same attributes main.py reads from CampaignServiceFactory"""

    def __init__(self, account_repository, integration_service, service, workflow_client):
        self.db = StubDatabase()
        self.account_repository = account_repository
        self.integration_service = integration_service
        self.service = service
        self.workflow_client = workflow_client


@pytest.fixture
def stub_factory(mock_account_repository, integration_service, campaign_service, workflow_client):
    return StubFactory(mock_account_repository, integration_service, campaign_service, workflow_client)


@pytest_asyncio.fixture
async def client(monkeypatch, stub_factory):
    monkeypatch.setattr(main, "factory", stub_factory)
    async with AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def headers(factory):
    return {
        "X-User-Id": factory.make_external_id(),
        "X-User-Email": "ada@example.com",
        "X-User-First-Name": "Ada",
    }


async def grant_gate(client, headers):
    """Save the integrations the default policy needs"""
    for service_name, key in ((ServiceName.APOLLO, "ap-key"), (ServiceName.LEADMAGIC, "lm-key")):
        response = await client.post(
            "/api/v1/integrations",
            json={"service_name": service_name.value, "api_key": f"{key}-{headers['X-User-Id']}"},
            headers=headers,
        )
        assert response.status_code == 200, response.text


async def create_campaign(client, headers, **body):
    body.setdefault("url", "https://app.apollo.io/#/people?q=cto")
    return await client.post("/api/v1/campaigns", json=body, headers=headers)


class TestAuthentication:
    """Every user endpoint needs a forwarded identity"""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/v1/campaigns"),
            ("POST", "/api/v1/campaigns"),
            ("GET", "/api/v1/campaigns/cmp_x"),
            ("GET", "/api/v1/integrations"),
            ("GET", "/api/v1/integrations/gate"),
        ],
    )
    async def test_missing_identity_401(self, client, method, path):
        response = await client.request(method, path, json={"url": "https://x"})

        assert response.status_code == 401

    async def test_first_request_creates_local_user(self, client, headers, mock_account_repository):
        response = await client.get("/api/v1/campaigns", headers=headers)

        assert response.status_code == 200
        user = mock_account_repository.users[headers["X-User-Id"]]
        assert user.email == "ada@example.com"
        assert user.first_name == "Ada"


class TestCreateCampaignEndpoint:

    async def test_created_and_dispatched(self, client, headers, assertions):
        await grant_gate(client, headers)

        response = await create_campaign(client, headers)

        assertions.assert_http_success(response, 201)
        data = response.json()
        assertions.assert_has_fields(data, ["campaign", "dispatched", "warning"])
        assert data["dispatched"] is True
        assert data["warning"] is None
        assert data["campaign"]["status"] == "processing"
        assert data["campaign"]["name"] == "Campaign 1"

    async def test_missing_url_422(self, client, headers):
        await grant_gate(client, headers)

        response = await client.post("/api/v1/campaigns", json={"name": "x"}, headers=headers)

        assert response.status_code == 422
        assert response.json()["field"] == "url"

    async def test_gate_denied_403(self, client, headers):
        response = await create_campaign(client, headers)

        assert response.status_code == 403
        data = response.json()
        assert data["missing_mandatory"] == ["Apollo API"]
        assert data["lead_source_satisfied"] is False
        assert "Apollo API" in data["detail"]

    async def test_engine_failure_still_201(self, client, headers, workflow_client):
        await grant_gate(client, headers)
        workflow_client.reject(502)

        response = await create_campaign(client, headers)

        assert response.status_code == 201
        data = response.json()
        assert data["dispatched"] is False
        assert data["warning"]
        assert data["campaign"]["status"] == "pending"


class TestCampaignReadEndpoints:

    async def test_detail_includes_progress_and_poll(self, client, headers, mock_repository, factory):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]
        mock_repository.add_contacts(
            created["campaign_id"],
            factory.make_contacts(created["campaign_id"], processed=1, pending=1),
        )

        response = await client.get(f"/api/v1/campaigns/{created['campaign_id']}", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["campaign"]["contacts"]) == 2
        assert data["progress"]["total"] == 2
        assert data["progress"]["processed"] == 1
        assert data["progress"]["percent"] == 50.0
        assert data["poll"] == {"should_poll": True, "interval_seconds": 3}

    async def test_other_users_campaign_404(self, client, headers, factory):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]

        other = {"X-User-Id": factory.make_external_id()}
        response = await client.get(f"/api/v1/campaigns/{created['campaign_id']}", headers=other)

        assert response.status_code == 404

    async def test_list_newest_first(self, client, headers):
        await grant_gate(client, headers)
        first = (await create_campaign(client, headers, name="First")).json()["campaign"]
        second = (await create_campaign(client, headers, name="Second")).json()["campaign"]

        response = await client.get("/api/v1/campaigns", headers=headers)

        ids = [c["campaign_id"] for c in response.json()["campaigns"]]
        assert ids == [second["campaign_id"], first["campaign_id"]]


class TestCampaignMutationEndpoints:

    async def test_rename(self, client, headers):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]

        response = await client.patch(
            f"/api/v1/campaigns/{created['campaign_id']}", json={"name": "Renamed"}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["name"] == "Renamed"

    async def test_blank_rename_422(self, client, headers):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]

        response = await client.patch(
            f"/api/v1/campaigns/{created['campaign_id']}", json={"name": "  "}, headers=headers
        )

        assert response.status_code == 422

    async def test_delete(self, client, headers):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]
        path = f"/api/v1/campaigns/{created['campaign_id']}"

        response = await client.delete(path, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert (await client.get(path, headers=headers)).status_code == 404

    async def test_resubmit_processing_campaign_409(self, client, headers):
        await grant_gate(client, headers)
        created = (await create_campaign(client, headers)).json()["campaign"]

        response = await client.post(
            f"/api/v1/campaigns/{created['campaign_id']}/dispatch", headers=headers
        )

        assert response.status_code == 409

    async def test_resubmit_pending_campaign(self, client, headers, workflow_client):
        await grant_gate(client, headers)
        workflow_client.reject(500)
        created = (await create_campaign(client, headers)).json()["campaign"]
        workflow_client.error = None

        response = await client.post(
            f"/api/v1/campaigns/{created['campaign_id']}/dispatch", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["dispatched"] is True
        assert response.json()["campaign"]["status"] == "processing"


class TestEngineCallbackEndpoint:

    async def _campaign_id(self, client, headers) -> str:
        await grant_gate(client, headers)
        return (await create_campaign(client, headers)).json()["campaign"]["campaign_id"]

    async def test_x_api_key(self, client, headers, callback_key):
        campaign_id = await self._campaign_id(client, headers)

        response = await client.post(
            f"/api/v1/campaigns/{campaign_id}/status",
            json={"status": "completed"},
            headers={"x-api-key": callback_key},
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == CampaignStatus.COMPLETED.value

    async def test_bearer_key(self, client, headers, callback_key):
        campaign_id = await self._campaign_id(client, headers)

        response = await client.post(
            f"/api/v1/campaigns/{campaign_id}/status",
            json={"status": "failed"},
            headers={"Authorization": f"Bearer {callback_key}"},
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == "failed"

    @pytest.mark.parametrize("auth_headers", [{}, {"x-api-key": "wrong"}, {"Authorization": "Bearer wrong"}])
    async def test_bad_key_401(self, client, headers, auth_headers):
        campaign_id = await self._campaign_id(client, headers)

        response = await client.post(
            f"/api/v1/campaigns/{campaign_id}/status",
            json={"status": "completed"},
            headers=auth_headers,
        )

        assert response.status_code == 401

    async def test_unknown_status_422(self, client, headers, callback_key):
        campaign_id = await self._campaign_id(client, headers)

        response = await client.post(
            f"/api/v1/campaigns/{campaign_id}/status",
            json={"status": "archived"},
            headers={"x-api-key": callback_key},
        )

        assert response.status_code == 422

    async def test_missing_status_keeps_status(self, client, headers, callback_key):
        campaign_id = await self._campaign_id(client, headers)
        before = (await client.get(f"/api/v1/campaigns/{campaign_id}", headers=headers)).json()

        response = await client.post(
            f"/api/v1/campaigns/{campaign_id}/status",
            json={},
            headers={"x-api-key": callback_key},
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == before["campaign"]["status"]

    async def test_unknown_campaign_404(self, client, callback_key):
        response = await client.post(
            "/api/v1/campaigns/cmp_missing/status",
            json={"status": "completed"},
            headers={"x-api-key": callback_key},
        )

        assert response.status_code == 404


class TestIntegrationEndpoints:

    async def test_list_masks_keys(self, client, headers):
        await client.post(
            "/api/v1/integrations",
            json={"service_name": "Apollo API", "api_key": "secret-apollo-9876"},
            headers=headers,
        )

        response = await client.get("/api/v1/integrations", headers=headers)

        assert response.status_code == 200
        items = response.json()["integrations"]
        assert items[0]["service_name"] == "Apollo API"
        assert items[0]["api_key_hint"] == "****9876"
        assert "secret-apollo-9876" not in response.text

    async def test_get_returns_key(self, client, headers):
        await client.post(
            "/api/v1/integrations",
            json={"service_name": "Apollo API", "api_key": "secret-apollo-9876"},
            headers=headers,
        )

        response = await client.get(f"/api/v1/integrations/{quote('Apollo API')}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "service_name": "Apollo API",
            "api_key": "secret-apollo-9876",
            "is_active": True,
        }

    async def test_get_missing_404(self, client, headers):
        response = await client.get("/api/v1/integrations/IcyPeas", headers=headers)

        assert response.status_code == 404

    async def test_unknown_service_422(self, client, headers):
        response = await client.post(
            "/api/v1/integrations",
            json={"service_name": "Hunter", "api_key": "k"},
            headers=headers,
        )

        assert response.status_code == 422

    async def test_blank_key_422(self, client, headers):
        response = await client.post(
            "/api/v1/integrations",
            json={"service_name": "LeadMagic", "api_key": "   "},
            headers=headers,
        )

        assert response.status_code == 422

    async def test_key_in_use_by_other_account_409(self, client, headers, factory):
        body = {"service_name": "LeadMagic", "api_key": "shared"}
        assert (await client.post("/api/v1/integrations", json=body, headers=headers)).status_code == 200

        other = {"X-User-Id": factory.make_external_id()}
        response = await client.post("/api/v1/integrations", json=body, headers=other)

        assert response.status_code == 409

    async def test_delete(self, client, headers):
        await client.post(
            "/api/v1/integrations",
            json={"service_name": "IcyPeas", "api_key": "ip"},
            headers=headers,
        )

        response = await client.delete("/api/v1/integrations/IcyPeas", headers=headers)
        assert response.status_code == 200

        response = await client.delete("/api/v1/integrations/IcyPeas", headers=headers)
        assert response.status_code == 404

    async def test_gate_status(self, client, headers):
        response = await client.get("/api/v1/integrations/gate", headers=headers)
        data = response.json()
        assert data["allowed"] is False
        assert data["missing_mandatory"] == ["Apollo API"]
        assert data["lead_source_satisfied"] is False
        assert "lead source" in data["message"]

        await grant_gate(client, headers)

        response = await client.get("/api/v1/integrations/gate", headers=headers)
        assert response.json()["allowed"] is True
        assert response.json()["message"] is None


class TestHealthEndpoints:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "campaign_service"
        assert data["dependencies"] == {"postgres": "healthy", "workflow_engine": "configured"}

    async def test_ready(self, client):
        response = await client.get("/health/ready")

        assert response.json()["ready"] is True

    async def test_not_ready_when_database_down(self, client, stub_factory):
        stub_factory.db.healthy = False

        response = await client.get("/health/ready")

        assert response.json()["ready"] is False

    async def test_live(self, client):
        response = await client.get("/health/live")

        assert response.json()["alive"] is True


class TestUnhandledErrors:

    async def test_unexpected_error_500(self, monkeypatch, stub_factory, headers, mock_repository):
        async def broken(user_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(main, "factory", stub_factory)
        monkeypatch.setattr(mock_repository, "list_campaigns", broken)

        transport = ASGITransport(app=main.app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/v1/campaigns", headers=headers)

        assert response.status_code == 500
        assert response.json()["type"] == "RuntimeError"
        assert "connection reset" not in response.text

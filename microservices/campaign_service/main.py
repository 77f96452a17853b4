"""
Campaign Service Main Application

FastAPI application for lead enrichment campaigns and integration credentials.
Port: 8251
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from core.auth_dependencies import AuthContext, extract_api_key, require_user
from core.config import get_settings

from . import __version__
from .campaign_service import CampaignService
from .dispatcher import DispatchResult
from .factory import CampaignServiceFactory
from .integration_service import IntegrationService
from .models import (
    CampaignCreateRequest,
    CampaignCreateResponse,
    CampaignDetailResponse,
    CampaignListResponse,
    CampaignRenameRequest,
    CampaignResponse,
    CampaignStatusUpdateRequest,
    GateStatusResponse,
    HealthResponse,
    IntegrationKeyResponse,
    IntegrationListResponse,
    IntegrationResponse,
    IntegrationSaveRequest,
    IntegrationSummary,
    LivenessResponse,
    ReadinessResponse,
    ServiceName,
    SuccessResponse,
    User,
)
from .protocols import (
    CallbackAuthenticationError,
    CampaignNotFoundError,
    CampaignValidationError,
    CredentialGateError,
    IntegrationConflictError,
    IntegrationNotFoundError,
    IntegrationValidationError,
    InvalidCampaignStateError,
    SubscriptionRequiredError,
)

settings = get_settings()

# Configure logging
settings.logging.apply()
logger = logging.getLogger(__name__)

# Service configuration
SERVICE_NAME = "campaign_service"
SERVICE_PORT = settings.port
SERVICE_VERSION = __version__

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[CampaignServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    factory = CampaignServiceFactory(settings)
    await factory.initialize()

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Campaign Service",
    description="Lead enrichment campaigns: credential-gated creation, workflow dispatch and progress polling",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(CampaignNotFoundError)
@app.exception_handler(IntegrationNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(CampaignValidationError)
@app.exception_handler(IntegrationValidationError)
async def validation_error_handler(request: Request, exc: Exception):
    content = {"detail": str(exc)}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
    )


@app.exception_handler(CredentialGateError)
async def credential_gate_handler(request: Request, exc: CredentialGateError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": str(exc),
            "missing_mandatory": exc.missing_mandatory,
            "lead_source_satisfied": exc.lead_source_satisfied,
        },
    )


@app.exception_handler(SubscriptionRequiredError)
async def subscription_required_handler(request: Request, exc: SubscriptionRequiredError):
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"detail": str(exc)},
    )


@app.exception_handler(InvalidCampaignStateError)
@app.exception_handler(IntegrationConflictError)
async def conflict_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(CallbackAuthenticationError)
async def callback_auth_handler(request: Request, exc: CallbackAuthenticationError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "type": type(exc).__name__,
        },
    )


# ====================
# Dependencies
# ====================


def get_components() -> CampaignServiceFactory:
    """Get initialized factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory


def get_service(components=Depends(get_components)) -> CampaignService:
    """Get campaign service from factory"""
    return components.service


def get_integration_service(components=Depends(get_components)) -> IntegrationService:
    """Get integration service from factory"""
    return components.integration_service


async def get_current_user(
    auth: AuthContext = Depends(require_user),
    components=Depends(get_components),
) -> User:
    """Resolve the forwarded identity to a local user, creating it on first sight"""
    return await components.account_repository.ensure_user(
        auth.external_id,
        email=auth.email,
        first_name=auth.first_name,
    )


def _dispatch_response(result: DispatchResult) -> CampaignCreateResponse:
    return CampaignCreateResponse(
        campaign=result.campaign,
        dispatched=result.dispatched,
        warning=result.warning,
    )


# ====================
# Health Endpoints
# ====================


@app.get("/api/v1/campaigns/health", include_in_schema=False)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.db.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception as e:
            logger.warning(f"Postgres health check failed: {e}")
            dependencies["postgres"] = "unhealthy"

        dependencies["workflow_engine"] = (
            "configured" if factory.workflow_client.is_configured else "not_configured"
        )

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_healthy = await factory.db.health_check()
            checks["database"] = db_healthy
            details["database"] = "Connected" if db_healthy else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        # Optional: campaigns are still saved as pending without it
        configured = factory.workflow_client.is_configured
        checks["workflow_engine"] = True
        details["workflow_engine"] = "Configured" if configured else "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])

    return ReadinessResponse(
        ready=ready,
        checks=checks,
        details=details,
    )


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(
        alive=True,
        uptime_seconds=time.time() - startup_time,
    )


# ====================
# Campaign Endpoints
# ====================


@app.post(
    "/api/v1/campaigns",
    response_model=CampaignCreateResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def create_campaign(
    request: CampaignCreateRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    """
    Create a campaign and dispatch it to the workflow engine.

    Always 201 once the campaign is saved; `dispatched` and `warning` report
    whether the engine accepted the job.
    """
    result = await service.submit_campaign(user, request.url, request.name)
    return _dispatch_response(result)


@app.get("/api/v1/campaigns", response_model=CampaignListResponse, tags=["Campaigns"])
async def list_campaigns(
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    """List the caller's campaigns, newest first"""
    campaigns = await service.list_campaigns(user.user_id)
    return CampaignListResponse(campaigns=campaigns)


@app.get(
    "/api/v1/campaigns/{campaign_id}",
    response_model=CampaignDetailResponse,
    tags=["Campaigns"],
)
async def get_campaign(
    campaign_id: str,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    """Campaign with contacts, derived progress and the polling hint"""
    return await service.get_campaign_detail(campaign_id, user.user_id)


@app.patch(
    "/api/v1/campaigns/{campaign_id}",
    response_model=CampaignResponse,
    tags=["Campaigns"],
)
async def rename_campaign(
    campaign_id: str,
    request: CampaignRenameRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    campaign = await service.rename_campaign(campaign_id, user.user_id, request.name)
    return CampaignResponse(campaign=campaign)


@app.delete(
    "/api/v1/campaigns/{campaign_id}",
    response_model=SuccessResponse,
    tags=["Campaigns"],
)
async def delete_campaign(
    campaign_id: str,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    await service.delete_campaign(campaign_id, user.user_id)
    return SuccessResponse()


@app.post(
    "/api/v1/campaigns/{campaign_id}/dispatch",
    response_model=CampaignCreateResponse,
    tags=["Campaigns"],
)
async def resubmit_campaign(
    campaign_id: str,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_service),
):
    """Dispatch a pending campaign again"""
    result = await service.resubmit_campaign(campaign_id, user)
    return _dispatch_response(result)


@app.post(
    "/api/v1/campaigns/{campaign_id}/status",
    response_model=CampaignResponse,
    tags=["Workflow Engine"],
)
async def update_campaign_status(
    campaign_id: str,
    request: CampaignStatusUpdateRequest,
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
    authorization: Optional[str] = Header(None),
    service: CampaignService = Depends(get_service),
):
    """
    Status callback from the workflow engine.

    Authenticated with the shared key (x-api-key or Bearer), not a user
    identity. Any status may be written, terminal ones included.
    """
    presented = extract_api_key(x_api_key, authorization)
    campaign = await service.handle_engine_callback(campaign_id, request.status, presented)
    return CampaignResponse(campaign=campaign)


# ====================
# Integration Endpoints
# ====================


@app.get("/api/v1/integrations", response_model=IntegrationListResponse, tags=["Integrations"])
async def list_integrations(
    user: User = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """List the caller's integrations with keys masked"""
    items = await integrations.list_integrations(user.user_id)
    return IntegrationListResponse(
        integrations=[IntegrationSummary.from_integration(i) for i in items]
    )


@app.get("/api/v1/integrations/gate", response_model=GateStatusResponse, tags=["Integrations"])
async def get_gate_status(
    user: User = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Whether the caller's integrations currently permit creating a campaign"""
    decision = await integrations.evaluate_gate(user.user_id)
    return GateStatusResponse(
        allowed=decision.allowed,
        missing_mandatory=sorted(s.value for s in decision.missing_mandatory),
        lead_source_satisfied=decision.lead_source_satisfied,
        message=decision.describe(),
    )


@app.get(
    "/api/v1/integrations/{service_name}",
    response_model=IntegrationKeyResponse,
    tags=["Integrations"],
)
async def get_integration(
    service_name: ServiceName,
    user: User = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    integration = await integrations.get_integration(user.user_id, service_name)
    return IntegrationKeyResponse(
        service_name=integration.service_name,
        api_key=integration.api_key,
        is_active=integration.is_active,
    )


@app.post("/api/v1/integrations", response_model=IntegrationResponse, tags=["Integrations"])
async def save_integration(
    request: IntegrationSaveRequest,
    user: User = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Create or replace the caller's key for a service"""
    integration = await integrations.save_integration(
        user.user_id, request.service_name, request.api_key
    )
    return IntegrationResponse(integration=IntegrationSummary.from_integration(integration))


@app.delete(
    "/api/v1/integrations/{service_name}",
    response_model=SuccessResponse,
    tags=["Integrations"],
)
async def delete_integration(
    service_name: ServiceName,
    user: User = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    await integrations.delete_integration(user.user_id, service_name)
    return SuccessResponse()


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.campaign_service.main:app",
        host=settings.host,
        port=SERVICE_PORT,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()

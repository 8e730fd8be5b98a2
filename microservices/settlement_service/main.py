"""
Settlement Service Main Application

FastAPI application for confidential group-purchase settlement.
Port: 8250
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.logger import setup_service_logger

from .factory import SettlementServiceFactory
from .models import (
    AggregateStatsResponse,
    AuditRecord,
    Campaign,
    CampaignCreatedResponse,
    CampaignCreateRequest,
    CampaignOrdersResponse,
    DisclosureCallbackRequest,
    DisclosureCompletedResponse,
    DisclosureRequestedResponse,
    DisclosureStatusResponse,
    DisclosureSweepResponse,
    DisclosureTimeoutResponse,
    HasOrderedResponse,
    HealthResponse,
    Order,
    OrderCancelledResponse,
    OrderPlacedResponse,
    OrderPlaceRequest,
    PendingRefundResponse,
    ProcessingStartedResponse,
    RefundClaimResponse,
    TargetStatusResponse,
)
from .routes_registry import SERVICE_METADATA, get_routes_metadata
from .protocols import (
    AlreadyRequestedError,
    CampaignNotEligibleError,
    CapacityExceededError,
    DuplicateOrderError,
    ExpiredError,
    InsufficientFundsError,
    InvalidParameterError,
    InvalidStateError,
    NotFoundError,
    NothingToClaimError,
    PaymentMismatchError,
    RefundTransferFailedError,
    SettlementServiceError,
    UnauthorizedError,
    UnknownRequestError,
)
from .settlement_service import SettlementService

settings = get_settings()
logger = setup_service_logger(settings.service_name, settings.logging)

# Service configuration
SERVICE_NAME = settings.service_name
SERVICE_PORT = settings.service_port
SERVICE_VERSION = SERVICE_METADATA["version"]

# Global factory instance
factory: Optional[SettlementServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")
    logger.info(f"Serving {get_routes_metadata()['route_count']} routes under {get_routes_metadata()['base_path']}")

    factory = SettlementServiceFactory(settings)
    await factory.initialize()

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()


# Create FastAPI application
app = FastAPI(
    title="Settlement Service",
    description="Confidential group-purchase settlement: campaigns, orders, disclosure and refunds",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================

# Most specific class wins; lookup walks the exception's MRO
ERROR_STATUS = {
    InvalidParameterError: status.HTTP_400_BAD_REQUEST,
    PaymentMismatchError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnknownRequestError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    AlreadyRequestedError: status.HTTP_409_CONFLICT,
    CampaignNotEligibleError: status.HTTP_409_CONFLICT,
    DuplicateOrderError: status.HTTP_409_CONFLICT,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    NothingToClaimError: status.HTTP_409_CONFLICT,
    ExpiredError: status.HTTP_410_GONE,
    InsufficientFundsError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RefundTransferFailedError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: SettlementServiceError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(SettlementServiceError)
async def settlement_error_handler(request: Request, exc: SettlementServiceError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_code": exc.error_code},
    )


# ====================
# Dependencies
# ====================


def get_service() -> SettlementService:
    """Get settlement service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.service


def get_actor(x_actor_id: Optional[str] = Header(None)) -> str:
    """Acting identity from the X-Actor-Id header"""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header required",
        )
    return x_actor_id


# ====================
# Health Endpoints
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(service: SettlementService = Depends(get_service)):
    """Health check endpoint"""
    healthy = await service.health_check()
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        ledger_backend=settings.ledger_backend,
    )


# ====================
# Campaign Endpoints
# ====================


@app.post(
    "/api/v1/settlement/campaigns",
    response_model=CampaignCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def create_campaign(
    request: CampaignCreateRequest,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Create a campaign organized by the caller"""
    campaign_id = await service.create_campaign(actor, request)
    return CampaignCreatedResponse(campaign_id=campaign_id)


@app.get("/api/v1/settlement/campaigns/{campaign_id}", response_model=Campaign, tags=["Campaigns"])
async def get_campaign(campaign_id: int, service: SettlementService = Depends(get_service)):
    return await service.get_campaign_info(campaign_id)


@app.post(
    "/api/v1/settlement/campaigns/{campaign_id}/deactivate",
    response_model=Campaign,
    tags=["Campaigns"],
)
async def deactivate_campaign(
    campaign_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Organizer only; in-flight orders are unaffected"""
    await service.deactivate_campaign(actor, campaign_id)
    return await service.get_campaign_info(campaign_id)


@app.get(
    "/api/v1/settlement/campaigns/{campaign_id}/target",
    response_model=TargetStatusResponse,
    tags=["Campaigns"],
)
async def check_target(campaign_id: int, service: SettlementService = Depends(get_service)):
    reached = await service.check_target_reached(campaign_id)
    return TargetStatusResponse(campaign_id=campaign_id, target_reached=reached)


@app.post(
    "/api/v1/settlement/campaigns/{campaign_id}/processing",
    response_model=ProcessingStartedResponse,
    tags=["Campaigns"],
)
async def begin_processing(
    campaign_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    transitioned = await service.begin_processing(actor, campaign_id)
    return ProcessingStartedResponse(campaign_id=campaign_id, orders_transitioned=transitioned)


@app.get(
    "/api/v1/settlement/campaigns/{campaign_id}/stats",
    response_model=AggregateStatsResponse,
    tags=["Campaigns"],
)
async def get_aggregate_stats(campaign_id: int, service: SettlementService = Depends(get_service)):
    return await service.get_aggregate_stats(campaign_id)


@app.get(
    "/api/v1/settlement/campaigns/{campaign_id}/orders",
    response_model=CampaignOrdersResponse,
    tags=["Campaigns"],
)
async def list_campaign_orders(
    campaign_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Organizer only"""
    order_ids = await service.list_campaign_orders(actor, campaign_id)
    return CampaignOrdersResponse(campaign_id=campaign_id, order_ids=order_ids)


@app.get(
    "/api/v1/settlement/campaigns/{campaign_id}/participants/{participant}",
    response_model=HasOrderedResponse,
    tags=["Campaigns"],
)
async def has_ordered(
    campaign_id: int,
    participant: str,
    service: SettlementService = Depends(get_service),
):
    ordered = await service.has_ordered(campaign_id, participant)
    return HasOrderedResponse(campaign_id=campaign_id, participant=participant, has_ordered=ordered)


# ====================
# Order Endpoints
# ====================


@app.post(
    "/api/v1/settlement/orders",
    response_model=OrderPlacedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Orders"],
)
async def place_order(
    request: OrderPlaceRequest,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    order_id = await service.place_order(actor, request.campaign_id, request.quantity, request.paid_amount)
    return OrderPlacedResponse(order_id=order_id)


@app.get("/api/v1/settlement/orders/{order_id}", response_model=Order, tags=["Orders"])
async def get_order(
    order_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Order participant or administrator only"""
    return await service.get_order_info(actor, order_id)


@app.post(
    "/api/v1/settlement/orders/{order_id}/cancel",
    response_model=OrderCancelledResponse,
    tags=["Orders"],
)
async def cancel_order(
    order_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    refund_amount = await service.cancel_order(actor, order_id)
    return OrderCancelledResponse(order_id=order_id, refund_amount=refund_amount)


# ====================
# Disclosure Endpoints
# ====================


@app.post(
    "/api/v1/settlement/orders/{order_id}/disclosure",
    response_model=DisclosureRequestedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Disclosure"],
)
async def request_disclosure(
    order_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    request_id = await service.request_disclosure(actor, order_id)
    order = await service.get_order_info(actor, order_id)
    return DisclosureRequestedResponse(
        request_id=request_id,
        disclosure_deadline=order.disclosure_deadline,
    )


@app.get(
    "/api/v1/settlement/orders/{order_id}/disclosure",
    response_model=DisclosureStatusResponse,
    tags=["Disclosure"],
)
async def get_disclosure_status(
    order_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    return await service.get_disclosure_status(actor, order_id)


@app.post(
    "/api/v1/settlement/disclosures/callback",
    response_model=DisclosureCompletedResponse,
    tags=["Disclosure"],
)
async def disclosure_callback(
    request: DisclosureCallbackRequest,
    service: SettlementService = Depends(get_service),
):
    """Oracle callback"""
    order_id = await service.on_disclosure_callback(
        request.request_id,
        request.revealed_quantity,
        request.revealed_amount,
        request.proof,
    )
    return DisclosureCompletedResponse(request_id=request.request_id, order_id=order_id)


@app.post(
    "/api/v1/settlement/orders/{order_id}/disclosure/timeout",
    response_model=DisclosureTimeoutResponse,
    tags=["Disclosure"],
)
async def disclosure_timeout(
    order_id: int,
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Administrator only"""
    refund_amount = await service.on_disclosure_timeout(actor, order_id)
    return DisclosureTimeoutResponse(order_id=order_id, refund_amount=refund_amount)


@app.post(
    "/api/v1/settlement/disclosures/sweep",
    response_model=DisclosureSweepResponse,
    tags=["Disclosure"],
)
async def sweep_expired_disclosures(
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Administrator only"""
    refunded = await service.sweep_expired_disclosures(actor)
    return DisclosureSweepResponse(refunded_order_ids=refunded)


# ====================
# Refund Endpoints
# ====================


@app.get(
    "/api/v1/settlement/refunds/{participant}",
    response_model=PendingRefundResponse,
    tags=["Refunds"],
)
async def get_pending_refund(participant: str, service: SettlementService = Depends(get_service)):
    amount = await service.get_pending_refund(participant)
    return PendingRefundResponse(participant=participant, amount=amount)


@app.post(
    "/api/v1/settlement/refunds/claim",
    response_model=RefundClaimResponse,
    tags=["Refunds"],
)
async def claim_pending_refund(
    service: SettlementService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    amount = await service.claim_pending_refund(actor)
    return RefundClaimResponse(participant=actor, amount=amount)


# ====================
# Audit Endpoints
# ====================


@app.get("/api/v1/settlement/audit", response_model=List[AuditRecord], tags=["Audit"])
async def get_audit_trail(
    entity_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    service: SettlementService = Depends(get_service),
):
    return service.get_audit_trail(entity_id=entity_id, action=action, limit=limit)


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.settlement_service.main:app",
        host=settings.service_host,
        port=SERVICE_PORT,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

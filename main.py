import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from api.schemas import (
    # Rates
    CreateRatePlanRequest, UpdateRatePlanRequest, RatePlanResponse, DateRateResponse,
    QuoteRequest, QuoteResponse, NightlyRateResponse,
    # Offers
    CreateSpecialOfferRequest, UpdateSpecialOfferRequest, SpecialOfferResponse,
    DiscountRequest, DiscountResponse,
    # Offline queue and channel buffer
    QueueReservationRequest, OfflineReservationResponse,
    ChannelReservationRequest, ChannelReservationResponse,
    # Sync
    ResolveConflictRequest, SyncConflictResponse, SyncResultResponse, SyncStatusResponse,
    SyncLogEntryResponse, CountResponse
)
from api.dependencies import (
    ServiceContainer, build_container, get_container, get_current_operator,
    get_rate_plan_service, get_offer_service, get_sync_service
)
from application.services import (
    RatePlanService, SpecialOfferService, SyncService, SyncResult,
    NotFoundError, ConflictAlreadyResolvedError
)
from domain.auth import Operator
from domain.entities import RatePlan, SpecialOffer, OfflineReservation, ChannelReservation, SyncConflict
from domain.enums import (
    RoomCategory, SeasonType, OfferType, SyncStatus, ConflictResolution, ChannelSource
)
from domain.repositories import KeyValueStore, ChannelTransport
from infrastructure.config import Settings, SettingsProvider
from infrastructure.logging_config import configure_logging

logger = logging.getLogger(__name__)

settings_provider = SettingsProvider()

router = APIRouter()

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@router.get("/api/health", tags=["Health"])
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Health check endpoint"""
    return {"status": "healthy", "message": f"{container.settings.app_name} is running"}

@router.get("/api/enums/season-type", tags=["Enum Reference"])
async def get_season_types():
    """Get all SeasonType values with their labels"""
    return {"values": {item.value: item.label for item in SeasonType}}

@router.get("/api/enums/room-category", tags=["Enum Reference"])
async def get_room_categories():
    """Get all RoomCategory values"""
    return {"values": [item.value for item in RoomCategory]}

@router.get("/api/enums/offer-type", tags=["Enum Reference"])
async def get_offer_types():
    """Get all OfferType values"""
    return {
        "values": [item.value for item in OfferType],
        "evaluated": [OfferType.EARLY_BIRD.value, OfferType.LAST_MINUTE.value, OfferType.LONG_STAY.value]
    }

@router.get("/api/enums/sync-status", tags=["Enum Reference"])
async def get_sync_statuses():
    """Get all SyncStatus values"""
    return {"values": [item.value for item in SyncStatus]}

@router.get("/api/enums/conflict-resolution", tags=["Enum Reference"])
async def get_conflict_resolutions():
    """Get all ConflictResolution values"""
    return {"values": [item.value for item in ConflictResolution]}

@router.get("/api/enums/channel-source", tags=["Enum Reference"])
async def get_channel_sources():
    """Get all ChannelSource values"""
    return {"values": [item.value for item in ChannelSource]}

# ============================================================================
# RATE PLAN ENDPOINTS
# ============================================================================

@router.get("/api/rate-plans", response_model=List[RatePlanResponse], tags=["Rates"])
async def get_rate_plans(
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get all rate plans, highest priority first"""
    return [_rate_plan_to_response(p) for p in await service.get_rate_plans()]

@router.post("/api/rate-plans", response_model=RatePlanResponse, status_code=201, tags=["Rates"])
async def create_rate_plan(
    request: CreateRatePlanRequest,
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Create a rate plan"""
    try:
        plan = await service.create_rate_plan(**request.model_dump())
        return _rate_plan_to_response(plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/api/rate-plans/{plan_id}", response_model=RatePlanResponse, tags=["Rates"])
async def get_rate_plan(
    plan_id: str,
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get rate plan by ID"""
    return _rate_plan_to_response(await service.get_rate_plan(plan_id))

@router.put("/api/rate-plans/{plan_id}", response_model=RatePlanResponse, tags=["Rates"])
async def update_rate_plan(
    plan_id: str,
    request: UpdateRatePlanRequest,
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Update rate plan fields"""
    try:
        plan = await service.update_rate_plan(plan_id, request.model_dump(exclude_unset=True))
        return _rate_plan_to_response(plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/api/rate-plans/{plan_id}", status_code=204, tags=["Rates"])
async def delete_rate_plan(
    plan_id: str,
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Delete rate plan"""
    await service.delete_rate_plan(plan_id)

@router.get("/api/rates/{room_category}/{day}", response_model=DateRateResponse, tags=["Rates"])
async def get_rate_for_date(
    room_category: RoomCategory,
    day: date,
    service: RatePlanService = Depends(get_rate_plan_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get the nightly rate and season for a date"""
    resolver = await service.resolver()
    season = resolver.get_season_for_date(day)
    return DateRateResponse(
        day=day,
        room_category=room_category.value,
        rate=resolver.get_rate_for_date(day, room_category),
        season_type=season.season_type.value if isinstance(season.season_type, SeasonType) else season.season_type,
        plan_id=season.plan.id if season.plan else None,
        plan_name=season.plan.name if season.plan else None
    )

@router.post("/api/rates/quote", response_model=QuoteResponse, tags=["Rates"])
async def quote_stay(
    request: QuoteRequest,
    container: ServiceContainer = Depends(get_container),
    current_operator: Operator = Depends(get_current_operator)
):
    """Price a stay night by night and apply the best matching offer"""
    resolver = await container.rate_plan_service.resolver()
    quote = resolver.quote_stay(request.check_in, request.check_out, request.room_category, request.booking_date)
    min_stay = resolver.check_min_stay(request.check_in, request.check_out)
    return QuoteResponse(
        nights=quote.nights,
        total_amount=quote.total_amount,
        avg_rate=quote.avg_rate,
        breakdown=[
            NightlyRateResponse(night=n.night, rate=n.rate, season=n.season)
            for n in quote.breakdown
        ],
        offer_id=quote.offer.id if quote.offer else None,
        offer_name=quote.offer.name if quote.offer else None,
        discount_percent=quote.discount_percent,
        discount_amount=quote.discount_amount,
        net_amount=quote.net_amount,
        currency=container.settings.currency,
        min_stay_required=min_stay.required_nights,
        min_stay_satisfied=min_stay.satisfied
    )

# ============================================================================
# SPECIAL OFFER ENDPOINTS
# ============================================================================

@router.get("/api/offers", response_model=List[SpecialOfferResponse], tags=["Offers"])
async def get_special_offers(
    service: SpecialOfferService = Depends(get_offer_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get all special offers"""
    return [_offer_to_response(o) for o in await service.get_special_offers()]

@router.post("/api/offers", response_model=SpecialOfferResponse, status_code=201, tags=["Offers"])
async def create_special_offer(
    request: CreateSpecialOfferRequest,
    service: SpecialOfferService = Depends(get_offer_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Create a special offer"""
    try:
        offer = await service.create_special_offer(
            name=request.name,
            type=request.type,
            discount_percent=request.discount_percent,
            start_date=request.start_date,
            end_date=request.end_date,
            conditions=request.conditions,
            is_active=request.is_active
        )
        return _offer_to_response(offer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/api/offers/{offer_id}", response_model=SpecialOfferResponse, tags=["Offers"])
async def update_special_offer(
    offer_id: str,
    request: UpdateSpecialOfferRequest,
    service: SpecialOfferService = Depends(get_offer_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Update special offer fields"""
    try:
        offer = await service.update_special_offer(offer_id, request.model_dump(exclude_unset=True))
        return _offer_to_response(offer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/api/offers/{offer_id}", status_code=204, tags=["Offers"])
async def delete_special_offer(
    offer_id: str,
    service: SpecialOfferService = Depends(get_offer_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Delete special offer"""
    await service.delete_special_offer(offer_id)

@router.post("/api/offers/discount", response_model=DiscountResponse, tags=["Offers"])
async def calculate_discount(
    request: DiscountRequest,
    service: SpecialOfferService = Depends(get_offer_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Find the discount that applies to a booking"""
    result = await service.calculate_discount(request.check_in, request.nights, request.booking_date)
    return DiscountResponse(
        offer=_offer_to_response(result.offer) if result.offer else None,
        discount_percent=result.discount_percent
    )

# ============================================================================
# OFFLINE QUEUE ENDPOINTS
# ============================================================================

@router.get("/api/offline/queue", response_model=List[OfflineReservationResponse], tags=["Offline Sync"])
async def get_offline_queue(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get all queued offline reservations"""
    return [_offline_to_response(r) for r in await service.get_offline_queue()]

@router.post("/api/offline/queue", response_model=OfflineReservationResponse, status_code=201, tags=["Offline Sync"])
async def add_to_offline_queue(
    request: QueueReservationRequest,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Queue a reservation captured while the channel manager is offline"""
    try:
        reservation = await service.add_to_offline_queue(**request.model_dump())
        return _offline_to_response(reservation)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/api/offline/queue/{reservation_id}", status_code=204, tags=["Offline Sync"])
async def remove_from_queue(
    reservation_id: str,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Remove a reservation from the queue"""
    await service.remove_from_queue(reservation_id)

@router.post("/api/offline/queue/clear-synced", response_model=CountResponse, tags=["Offline Sync"])
async def clear_synced_from_queue(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Drop synced reservations from the queue"""
    return CountResponse(count=await service.clear_synced_from_queue())

@router.post("/api/offline/queue/retry", response_model=CountResponse, tags=["Offline Sync"])
async def retry_failed(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Requeue reservations whose last sync failed"""
    return CountResponse(count=await service.retry_failed())

# ============================================================================
# CHANNEL BUFFER ENDPOINTS
# ============================================================================

@router.get("/api/channel/reservations", response_model=List[ChannelReservationResponse], tags=["Channel"])
async def get_channel_buffer(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get reservations reported by distribution channels"""
    return [_channel_to_response(r) for r in await service.get_channel_buffer()]

@router.post("/api/channel/reservations", response_model=ChannelReservationResponse, status_code=201, tags=["Channel"])
async def receive_channel_reservation(
    request: ChannelReservationRequest,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Inbound webhook for channel-originated reservations"""
    try:
        reservation = await service.add_channel_reservation(
            channel_confirmation=request.channel_confirmation,
            channel=request.channel,
            guest_name=request.guest_name,
            room_type=request.room_type,
            check_in=request.check_in,
            check_out=request.check_out,
            guest_email=request.guest_email,
            adults=request.adults,
            total_amount=request.total_amount,
            reservation_id=request.id
        )
        return _channel_to_response(reservation)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/api/channel/reservations/{reservation_id}", status_code=204, tags=["Channel"])
async def remove_channel_reservation(
    reservation_id: str,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Remove a channel reservation from the buffer"""
    await service.remove_channel_reservation(reservation_id)

# ============================================================================
# SYNC ENDPOINTS
# ============================================================================

@router.post("/api/sync", response_model=SyncResultResponse, tags=["Offline Sync"])
async def sync_reservations(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Run a sync pass over pending queue items"""
    return _sync_result_to_response(await service.sync_reservations())

@router.get("/api/sync/status", response_model=SyncStatusResponse, tags=["Offline Sync"])
async def get_sync_status(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Queue counters and the outcome of the last pass"""
    summary = await service.get_status()
    last = summary.last_result
    return SyncStatusResponse(
        pending_count=summary.pending_count,
        conflict_count=summary.conflict_count,
        is_syncing=summary.is_syncing,
        last_synced=last.synced if last else None,
        last_conflicts=len(last.conflicts) if last else None,
        last_errors=last.errors if last else None,
        last_finished_at=last.finished_at if last else None
    )

@router.get("/api/sync/conflicts", response_model=List[SyncConflictResponse], tags=["Offline Sync"])
async def get_conflicts(
    unresolved: bool = False,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get recorded conflicts, optionally only the unresolved ones"""
    conflicts = await service.get_unresolved_conflicts() if unresolved else await service.get_conflicts()
    return [_conflict_to_response(c) for c in conflicts]

@router.post("/api/sync/conflicts/{conflict_id}/resolve", response_model=SyncConflictResponse, tags=["Offline Sync"])
async def resolve_conflict(
    conflict_id: str,
    request: ResolveConflictRequest,
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Resolve a conflict"""
    conflict = await service.resolve_conflict(conflict_id, request.resolution)
    logger.info("Conflict %s resolved by %s", conflict_id, current_operator.username)
    return _conflict_to_response(conflict)

@router.get("/api/sync/log", response_model=List[SyncLogEntryResponse], tags=["Offline Sync"])
async def get_sync_log(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Get the sync log, newest first"""
    return [SyncLogEntryResponse(**entry.model_dump()) for entry in await service.get_sync_log()]

@router.delete("/api/sync/log", status_code=204, tags=["Offline Sync"])
async def clear_sync_log(
    service: SyncService = Depends(get_sync_service),
    current_operator: Operator = Depends(get_current_operator)
):
    """Clear the sync log"""
    await service.clear_sync_log()

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _rate_plan_to_response(plan: RatePlan) -> RatePlanResponse:
    """Convert RatePlan entity to RatePlanResponse"""
    return RatePlanResponse(
        id=plan.id,
        name=plan.name,
        season_type=plan.season_type.value,
        season_label=plan.season_type.label,
        start_date=plan.start_date,
        end_date=plan.end_date,
        rates={category.value: rate for category, rate in plan.rates.items()},
        min_stay=plan.min_stay,
        is_active=plan.is_active,
        priority=plan.priority,
        created_at=plan.created_at
    )

def _offer_to_response(offer: SpecialOffer) -> SpecialOfferResponse:
    """Convert SpecialOffer entity to SpecialOfferResponse"""
    return SpecialOfferResponse(
        id=offer.id,
        name=offer.name,
        type=offer.type.value,
        discount_percent=offer.discount_percent,
        conditions=offer.conditions,
        start_date=offer.start_date,
        end_date=offer.end_date,
        is_active=offer.is_active,
        created_at=offer.created_at
    )

def _offline_to_response(reservation: OfflineReservation) -> OfflineReservationResponse:
    """Convert OfflineReservation entity to OfflineReservationResponse"""
    return OfflineReservationResponse(
        id=reservation.id,
        local_id=reservation.local_id,
        confirmation_number=reservation.confirmation_number,
        guest_name=reservation.guest_name,
        guest_phone=reservation.guest_phone,
        guest_email=reservation.guest_email,
        room_type=reservation.room_type.value,
        room_number=reservation.room_number,
        check_in=reservation.date_range.check_in,
        check_out=reservation.date_range.check_out,
        nights=reservation.nights,
        adults=reservation.adults,
        children=reservation.children,
        rate_per_night=reservation.rate_per_night,
        total_amount=reservation.total_amount,
        source=reservation.source.value,
        special_requests=reservation.special_requests,
        sync_status=reservation.sync_status,
        created_at=reservation.created_at,
        created_offline=reservation.created_offline,
        synced_at=reservation.synced_at,
        conflict_id=reservation.conflict_id,
        error_message=reservation.error_message,
        remote_confirmation=reservation.remote_confirmation
    )

def _channel_to_response(reservation: ChannelReservation) -> ChannelReservationResponse:
    """Convert ChannelReservation entity to ChannelReservationResponse"""
    return ChannelReservationResponse(
        id=reservation.id,
        channel_confirmation=reservation.channel_confirmation,
        channel=reservation.channel.value,
        guest_name=reservation.guest_name,
        guest_email=reservation.guest_email,
        room_type=reservation.room_type.value,
        check_in=reservation.date_range.check_in,
        check_out=reservation.date_range.check_out,
        nights=reservation.nights,
        adults=reservation.adults,
        total_amount=reservation.total_amount,
        received_at=reservation.received_at
    )

def _conflict_to_response(conflict: SyncConflict) -> SyncConflictResponse:
    """Convert SyncConflict entity to SyncConflictResponse"""
    return SyncConflictResponse(
        id=conflict.id,
        local_reservation=_offline_to_response(conflict.local_reservation),
        channel_reservation=_channel_to_response(conflict.channel_reservation),
        conflict_type=conflict.conflict_type,
        severity=conflict.severity,
        description=conflict.description,
        suggested_resolution=conflict.suggested_resolution,
        detected_at=conflict.detected_at,
        resolved_at=conflict.resolved_at,
        resolution=conflict.resolution
    )

def _sync_result_to_response(result: SyncResult) -> SyncResultResponse:
    return SyncResultResponse(
        synced=result.synced,
        conflicts=[_conflict_to_response(c) for c in result.conflicts],
        errors=result.errors,
        finished_at=result.finished_at
    )

# ============================================================================
# APPLICATION FACTORY
# ============================================================================

async def _not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

async def _already_resolved_handler(request: Request, exc: ConflictAlreadyResolvedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield

    # Shutdown
    aclose = getattr(app.state.container.transport, "aclose", None)
    if aclose is not None:
        await aclose()
        logger.info("Channel transport closed")

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    transport: Optional[ChannelTransport] = None
) -> FastAPI:
    settings = settings or settings_provider.get()
    configure_logging(settings.log_level)
    app = FastAPI(
        title=settings.app_name,
        description="Seasonal pricing and offline reservation sync for the front desk",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.container = build_container(settings, store=store, transport=transport)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(ConflictAlreadyResolvedError, _already_resolved_handler)
    app.include_router(router)
    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from domain.enums import (
    RoomCategory, SeasonType, OfferType, SyncStatus, ChannelSource,
    ConflictResolution, ConflictType, ConflictSeverity, SyncAction
)
from domain.value_objects import OfferConditions


# ============================================================================
# RATE PLAN SCHEMAS
# ============================================================================

class CreateRatePlanRequest(BaseModel):
    """Create rate plan request DTO"""
    name: str
    season_type: SeasonType
    start_date: date
    end_date: date
    rates: Dict[RoomCategory, Decimal] = {}
    min_stay: int = Field(ge=1, default=1)
    is_active: bool = True
    priority: int = 0


class UpdateRatePlanRequest(BaseModel):
    """Update rate plan request DTO; omitted fields stay unchanged"""
    name: Optional[str] = None
    season_type: Optional[SeasonType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rates: Optional[Dict[RoomCategory, Decimal]] = None
    min_stay: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    priority: Optional[int] = None


class RatePlanResponse(BaseModel):
    """Rate plan response DTO"""
    id: str
    name: str
    season_type: str
    season_label: str
    start_date: date
    end_date: date
    rates: Dict[str, Decimal]
    min_stay: int
    is_active: bool
    priority: int
    created_at: datetime


class DateRateResponse(BaseModel):
    """Rate for one date DTO"""
    day: date
    room_category: str
    rate: Decimal
    season_type: str
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None


class QuoteRequest(BaseModel):
    """Stay quote request DTO"""
    check_in: date
    check_out: date
    room_category: RoomCategory
    booking_date: Optional[date] = None


class NightlyRateResponse(BaseModel):
    night: date
    rate: Decimal
    season: str


class QuoteResponse(BaseModel):
    """Stay quote response DTO"""
    nights: int
    total_amount: Decimal
    avg_rate: int
    breakdown: List[NightlyRateResponse]
    offer_id: Optional[str] = None
    offer_name: Optional[str] = None
    discount_percent: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    currency: str
    min_stay_required: int
    min_stay_satisfied: bool


# ============================================================================
# SPECIAL OFFER SCHEMAS
# ============================================================================

class CreateSpecialOfferRequest(BaseModel):
    """Create special offer request DTO"""
    name: str
    type: OfferType
    discount_percent: Decimal = Field(ge=0, le=100)
    conditions: OfferConditions = OfferConditions()
    start_date: date
    end_date: date
    is_active: bool = True


class UpdateSpecialOfferRequest(BaseModel):
    """Update special offer request DTO; omitted fields stay unchanged"""
    name: Optional[str] = None
    type: Optional[OfferType] = None
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    conditions: Optional[OfferConditions] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class SpecialOfferResponse(BaseModel):
    """Special offer response DTO"""
    id: str
    name: str
    type: str
    discount_percent: Decimal
    conditions: OfferConditions
    start_date: date
    end_date: date
    is_active: bool
    created_at: datetime


class DiscountRequest(BaseModel):
    """Discount lookup request DTO"""
    check_in: date
    nights: int = Field(ge=1)
    booking_date: Optional[date] = None


class DiscountResponse(BaseModel):
    """Discount lookup response DTO"""
    offer: Optional[SpecialOfferResponse] = None
    discount_percent: Decimal


# ============================================================================
# OFFLINE QUEUE AND CHANNEL SCHEMAS
# ============================================================================

class QueueReservationRequest(BaseModel):
    """Queue offline reservation request DTO"""
    guest_name: str
    guest_phone: str = ""
    guest_email: str = ""
    room_type: RoomCategory
    room_number: Optional[str] = None
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=10, default=1)
    children: int = Field(ge=0, le=10, default=0)
    rate_per_night: Decimal = Field(ge=0, default=Decimal("0"))
    total_amount: Decimal = Field(ge=0, default=Decimal("0"))
    source: ChannelSource = ChannelSource.DIRECT
    special_requests: Optional[str] = None


class OfflineReservationResponse(BaseModel):
    """Offline reservation response DTO"""
    id: str
    local_id: str
    confirmation_number: str
    guest_name: str
    guest_phone: str
    guest_email: str
    room_type: str
    room_number: Optional[str] = None
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    rate_per_night: Decimal
    total_amount: Decimal
    source: str
    special_requests: Optional[str] = None
    sync_status: SyncStatus
    created_at: datetime
    created_offline: bool
    synced_at: Optional[datetime] = None
    conflict_id: Optional[str] = None
    error_message: Optional[str] = None
    remote_confirmation: Optional[str] = None


class ChannelReservationRequest(BaseModel):
    """Inbound channel reservation (webhook) request DTO"""
    id: Optional[str] = None
    channel_confirmation: str
    channel: ChannelSource
    guest_name: str
    guest_email: str = ""
    room_type: RoomCategory
    check_in: date
    check_out: date
    adults: int = Field(ge=1, default=1)
    total_amount: Decimal = Field(ge=0, default=Decimal("0"))


class ChannelReservationResponse(BaseModel):
    """Channel reservation response DTO"""
    id: str
    channel_confirmation: str
    channel: str
    guest_name: str
    guest_email: str
    room_type: str
    check_in: date
    check_out: date
    nights: int
    adults: int
    total_amount: Decimal
    received_at: datetime


# ============================================================================
# SYNC SCHEMAS
# ============================================================================

class ResolveConflictRequest(BaseModel):
    """Resolve conflict request DTO"""
    resolution: ConflictResolution


class SyncConflictResponse(BaseModel):
    """Sync conflict response DTO"""
    id: str
    local_reservation: OfflineReservationResponse
    channel_reservation: ChannelReservationResponse
    conflict_type: ConflictType
    severity: ConflictSeverity
    description: str
    suggested_resolution: ConflictResolution
    detected_at: datetime
    resolved_at: Optional[datetime] = None
    resolution: Optional[ConflictResolution] = None


class SyncResultResponse(BaseModel):
    """Sync pass response DTO"""
    synced: int
    conflicts: List[SyncConflictResponse]
    errors: int
    finished_at: Optional[datetime] = None


class SyncStatusResponse(BaseModel):
    """Sync status response DTO"""
    pending_count: int
    conflict_count: int
    is_syncing: bool
    last_synced: Optional[int] = None
    last_conflicts: Optional[int] = None
    last_errors: Optional[int] = None
    last_finished_at: Optional[datetime] = None


class SyncLogEntryResponse(BaseModel):
    """Sync log entry response DTO"""
    id: str
    timestamp: datetime
    action: SyncAction
    reservation_id: str
    details: str


class CountResponse(BaseModel):
    count: int

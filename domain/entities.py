"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, validator
from datetime import datetime, date
from typing import Optional, Dict
from decimal import Decimal
from uuid import uuid4
import random
import time

from domain.enums import (
    RoomCategory, SeasonType, OfferType, SyncStatus, ChannelSource,
    ConflictType, ConflictSeverity, ConflictResolution, SyncAction
)
from domain.value_objects import DateRange, OfferConditions

CONFIRMATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CONFIRMATION_PREFIX = "CRT-"


def generate_id(prefix: str) -> str:
    """Generate a sortable, prefixed identifier"""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


def generate_confirmation_code(rng: Optional[random.Random] = None) -> str:
    """Generate a confirmation code from an alphabet without look-alike characters"""
    rng = rng or random
    return CONFIRMATION_PREFIX + ''.join(rng.choice(CONFIRMATION_ALPHABET) for _ in range(6))


class RatePlan(BaseModel):
    """Seasonal Rate Plan Entity"""

    id: str = Field(default_factory=lambda: f"rp-{uuid4().hex[:10]}")
    name: str
    season_type: SeasonType
    start_date: date
    end_date: date
    rates: Dict[RoomCategory, Decimal] = {}
    min_stay: int = Field(ge=1, default=1)
    is_active: bool = True
    priority: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @validator('end_date')
    def end_not_before_start(cls, v, values):
        if 'start_date' in values and v < values['start_date']:
            raise ValueError('End date must not be before start date')
        return v

    def covers(self, day: date) -> bool:
        """Check if plan is active and its inclusive interval contains day"""
        return self.is_active and self.start_date <= day <= self.end_date

    def rate_for(self, room_category: RoomCategory) -> Optional[Decimal]:
        return self.rates.get(room_category)


class SpecialOffer(BaseModel):
    """Special Offer (discount rule) Entity"""

    id: str = Field(default_factory=lambda: f"off-{uuid4().hex[:10]}")
    name: str
    type: OfferType
    discount_percent: Decimal = Field(ge=0, le=100)
    conditions: OfferConditions = OfferConditions()
    start_date: date
    end_date: date
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def applies_to(self, days_before: int, nights: int) -> bool:
        """Check the condition for this offer's type; unevaluated types never apply"""
        c = self.conditions
        if self.type == OfferType.EARLY_BIRD:
            return bool(c.min_days_before) and days_before >= c.min_days_before
        if self.type == OfferType.LAST_MINUTE:
            return bool(c.max_days_before) and 0 <= days_before <= c.max_days_before
        if self.type == OfferType.LONG_STAY:
            return bool(c.min_nights) and nights >= c.min_nights
        return False


class OfflineReservation(BaseModel):
    """Reservation captured while the channel manager was unreachable"""

    # Identity
    id: str = Field(default_factory=lambda: generate_id("res"))
    local_id: str = Field(default_factory=lambda: generate_id("local"))
    confirmation_number: str = Field(default_factory=generate_confirmation_code)

    # Guest
    guest_name: str
    guest_phone: str = ""
    guest_email: str = ""

    # Stay
    room_type: RoomCategory
    room_number: Optional[str] = None
    date_range: DateRange
    adults: int = Field(ge=1, default=1)
    children: int = Field(ge=0, default=0)
    rate_per_night: Decimal = Field(ge=0, default=Decimal("0"))
    total_amount: Decimal = Field(ge=0, default=Decimal("0"))
    source: ChannelSource = ChannelSource.DIRECT
    special_requests: Optional[str] = None

    # Sync state
    sync_status: SyncStatus = SyncStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    created_offline: bool = True
    synced_at: Optional[datetime] = None
    conflict_id: Optional[str] = None
    error_message: Optional[str] = None
    remote_confirmation: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def nights(self) -> int:
        return self.date_range.nights()

    # ==================== STATE TRANSITION METHODS ====================
    def start_sync(self) -> None:
        if self.sync_status != SyncStatus.PENDING:
            raise ValueError(f"Cannot start sync with status {self.sync_status.value}")
        self.sync_status = SyncStatus.SYNCING

    def mark_synced(self, remote_confirmation: Optional[str] = None) -> None:
        self.sync_status = SyncStatus.SYNCED
        self.synced_at = datetime.utcnow()
        self.error_message = None
        if remote_confirmation:
            self.remote_confirmation = remote_confirmation

    def mark_failed(self, message: str) -> None:
        if self.sync_status != SyncStatus.SYNCING:
            raise ValueError(f"Cannot fail sync with status {self.sync_status.value}")
        self.sync_status = SyncStatus.ERROR
        self.error_message = message

    def flag_conflict(self, conflict_id: str) -> None:
        self.sync_status = SyncStatus.CONFLICT
        self.conflict_id = conflict_id

    def requeue(self) -> None:
        """Return to pending so the next pass re-evaluates it"""
        self.sync_status = SyncStatus.PENDING
        self.conflict_id = None
        self.error_message = None

    # ==================== QUERY METHODS ====================
    def is_awaiting_sync(self) -> bool:
        return self.sync_status in (SyncStatus.PENDING, SyncStatus.ERROR)

    def collides_with(self, channel: "ChannelReservation") -> bool:
        return self.room_type == channel.room_type and self.date_range.overlaps(channel.date_range)


class ChannelReservation(BaseModel):
    """Reservation reported by an external distribution channel"""

    id: str = Field(default_factory=lambda: generate_id("ch"))
    channel_confirmation: str
    channel: ChannelSource
    guest_name: str
    guest_email: str = ""
    room_type: RoomCategory
    date_range: DateRange
    adults: int = Field(ge=1, default=1)
    total_amount: Decimal = Field(ge=0, default=Decimal("0"))
    received_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @property
    def nights(self) -> int:
        return self.date_range.nights()


class SyncConflict(BaseModel):
    """Collision between one local and one channel reservation"""

    id: str = Field(default_factory=lambda: generate_id("conf"))
    local_reservation: OfflineReservation
    channel_reservation: ChannelReservation
    conflict_type: ConflictType
    severity: ConflictSeverity
    description: str
    suggested_resolution: ConflictResolution
    detected_at: datetime = Field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = None
    resolution: Optional[ConflictResolution] = None

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def detect(local: OfflineReservation, channel: ChannelReservation) -> "SyncConflict":
        """Classify a collision; an identical date range is an overbooking"""
        if local.date_range.matches(channel.date_range):
            return SyncConflict(
                local_reservation=local.model_copy(deep=True),
                channel_reservation=channel.model_copy(deep=True),
                conflict_type=ConflictType.OVERBOOKING,
                severity=ConflictSeverity.HIGH,
                description=(
                    f"{local.guest_name} (local) and {channel.guest_name} ({channel.channel.value}) "
                    f"hold the same {local.room_type.value} room type on the same dates ({local.date_range})"
                ),
                suggested_resolution=ConflictResolution.KEEP_REMOTE,
            )
        return SyncConflict(
            local_reservation=local.model_copy(deep=True),
            channel_reservation=channel.model_copy(deep=True),
            conflict_type=ConflictType.DATE_OVERLAP,
            severity=ConflictSeverity.MEDIUM,
            description=(
                f"{local.guest_name} (local) and {channel.guest_name} ({channel.channel.value}) "
                f"overlap on {local.room_type.value}: {local.date_range} <-> {channel.date_range}"
            ),
            suggested_resolution=ConflictResolution.MERGE,
        )

    # ==================== STATE TRANSITION METHODS ====================
    def resolve(self, resolution: ConflictResolution) -> None:
        if self.is_resolved():
            raise ValueError(f"Conflict already resolved with {self.resolution.value}")
        self.resolution = resolution
        self.resolved_at = datetime.utcnow()

    # ==================== QUERY METHODS ====================
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def pairs(self, local_id: str, channel_id: str) -> bool:
        return self.local_reservation.id == local_id and self.channel_reservation.id == channel_id


class SyncLogEntry(BaseModel):
    """Immutable audit record of one sync lifecycle event"""

    id: str = Field(default_factory=lambda: generate_id("log"))
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    action: SyncAction
    reservation_id: str
    details: str

    class Config:
        frozen = True

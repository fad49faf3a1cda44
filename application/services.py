"""Application Services - Business use cases"""
import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel

from domain.repositories import (
    RatePlanRepository, SpecialOfferRepository, OfflineQueueRepository,
    ChannelBufferRepository, ConflictRepository, SyncLogRepository, ChannelTransport
)
from domain.entities import (
    RatePlan, SpecialOffer, OfflineReservation, ChannelReservation, SyncConflict, SyncLogEntry
)
from domain.enums import (
    RoomCategory, SeasonType, OfferType, SyncStatus, SyncAction, ConflictResolution,
    ChannelSource, RejectionReason
)
from domain.rate_resolver import RateResolver, SeasonMatch, DiscountResult, StayQuote
from domain.value_objects import DateRange, OfferConditions, StayRate, MinStayCheck, SubmissionResult

logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================

class NotFoundError(Exception):
    """Requested record does not exist"""


class RatePlanNotFoundError(NotFoundError):
    pass


class SpecialOfferNotFoundError(NotFoundError):
    pass


class QueueItemNotFoundError(NotFoundError):
    pass


class ChannelReservationNotFoundError(NotFoundError):
    pass


class ConflictNotFoundError(NotFoundError):
    pass


class ConflictAlreadyResolvedError(Exception):
    """Conflict already carries a resolution"""


# ============================================================================
# DEFAULT DATA
# ============================================================================

def default_rate_plans(year: int) -> List[RatePlan]:
    """Season plans seeded into an empty store"""
    def rates(standard, deluxe, suite, family, king, twin):
        return {
            RoomCategory.STANDARD: Decimal(standard),
            RoomCategory.DELUXE: Decimal(deluxe),
            RoomCategory.SUITE: Decimal(suite),
            RoomCategory.FAMILY: Decimal(family),
            RoomCategory.KING: Decimal(king),
            RoomCategory.TWIN: Decimal(twin),
        }

    return [
        RatePlan(
            id="rp-low-winter", name="Winter Season (Low)", season_type=SeasonType.LOW,
            start_date=date(year, 11, 1), end_date=date(year + 1, 3, 31),
            rates=rates(1200, 1800, 2800, 2000, 1600, 1200), min_stay=1, priority=1,
        ),
        RatePlan(
            id="rp-mid-spring", name="Spring (Mid)", season_type=SeasonType.MID,
            start_date=date(year, 4, 1), end_date=date(year, 5, 31),
            rates=rates(1600, 2200, 3200, 2400, 2000, 1600), min_stay=1, priority=2,
        ),
        RatePlan(
            id="rp-high-summer", name="Summer Season (High)", season_type=SeasonType.HIGH,
            start_date=date(year, 6, 1), end_date=date(year, 9, 15),
            rates=rates(2400, 3200, 4800, 3600, 2800, 2400), min_stay=2, priority=3,
        ),
        RatePlan(
            id="rp-peak-holiday", name="Holiday Period (Peak)", season_type=SeasonType.PEAK,
            start_date=date(year, 7, 15), end_date=date(year, 8, 15),
            rates=rates(3000, 4000, 6000, 4500, 3500, 3000), min_stay=3, priority=10,
        ),
        RatePlan(
            id="rp-special-nye", name="New Year Special", season_type=SeasonType.SPECIAL,
            start_date=date(year, 12, 28), end_date=date(year + 1, 1, 3),
            rates=rates(3500, 4500, 7000, 5000, 4000, 3500), min_stay=2, priority=20,
        ),
    ]


def default_special_offers(year: int) -> List[SpecialOffer]:
    """Offers used while none have been stored"""
    return [
        SpecialOffer(
            id="off-earlybird", name="Early Booking", type=OfferType.EARLY_BIRD,
            discount_percent=Decimal("15"), conditions=OfferConditions(min_days_before=30),
            start_date=date(year, 1, 1), end_date=date(year, 12, 31),
        ),
        SpecialOffer(
            id="off-longstay", name="Long Stay", type=OfferType.LONG_STAY,
            discount_percent=Decimal("10"), conditions=OfferConditions(min_nights=7),
            start_date=date(year, 1, 1), end_date=date(year, 12, 31),
        ),
        SpecialOffer(
            id="off-lastmin", name="Last Minute", type=OfferType.LAST_MINUTE,
            discount_percent=Decimal("20"), conditions=OfferConditions(max_days_before=3),
            start_date=date(year, 1, 1), end_date=date(year, 12, 31),
        ),
    ]


# ============================================================================
# RATES AND OFFERS
# ============================================================================

class SpecialOfferService:
    """Service for Special Offer use cases"""

    def __init__(self, repository: SpecialOfferRepository):
        self.repository = repository

    async def get_special_offers(self) -> List[SpecialOffer]:
        offers = await self.repository.find_all()
        if offers is None:
            return default_special_offers(date.today().year)
        return offers

    async def get_special_offer(self, offer_id: str) -> SpecialOffer:
        for offer in await self.get_special_offers():
            if offer.id == offer_id:
                return offer
        raise SpecialOfferNotFoundError(f"Special offer {offer_id} not found")

    async def _materialize_defaults(self) -> None:
        # Editing the default offers persists the whole default set first
        if await self.repository.find_all() is None:
            for offer in default_special_offers(date.today().year):
                await self.repository.save(offer)

    async def create_special_offer(
        self,
        name: str,
        type: OfferType,
        discount_percent: Decimal,
        start_date: date,
        end_date: date,
        conditions: Optional[OfferConditions] = None,
        is_active: bool = True
    ) -> SpecialOffer:
        await self._materialize_defaults()
        offer = SpecialOffer(
            name=name,
            type=type,
            discount_percent=discount_percent,
            conditions=conditions or OfferConditions(),
            start_date=start_date,
            end_date=end_date,
            is_active=is_active
        )
        return await self.repository.save(offer)

    async def update_special_offer(self, offer_id: str, updates: Mapping[str, Any]) -> SpecialOffer:
        await self._materialize_defaults()
        offer = await self.repository.find_by_id(offer_id)
        if not offer:
            raise SpecialOfferNotFoundError(f"Special offer {offer_id} not found")
        updated = SpecialOffer.model_validate({**offer.model_dump(), **updates, "id": offer.id})
        return await self.repository.update(updated)

    async def delete_special_offer(self, offer_id: str) -> None:
        await self._materialize_defaults()
        if not await self.repository.delete(offer_id):
            raise SpecialOfferNotFoundError(f"Special offer {offer_id} not found")

    async def calculate_discount(
        self,
        check_in: date,
        nights: int,
        booking_date: Optional[date] = None
    ) -> DiscountResult:
        resolver = RateResolver([], await self.get_special_offers())
        return resolver.calculate_discount(check_in, nights, booking_date)


class RatePlanService:
    """Service for Rate Plan management and stay pricing"""

    def __init__(self,
                 repository: RatePlanRepository,
                 offer_service: Optional[SpecialOfferService] = None,
                 base_rates: Optional[Mapping[RoomCategory, Decimal]] = None):
        self.repository = repository
        self.offer_service = offer_service
        self.base_rates = base_rates

    async def _stored_plans(self) -> List[RatePlan]:
        """Plans in stored order, seeding the defaults into an empty store"""
        plans = await self.repository.find_all()
        if plans is None:
            plans = default_rate_plans(date.today().year)
            await self.repository.save_all(plans)
            logger.info("Seeded %d default rate plans", len(plans))
        return plans

    async def get_rate_plans(self) -> List[RatePlan]:
        """Get all rate plans, highest priority first"""
        return sorted(await self._stored_plans(), key=lambda p: p.priority, reverse=True)

    async def get_rate_plan(self, plan_id: str) -> RatePlan:
        for plan in await self._stored_plans():
            if plan.id == plan_id:
                return plan
        raise RatePlanNotFoundError(f"Rate plan {plan_id} not found")

    async def create_rate_plan(
        self,
        name: str,
        season_type: SeasonType,
        start_date: date,
        end_date: date,
        rates: Mapping[RoomCategory, Decimal],
        min_stay: int = 1,
        is_active: bool = True,
        priority: int = 0
    ) -> RatePlan:
        await self._stored_plans()
        plan = RatePlan(
            name=name,
            season_type=season_type,
            start_date=start_date,
            end_date=end_date,
            rates=dict(rates),
            min_stay=min_stay,
            is_active=is_active,
            priority=priority
        )
        logger.info("Created rate plan %s (%s, priority %d)", plan.id, plan.season_type.value, plan.priority)
        return await self.repository.save(plan)

    async def update_rate_plan(self, plan_id: str, updates: Mapping[str, Any]) -> RatePlan:
        plan = await self.get_rate_plan(plan_id)
        updated = RatePlan.model_validate({**plan.model_dump(), **updates, "id": plan.id})
        return await self.repository.update(updated)

    async def delete_rate_plan(self, plan_id: str) -> None:
        await self._stored_plans()
        if not await self.repository.delete(plan_id):
            raise RatePlanNotFoundError(f"Rate plan {plan_id} not found")

    async def resolver(self) -> RateResolver:
        """Snapshot of the current plans and offers"""
        offers = await self.offer_service.get_special_offers() if self.offer_service else []
        return RateResolver(await self._stored_plans(), offers, self.base_rates)

    async def get_rate_for_date(self, day: date, room_category: RoomCategory) -> Decimal:
        return (await self.resolver()).get_rate_for_date(day, room_category)

    async def get_season_for_date(self, day: date) -> SeasonMatch:
        return (await self.resolver()).get_season_for_date(day)

    async def calculate_stay_rate(self, check_in: date, check_out: date, room_category: RoomCategory) -> StayRate:
        return (await self.resolver()).calculate_stay_rate(check_in, check_out, room_category)

    async def check_min_stay(self, check_in: date, check_out: date) -> MinStayCheck:
        return (await self.resolver()).check_min_stay(check_in, check_out)

    async def quote_stay(
        self,
        check_in: date,
        check_out: date,
        room_category: RoomCategory,
        booking_date: Optional[date] = None
    ) -> StayQuote:
        return (await self.resolver()).quote_stay(check_in, check_out, room_category, booking_date)


# ============================================================================
# OFFLINE SYNC
# ============================================================================

class SyncResult(BaseModel):
    synced: int = 0
    conflicts: List[SyncConflict] = []
    errors: int = 0
    finished_at: Optional[datetime] = None


class SyncStatusSummary(BaseModel):
    pending_count: int
    conflict_count: int
    is_syncing: bool
    last_result: Optional[SyncResult] = None


class SyncService:
    """Offline reservation queue, channel conflict detection and sync passes"""

    def __init__(self,
                 queue_repository: OfflineQueueRepository,
                 channel_repository: ChannelBufferRepository,
                 conflict_repository: ConflictRepository,
                 log_repository: SyncLogRepository,
                 transport: ChannelTransport,
                 timeout_seconds: float = 10.0):
        self.queue_repository = queue_repository
        self.channel_repository = channel_repository
        self.conflict_repository = conflict_repository
        self.log_repository = log_repository
        self.transport = transport
        self.timeout_seconds = timeout_seconds
        self._sync_lock = asyncio.Lock()
        self._last_result: Optional[SyncResult] = None

    async def _log(self, action: SyncAction, reservation_id: str, details: str) -> SyncLogEntry:
        logger.info("%s %s: %s", action.value, reservation_id, details)
        return await self.log_repository.append(
            SyncLogEntry(action=action, reservation_id=reservation_id, details=details)
        )

    # ==================== QUEUE ====================
    async def add_to_offline_queue(
        self,
        guest_name: str,
        room_type: RoomCategory,
        check_in: date,
        check_out: date,
        guest_phone: str = "",
        guest_email: str = "",
        room_number: Optional[str] = None,
        adults: int = 1,
        children: int = 0,
        rate_per_night: Decimal = Decimal("0"),
        total_amount: Decimal = Decimal("0"),
        source: ChannelSource = ChannelSource.DIRECT,
        special_requests: Optional[str] = None
    ) -> OfflineReservation:
        """Queue a reservation captured without a channel connection"""
        reservation = OfflineReservation(
            guest_name=guest_name,
            guest_phone=guest_phone,
            guest_email=guest_email,
            room_type=room_type,
            room_number=room_number,
            date_range=DateRange(check_in=check_in, check_out=check_out),
            adults=adults,
            children=children,
            rate_per_night=rate_per_night,
            total_amount=total_amount,
            source=source,
            special_requests=special_requests
        )
        await self.queue_repository.save(reservation)
        await self._log(SyncAction.QUEUED, reservation.id, f"Offline reservation created: {reservation.guest_name}")
        return reservation

    async def get_offline_queue(self) -> List[OfflineReservation]:
        return await self.queue_repository.find_all()

    async def get_queue_item(self, reservation_id: str) -> OfflineReservation:
        reservation = await self.queue_repository.find_by_id(reservation_id)
        if not reservation:
            raise QueueItemNotFoundError(f"Queued reservation {reservation_id} not found")
        return reservation

    async def remove_from_queue(self, reservation_id: str) -> None:
        if not await self.queue_repository.delete(reservation_id):
            raise QueueItemNotFoundError(f"Queued reservation {reservation_id} not found")

    async def clear_synced_from_queue(self) -> int:
        return await self.queue_repository.delete_by_status(SyncStatus.SYNCED)

    async def retry_failed(self) -> int:
        """Put failed items back to pending for the next sync pass"""
        failed = await self.queue_repository.find_by_status(SyncStatus.ERROR)
        for reservation in failed:
            reservation.requeue()
            await self.queue_repository.update(reservation)
            await self._log(SyncAction.QUEUED, reservation.id, f"Requeued after failed sync: {reservation.guest_name}")
        return len(failed)

    # ==================== CHANNEL BUFFER ====================
    async def get_channel_buffer(self) -> List[ChannelReservation]:
        return await self.channel_repository.find_all()

    async def add_channel_reservation(
        self,
        channel_confirmation: str,
        channel: ChannelSource,
        guest_name: str,
        room_type: RoomCategory,
        check_in: date,
        check_out: date,
        guest_email: str = "",
        adults: int = 1,
        total_amount: Decimal = Decimal("0"),
        reservation_id: Optional[str] = None
    ) -> ChannelReservation:
        """Record a reservation reported by a distribution channel"""
        fields = dict(
            channel_confirmation=channel_confirmation,
            channel=channel,
            guest_name=guest_name,
            guest_email=guest_email,
            room_type=room_type,
            date_range=DateRange(check_in=check_in, check_out=check_out),
            adults=adults,
            total_amount=total_amount
        )
        if reservation_id:
            fields["id"] = reservation_id
        reservation = ChannelReservation(**fields)
        logger.info("Channel reservation %s received from %s", reservation.channel_confirmation, channel.value)
        return await self.channel_repository.save(reservation)

    async def remove_channel_reservation(self, reservation_id: str) -> None:
        if not await self.channel_repository.delete(reservation_id):
            raise ChannelReservationNotFoundError(f"Channel reservation {reservation_id} not found")

    # ==================== CONFLICTS ====================
    async def get_conflicts(self) -> List[SyncConflict]:
        return await self.conflict_repository.find_all()

    async def get_unresolved_conflicts(self) -> List[SyncConflict]:
        return [c for c in await self.conflict_repository.find_all() if not c.is_resolved()]

    async def detect_conflicts(
        self,
        local_queue: List[OfflineReservation],
        channel_buffer: List[ChannelReservation]
    ) -> List[SyncConflict]:
        """Record new local/channel collisions and flag the local side; returns only new conflicts"""
        known = await self.conflict_repository.find_all()
        new_conflicts: List[SyncConflict] = []

        for local in local_queue:
            if local.sync_status in (SyncStatus.SYNCED, SyncStatus.CONFLICT):
                continue

            for channel in channel_buffer:
                if not local.collides_with(channel):
                    continue
                if any(c.pairs(local.id, channel.id) for c in known + new_conflicts):
                    continue

                conflict = SyncConflict.detect(local, channel)
                new_conflicts.append(conflict)

                stored = await self.queue_repository.find_by_id(local.id)
                if stored:
                    stored.flag_conflict(conflict.id)
                    await self.queue_repository.update(stored)
                await self._log(SyncAction.CONFLICT_DETECTED, local.id, conflict.description)

        await self.conflict_repository.save_all(new_conflicts)
        if new_conflicts:
            logger.warning("Detected %d new sync conflict(s)", len(new_conflicts))
        return new_conflicts

    async def _update_queue_item(self, reservation_id: str, change) -> Optional[OfflineReservation]:
        reservation = await self.queue_repository.find_by_id(reservation_id)
        if not reservation:
            logger.warning("Queued reservation %s no longer exists", reservation_id)
            return None
        change(reservation)
        return await self.queue_repository.update(reservation)

    async def resolve_conflict(self, conflict_id: str, resolution: ConflictResolution) -> SyncConflict:
        resolution = ConflictResolution(resolution)
        conflict = await self.conflict_repository.find_by_id(conflict_id)
        if not conflict:
            raise ConflictNotFoundError(f"Conflict {conflict_id} not found")
        if conflict.is_resolved():
            raise ConflictAlreadyResolvedError(
                f"Conflict {conflict_id} already resolved with {conflict.resolution.value}"
            )

        conflict.resolve(resolution)
        await self.conflict_repository.update(conflict)

        local = conflict.local_reservation
        channel = conflict.channel_reservation
        # The item stays blocked while any other conflict on it is open
        still_open = [c for c in await self.get_unresolved_conflicts() if c.local_reservation.id == local.id]

        if resolution == ConflictResolution.KEEP_LOCAL:
            await self._release_local(local.id, still_open, lambda r: r.mark_synced())
            await self.channel_repository.delete(channel.id)
            details = f"Conflict resolved: local reservation kept ({local.guest_name})"
        elif resolution == ConflictResolution.KEEP_REMOTE:
            await self.queue_repository.delete(local.id)
            details = f"Conflict resolved: channel reservation kept ({channel.guest_name} - {channel.channel.value})"
        elif resolution == ConflictResolution.MERGE:
            await self._release_local(local.id, still_open, lambda r: r.mark_synced())
            details = "Conflict resolved: both reservations kept, rooms to be reassigned"
        elif resolution == ConflictResolution.DISMISS:
            await self._release_local(local.id, still_open, lambda r: r.requeue())
            details = "Conflict dismissed, waiting for the next sync"
        else:
            raise ValueError(f"Unknown resolution {resolution}")

        if still_open and resolution != ConflictResolution.KEEP_REMOTE:
            details += f" ({len(still_open)} conflict(s) still open)"
        await self._log(SyncAction.CONFLICT_RESOLVED, local.id, details)
        return conflict

    async def _release_local(self, reservation_id: str, still_open: List[SyncConflict], change) -> None:
        if still_open:
            await self._update_queue_item(reservation_id, lambda r: r.flag_conflict(still_open[0].id))
        else:
            await self._update_queue_item(reservation_id, change)

    # ==================== SYNC ====================
    async def _submit(self, reservation: OfflineReservation) -> SubmissionResult:
        try:
            return await asyncio.wait_for(self.transport.submit(reservation), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return SubmissionResult.reject(
                RejectionReason.TIMEOUT, f"Channel API did not answer within {self.timeout_seconds:g}s"
            )
        except Exception as e:
            logger.exception("Channel transport failed for %s", reservation.id)
            return SubmissionResult.reject(RejectionReason.UNAVAILABLE, f"Channel transport error: {e}")

    async def sync_reservations(self) -> SyncResult:
        """Run one sync pass; passes never overlap"""
        async with self._sync_lock:
            pending = await self.queue_repository.find_by_status(SyncStatus.PENDING)
            if not pending:
                return SyncResult()

            new_conflicts = await self.detect_conflicts(pending, await self.channel_repository.find_all())

            synced = 0
            errors = 0
            for item in pending:
                # Conflict-flagged items are no longer pending and are skipped
                reservation = await self.queue_repository.claim_for_sync(item.id)
                if not reservation:
                    continue
                await self._log(SyncAction.SYNC_START, item.id, f"Sync started: {item.guest_name}")

                try:
                    result = await self._submit(reservation)
                except asyncio.CancelledError:
                    await self._update_queue_item(item.id, _fail_cancelled)
                    await self._log(SyncAction.SYNC_FAIL, item.id, f"Sync cancelled: {item.guest_name}")
                    raise

                try:
                    if result.accepted:
                        reservation.mark_synced(result.confirmation)
                        await self.queue_repository.update(reservation)
                        await self._log(SyncAction.SYNC_SUCCESS, item.id, f"Sync completed: {item.guest_name}")
                        synced += 1
                    else:
                        reservation.mark_failed(result.message or result.reason.value)
                        await self.queue_repository.update(reservation)
                        await self._log(
                            SyncAction.SYNC_FAIL, item.id,
                            f"Sync failed: {item.guest_name} ({result.reason.value})"
                        )
                        errors += 1
                except ValueError:
                    logger.warning("Reservation %s left the queue during sync", item.id)

            self._last_result = SyncResult(
                synced=synced, conflicts=new_conflicts, errors=errors, finished_at=datetime.utcnow()
            )
            return self._last_result

    async def get_status(self) -> SyncStatusSummary:
        queue = await self.queue_repository.find_all()
        return SyncStatusSummary(
            pending_count=len([r for r in queue if r.is_awaiting_sync()]),
            conflict_count=len(await self.get_unresolved_conflicts()),
            is_syncing=self._sync_lock.locked(),
            last_result=self._last_result
        )

    # ==================== LOG ====================
    async def get_sync_log(self) -> List[SyncLogEntry]:
        return await self.log_repository.find_all()

    async def clear_sync_log(self) -> None:
        await self.log_repository.clear()


def _fail_cancelled(reservation: OfflineReservation) -> None:
    if reservation.sync_status == SyncStatus.SYNCING:
        reservation.mark_failed("Sync pass cancelled")

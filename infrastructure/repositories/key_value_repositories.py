"""Key-Value Backed Repository Implementations

Every collection is read and written as a whole document, so concurrent
writers from separate processes are last-write-wins.
"""
import asyncio
import logging
from typing import Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from domain.repositories import (
    KeyValueStore, RatePlanRepository, SpecialOfferRepository, OfflineQueueRepository,
    ChannelBufferRepository, ConflictRepository, SyncLogRepository
)
from domain.entities import (
    RatePlan, SpecialOffer, OfflineReservation, ChannelReservation, SyncConflict, SyncLogEntry
)
from domain.enums import SyncStatus

logger = logging.getLogger(__name__)

RATE_PLANS_KEY = "rate_plans"
SPECIAL_OFFERS_KEY = "special_offers"
OFFLINE_QUEUE_KEY = "offline_queue"
CHANNEL_BUFFER_KEY = "channel_buffer"
CONFLICTS_KEY = "sync_conflicts"
SYNC_LOG_KEY = "sync_log"

DEFAULT_LOG_LIMIT = 100

T = TypeVar("T", bound=BaseModel)


class KeyValueCollection(Generic[T]):
    """A list of models persisted under one key"""

    def __init__(self, store: KeyValueStore, key: str, model: Type[T]):
        self._store = store
        self._key = key
        self._model = model

    async def load(self) -> Optional[List[T]]:
        """Stored items, or None when the key is absent or unreadable"""
        raw = await self._store.get(self._key)
        if raw is None:
            return None
        if not isinstance(raw, list):
            logger.warning("Ignoring %s: expected a list, got %s", self._key, type(raw).__name__)
            return None
        try:
            return [self._model.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.warning("Ignoring malformed %s: %s", self._key, e.error_count())
            return None

    async def load_or_empty(self) -> List[T]:
        return await self.load() or []

    async def store(self, items: List[T]) -> None:
        await self._store.set(self._key, [item.model_dump(mode="json") for item in items])


class KeyValueRatePlanRepository(RatePlanRepository):
    """Key-value implementation of RatePlanRepository"""

    def __init__(self, store: KeyValueStore):
        self._collection = KeyValueCollection(store, RATE_PLANS_KEY, RatePlan)

    async def save(self, plan: RatePlan) -> RatePlan:
        plans = await self._collection.load_or_empty()
        plans.append(plan)
        await self._collection.store(plans)
        return plan

    async def save_all(self, plans: List[RatePlan]) -> None:
        await self._collection.store(plans)

    async def find_by_id(self, plan_id: str) -> Optional[RatePlan]:
        for plan in await self._collection.load_or_empty():
            if plan.id == plan_id:
                return plan
        return None

    async def find_all(self) -> Optional[List[RatePlan]]:
        return await self._collection.load()

    async def update(self, plan: RatePlan) -> RatePlan:
        plans = await self._collection.load_or_empty()
        for i, existing in enumerate(plans):
            if existing.id == plan.id:
                plans[i] = plan
                await self._collection.store(plans)
                return plan
        raise ValueError("Rate plan not found")

    async def delete(self, plan_id: str) -> bool:
        plans = await self._collection.load_or_empty()
        remaining = [p for p in plans if p.id != plan_id]
        if len(remaining) == len(plans):
            return False
        await self._collection.store(remaining)
        return True


class KeyValueSpecialOfferRepository(SpecialOfferRepository):
    """Key-value implementation of SpecialOfferRepository"""

    def __init__(self, store: KeyValueStore):
        self._collection = KeyValueCollection(store, SPECIAL_OFFERS_KEY, SpecialOffer)

    async def save(self, offer: SpecialOffer) -> SpecialOffer:
        offers = await self._collection.load_or_empty()
        offers.append(offer)
        await self._collection.store(offers)
        return offer

    async def find_by_id(self, offer_id: str) -> Optional[SpecialOffer]:
        for offer in await self._collection.load_or_empty():
            if offer.id == offer_id:
                return offer
        return None

    async def find_all(self) -> Optional[List[SpecialOffer]]:
        return await self._collection.load()

    async def update(self, offer: SpecialOffer) -> SpecialOffer:
        offers = await self._collection.load_or_empty()
        for i, existing in enumerate(offers):
            if existing.id == offer.id:
                offers[i] = offer
                await self._collection.store(offers)
                return offer
        raise ValueError("Special offer not found")

    async def delete(self, offer_id: str) -> bool:
        offers = await self._collection.load_or_empty()
        remaining = [o for o in offers if o.id != offer_id]
        if len(remaining) == len(offers):
            return False
        await self._collection.store(remaining)
        return True


class KeyValueOfflineQueueRepository(OfflineQueueRepository):
    """Key-value implementation of OfflineQueueRepository"""

    def __init__(self, store: KeyValueStore):
        self._collection = KeyValueCollection(store, OFFLINE_QUEUE_KEY, OfflineReservation)
        self._lock = asyncio.Lock()

    async def save(self, reservation: OfflineReservation) -> OfflineReservation:
        async with self._lock:
            queue = await self._collection.load_or_empty()
            queue.append(reservation)
            await self._collection.store(queue)
        return reservation

    async def find_by_id(self, reservation_id: str) -> Optional[OfflineReservation]:
        for reservation in await self._collection.load_or_empty():
            if reservation.id == reservation_id:
                return reservation
        return None

    async def find_all(self) -> List[OfflineReservation]:
        return await self._collection.load_or_empty()

    async def find_by_status(self, status: SyncStatus) -> List[OfflineReservation]:
        return [r for r in await self._collection.load_or_empty() if r.sync_status == status]

    async def update(self, reservation: OfflineReservation) -> OfflineReservation:
        async with self._lock:
            queue = await self._collection.load_or_empty()
            for i, existing in enumerate(queue):
                if existing.id == reservation.id:
                    queue[i] = reservation
                    await self._collection.store(queue)
                    return reservation
        raise ValueError("Queued reservation not found")

    async def claim_for_sync(self, reservation_id: str) -> Optional[OfflineReservation]:
        async with self._lock:
            queue = await self._collection.load_or_empty()
            for reservation in queue:
                if reservation.id == reservation_id:
                    if reservation.sync_status != SyncStatus.PENDING:
                        return None
                    reservation.start_sync()
                    await self._collection.store(queue)
                    return reservation
        return None

    async def delete(self, reservation_id: str) -> bool:
        async with self._lock:
            queue = await self._collection.load_or_empty()
            remaining = [r for r in queue if r.id != reservation_id]
            if len(remaining) == len(queue):
                return False
            await self._collection.store(remaining)
        return True

    async def delete_by_status(self, status: SyncStatus) -> int:
        async with self._lock:
            queue = await self._collection.load_or_empty()
            remaining = [r for r in queue if r.sync_status != status]
            await self._collection.store(remaining)
        return len(queue) - len(remaining)


class KeyValueChannelBufferRepository(ChannelBufferRepository):
    """Key-value implementation of ChannelBufferRepository"""

    def __init__(self, store: KeyValueStore):
        self._collection = KeyValueCollection(store, CHANNEL_BUFFER_KEY, ChannelReservation)

    async def save(self, reservation: ChannelReservation) -> ChannelReservation:
        buffer = await self._collection.load_or_empty()
        buffer.append(reservation)
        await self._collection.store(buffer)
        return reservation

    async def find_by_id(self, reservation_id: str) -> Optional[ChannelReservation]:
        for reservation in await self._collection.load_or_empty():
            if reservation.id == reservation_id:
                return reservation
        return None

    async def find_all(self) -> List[ChannelReservation]:
        return await self._collection.load_or_empty()

    async def delete(self, reservation_id: str) -> bool:
        buffer = await self._collection.load_or_empty()
        remaining = [r for r in buffer if r.id != reservation_id]
        if len(remaining) == len(buffer):
            return False
        await self._collection.store(remaining)
        return True


class KeyValueConflictRepository(ConflictRepository):
    """Key-value implementation of ConflictRepository"""

    def __init__(self, store: KeyValueStore):
        self._collection = KeyValueCollection(store, CONFLICTS_KEY, SyncConflict)

    async def save_all(self, conflicts: List[SyncConflict]) -> None:
        if not conflicts:
            return
        existing = await self._collection.load_or_empty()
        await self._collection.store(existing + list(conflicts))

    async def find_by_id(self, conflict_id: str) -> Optional[SyncConflict]:
        for conflict in await self._collection.load_or_empty():
            if conflict.id == conflict_id:
                return conflict
        return None

    async def find_all(self) -> List[SyncConflict]:
        return await self._collection.load_or_empty()

    async def update(self, conflict: SyncConflict) -> SyncConflict:
        conflicts = await self._collection.load_or_empty()
        for i, existing in enumerate(conflicts):
            if existing.id == conflict.id:
                conflicts[i] = conflict
                await self._collection.store(conflicts)
                return conflict
        raise ValueError("Conflict not found")


class KeyValueSyncLogRepository(SyncLogRepository):
    """Key-value implementation of SyncLogRepository"""

    def __init__(self, store: KeyValueStore, limit: int = DEFAULT_LOG_LIMIT):
        self._collection = KeyValueCollection(store, SYNC_LOG_KEY, SyncLogEntry)
        self._limit = limit

    async def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        logs = await self._collection.load_or_empty()
        logs.insert(0, entry)
        await self._collection.store(logs[:self._limit])
        return entry

    async def find_all(self) -> List[SyncLogEntry]:
        return await self._collection.load_or_empty()

    async def clear(self) -> None:
        await self._collection.store([])

"""Domain Repository and Transport Interfaces"""
from abc import ABC, abstractmethod
from typing import Any, Optional, List

from domain.entities import (
    RatePlan, SpecialOffer, OfflineReservation, ChannelReservation, SyncConflict, SyncLogEntry
)
from domain.enums import SyncStatus
from domain.value_objects import SubmissionResult


class KeyValueStore(ABC):
    """Storage port holding JSON-compatible values under string keys"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is absent or unreadable"""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key"""
        pass


class RatePlanRepository(ABC):
    """Repository interface for Rate Plans"""

    @abstractmethod
    async def save(self, plan: RatePlan) -> RatePlan:
        pass

    @abstractmethod
    async def save_all(self, plans: List[RatePlan]) -> None:
        """Replace the whole plan set"""
        pass

    @abstractmethod
    async def find_by_id(self, plan_id: str) -> Optional[RatePlan]:
        pass

    @abstractmethod
    async def find_all(self) -> Optional[List[RatePlan]]:
        """Find all plans in stored order; None when nothing was ever stored"""
        pass

    @abstractmethod
    async def update(self, plan: RatePlan) -> RatePlan:
        pass

    @abstractmethod
    async def delete(self, plan_id: str) -> bool:
        pass


class SpecialOfferRepository(ABC):
    """Repository interface for Special Offers"""

    @abstractmethod
    async def save(self, offer: SpecialOffer) -> SpecialOffer:
        pass

    @abstractmethod
    async def find_by_id(self, offer_id: str) -> Optional[SpecialOffer]:
        pass

    @abstractmethod
    async def find_all(self) -> Optional[List[SpecialOffer]]:
        """Find all offers in stored order; None when nothing was ever stored"""
        pass

    @abstractmethod
    async def update(self, offer: SpecialOffer) -> SpecialOffer:
        pass

    @abstractmethod
    async def delete(self, offer_id: str) -> bool:
        pass


class OfflineQueueRepository(ABC):
    """Repository interface for the offline reservation queue"""

    @abstractmethod
    async def save(self, reservation: OfflineReservation) -> OfflineReservation:
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: str) -> Optional[OfflineReservation]:
        pass

    @abstractmethod
    async def find_all(self) -> List[OfflineReservation]:
        pass

    @abstractmethod
    async def find_by_status(self, status: SyncStatus) -> List[OfflineReservation]:
        pass

    @abstractmethod
    async def update(self, reservation: OfflineReservation) -> OfflineReservation:
        pass

    @abstractmethod
    async def claim_for_sync(self, reservation_id: str) -> Optional[OfflineReservation]:
        """Atomically move a pending item to syncing; None if it was not pending"""
        pass

    @abstractmethod
    async def delete(self, reservation_id: str) -> bool:
        pass

    @abstractmethod
    async def delete_by_status(self, status: SyncStatus) -> int:
        pass


class ChannelBufferRepository(ABC):
    """Repository interface for channel-reported reservations"""

    @abstractmethod
    async def save(self, reservation: ChannelReservation) -> ChannelReservation:
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: str) -> Optional[ChannelReservation]:
        pass

    @abstractmethod
    async def find_all(self) -> List[ChannelReservation]:
        pass

    @abstractmethod
    async def delete(self, reservation_id: str) -> bool:
        pass


class ConflictRepository(ABC):
    """Repository interface for sync conflicts; records are never deleted"""

    @abstractmethod
    async def save_all(self, conflicts: List[SyncConflict]) -> None:
        """Append new conflicts"""
        pass

    @abstractmethod
    async def find_by_id(self, conflict_id: str) -> Optional[SyncConflict]:
        pass

    @abstractmethod
    async def find_all(self) -> List[SyncConflict]:
        pass

    @abstractmethod
    async def update(self, conflict: SyncConflict) -> SyncConflict:
        pass


class SyncLogRepository(ABC):
    """Repository interface for the capped, newest-first sync log"""

    @abstractmethod
    async def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        pass

    @abstractmethod
    async def find_all(self) -> List[SyncLogEntry]:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class ChannelTransport(ABC):
    """Outbound port to the channel manager"""

    @abstractmethod
    async def submit(self, reservation: OfflineReservation) -> SubmissionResult:
        """Submit a queued reservation; expected rejections are results, not exceptions"""
        pass

"""Domain Enums"""
from enum import Enum


class RoomCategory(str, Enum):
    STANDARD = "standard"
    DELUXE = "deluxe"
    SUITE = "suite"
    FAMILY = "family"
    KING = "king"
    TWIN = "twin"


class SeasonType(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"
    PEAK = "peak"
    SPECIAL = "special"

    @property
    def label(self) -> str:
        return SEASON_LABELS[self]


SEASON_LABELS = {
    SeasonType.LOW: "Low Season",
    SeasonType.MID: "Mid Season",
    SeasonType.HIGH: "High Season",
    SeasonType.PEAK: "Peak Season",
    SeasonType.SPECIAL: "Special Period",
}

# Returned by season lookups when no rate plan covers the date
BASE_SEASON = "base"


class OfferType(str, Enum):
    EARLY_BIRD = "early-bird"
    LAST_MINUTE = "last-minute"
    LONG_STAY = "long-stay"
    WEEKEND = "weekend"
    CORPORATE = "corporate"
    CUSTOM = "custom"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    CONFLICT = "conflict"
    ERROR = "error"


class ConflictResolution(str, Enum):
    KEEP_LOCAL = "keep-local"
    KEEP_REMOTE = "keep-remote"
    MERGE = "merge"
    DISMISS = "dismiss"


class ChannelSource(str, Enum):
    BOOKING = "booking"
    EXPEDIA = "expedia"
    AGODA = "agoda"
    DIRECT = "direct"
    PHONE = "phone"
    WALKIN = "walkin"


class ConflictType(str, Enum):
    ROOM_OVERLAP = "room-overlap"
    DATE_OVERLAP = "date-overlap"
    OVERBOOKING = "overbooking"


class ConflictSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SyncAction(str, Enum):
    QUEUED = "queued"
    SYNC_START = "sync-start"
    SYNC_SUCCESS = "sync-success"
    SYNC_FAIL = "sync-fail"
    CONFLICT_DETECTED = "conflict-detected"
    CONFLICT_RESOLVED = "conflict-resolved"


class RejectionReason(str, Enum):
    CAPACITY_CONFLICT = "capacity-conflict"
    INVALID_RATE = "invalid-rate"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"

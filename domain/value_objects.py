"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date
from decimal import Decimal
from typing import Optional, List

from domain.enums import RejectionReason


class DateRange(BaseModel):
    """Value Object for a stay: check-in inclusive, check-out exclusive"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        """Half-open overlap: back-to-back stays do not overlap"""
        return self.check_in < other.check_out and other.check_in < self.check_out

    def matches(self, other: "DateRange") -> bool:
        return self.check_in == other.check_in and self.check_out == other.check_out

    def __str__(self) -> str:
        return f"{self.check_in.isoformat()} - {self.check_out.isoformat()}"

    class Config:
        frozen = True


class OfferConditions(BaseModel):
    """Conditions attached to a special offer; unset means not applicable"""
    min_days_before: Optional[int] = Field(None, ge=0)
    max_days_before: Optional[int] = Field(None, ge=0)
    min_nights: Optional[int] = Field(None, ge=0)
    days_of_week: Optional[List[int]] = None
    promo_code: Optional[str] = None

    @validator('days_of_week')
    def valid_weekdays(cls, v):
        if v is not None and any(day < 0 or day > 6 for day in v):
            raise ValueError('Weekdays must be between 0 (Sunday) and 6 (Saturday)')
        return v

    class Config:
        frozen = True


class NightlyRate(BaseModel):
    """One night of a stay with the rate that applied and where it came from"""
    night: date
    rate: Decimal
    season: str

    class Config:
        frozen = True


class StayRate(BaseModel):
    total_amount: Decimal
    avg_rate: int
    nights: int
    breakdown: List[NightlyRate]

    class Config:
        frozen = True


class MinStayCheck(BaseModel):
    required_nights: int
    nights: int
    satisfied: bool

    class Config:
        frozen = True


class SubmissionResult(BaseModel):
    """Outcome of handing a queued reservation to the channel manager"""
    accepted: bool
    confirmation: Optional[str] = None
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls, confirmation: str) -> "SubmissionResult":
        return cls(accepted=True, confirmation=confirmation)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "SubmissionResult":
        return cls(accepted=False, reason=reason, message=message)

    class Config:
        frozen = True

"""Seasonal rate resolution and discount evaluation.

The resolver is a pure object: it is built from a snapshot of rate plans,
special offers and the base price table, and every method is deterministic
given those inputs. Missing plans or missing category prices fall back to
base prices; nothing here raises for absent data.
"""
import math
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from domain.entities import RatePlan, SpecialOffer
from domain.enums import RoomCategory, SeasonType, OfferType, BASE_SEASON
from domain.value_objects import NightlyRate, StayRate, MinStayCheck

BASE_PRICE_LABEL = "base price"

DEFAULT_BASE_RATES: Dict[RoomCategory, Decimal] = {
    RoomCategory.STANDARD: Decimal("1800"),
    RoomCategory.DELUXE: Decimal("2500"),
    RoomCategory.SUITE: Decimal("3500"),
    RoomCategory.FAMILY: Decimal("2800"),
    RoomCategory.KING: Decimal("2200"),
    RoomCategory.TWIN: Decimal("1800"),
}

# Offers are tried in this order regardless of how they are stored
OFFER_PRECEDENCE = (OfferType.EARLY_BIRD, OfferType.LAST_MINUTE, OfferType.LONG_STAY)


class SeasonMatch(BaseModel):
    plan: Optional[RatePlan] = None
    season_type: Union[SeasonType, str] = BASE_SEASON


class DiscountResult(BaseModel):
    offer: Optional[SpecialOffer] = None
    discount_percent: Decimal = Decimal("0")


class StayQuote(BaseModel):
    """Stay rate combined with the winning discount"""
    total_amount: Decimal
    avg_rate: int
    nights: int
    breakdown: List[NightlyRate]
    offer: Optional[SpecialOffer] = None
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    net_amount: Decimal


def days_between(start: date, end: date) -> int:
    """Whole-day difference, rounded up for fractional inputs"""
    return math.ceil((end - start) / timedelta(days=1))


class RateResolver:
    """Resolves nightly prices from overlapping, prioritized rate plans"""

    def __init__(
        self,
        plans: Sequence[RatePlan],
        offers: Sequence[SpecialOffer] = (),
        base_rates: Optional[Mapping[RoomCategory, Decimal]] = None,
    ):
        self.plans = list(plans)
        self.offers = list(offers)
        # Partial tables only override the categories they name
        self.base_rates = {**DEFAULT_BASE_RATES, **(base_rates or {})}

    def base_rate(self, room_category: RoomCategory) -> Decimal:
        return self.base_rates.get(room_category, Decimal("0"))

    def _winning_plan(self, day: date) -> Optional[RatePlan]:
        # sorted() is stable, so equal priorities keep stored order
        covering = sorted(
            (p for p in self.plans if p.covers(day)),
            key=lambda p: p.priority,
            reverse=True,
        )
        return covering[0] if covering else None

    def get_rate_for_date(self, day: date, room_category: RoomCategory) -> Decimal:
        plan = self._winning_plan(day)
        if plan is None:
            return self.base_rate(room_category)
        rate = plan.rate_for(room_category)
        return rate if rate is not None else self.base_rate(room_category)

    def get_season_for_date(self, day: date) -> SeasonMatch:
        plan = self._winning_plan(day)
        if plan is None:
            return SeasonMatch()
        return SeasonMatch(plan=plan, season_type=plan.season_type)

    def calculate_stay_rate(self, check_in: date, check_out: date, room_category: RoomCategory) -> StayRate:
        """Price each night of the stay; same-day or inverted input counts as one night"""
        nights = max(1, days_between(check_in, check_out))

        breakdown = []
        total = Decimal("0")
        for i in range(nights):
            day = check_in + timedelta(days=i)
            rate = self.get_rate_for_date(day, room_category)
            season = self.get_season_for_date(day)
            total += rate
            breakdown.append(NightlyRate(
                night=day,
                rate=rate,
                season=season.plan.name if season.plan else BASE_PRICE_LABEL,
            ))

        avg_rate = int((total / nights).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return StayRate(total_amount=total, avg_rate=avg_rate, nights=nights, breakdown=breakdown)

    def calculate_discount(self, check_in: date, nights: int, booking_date: Optional[date] = None) -> DiscountResult:
        """Return the first matching offer; offers never stack"""
        booking_date = booking_date or date.today()
        days_before = days_between(booking_date, check_in)

        active = [o for o in self.offers if o.is_active]
        for offer_type in OFFER_PRECEDENCE:
            for offer in active:
                if offer.type == offer_type and offer.applies_to(days_before, nights):
                    return DiscountResult(offer=offer, discount_percent=offer.discount_percent)

        return DiscountResult()

    def check_min_stay(self, check_in: date, check_out: date) -> MinStayCheck:
        """Strictest minimum stay among the plans governing each night"""
        nights = max(1, days_between(check_in, check_out))
        required = 1
        for i in range(nights):
            plan = self._winning_plan(check_in + timedelta(days=i))
            if plan is not None:
                required = max(required, plan.min_stay)
        return MinStayCheck(required_nights=required, nights=nights, satisfied=nights >= required)

    def quote_stay(
        self,
        check_in: date,
        check_out: date,
        room_category: RoomCategory,
        booking_date: Optional[date] = None,
    ) -> StayQuote:
        stay = self.calculate_stay_rate(check_in, check_out, room_category)
        discount = self.calculate_discount(check_in, stay.nights, booking_date)
        discount_amount = (stay.total_amount * discount.discount_percent / 100).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        return StayQuote(
            total_amount=stay.total_amount,
            avg_rate=stay.avg_rate,
            nights=stay.nights,
            breakdown=stay.breakdown,
            offer=discount.offer,
            discount_percent=discount.discount_percent,
            discount_amount=discount_amount,
            net_amount=stay.total_amount - discount_amount,
        )

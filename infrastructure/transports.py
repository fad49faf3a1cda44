"""Channel manager transports - simulated and HTTP adapters"""
import asyncio
import logging
import random
from typing import Optional

import httpx

from domain.entities import OfflineReservation, generate_confirmation_code
from domain.enums import RejectionReason
from domain.repositories import ChannelTransport
from domain.value_objects import SubmissionResult

logger = logging.getLogger(__name__)


class SimulatedChannelTransport(ChannelTransport):
    """Stand-in for the channel API with random latency and occasional failures"""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        delay_seconds: float = 0.3,
        jitter_seconds: float = 0.5,
        failure_rate: float = 0.05,
    ):
        self._rng = rng or random.Random()
        self._delay_seconds = delay_seconds
        self._jitter_seconds = jitter_seconds
        self._failure_rate = failure_rate

    async def submit(self, reservation: OfflineReservation) -> SubmissionResult:
        await asyncio.sleep(self._delay_seconds + self._rng.random() * self._jitter_seconds)

        if self._rng.random() < self._failure_rate:
            return SubmissionResult.reject(RejectionReason.UNAVAILABLE, "Channel API did not respond")

        return SubmissionResult.accept(generate_confirmation_code(self._rng))


class HttpChannelTransport(ChannelTransport):
    """Adapter for a channel-manager REST API"""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        self._base_url = base_url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, headers=headers)
        return self._client

    async def submit(self, reservation: OfflineReservation) -> SubmissionResult:
        client = await self._get_client()
        payload = {
            "local_id": reservation.local_id,
            "confirmation_number": reservation.confirmation_number,
            "guest_name": reservation.guest_name,
            "guest_email": reservation.guest_email,
            "guest_phone": reservation.guest_phone,
            "room_type": reservation.room_type.value,
            "check_in": reservation.date_range.check_in.isoformat(),
            "check_out": reservation.date_range.check_out.isoformat(),
            "adults": reservation.adults,
            "children": reservation.children,
            "rate_per_night": str(reservation.rate_per_night),
            "total_amount": str(reservation.total_amount),
            "source": reservation.source.value,
        }
        try:
            resp = await client.post("/reservations", json=payload)
        except httpx.TimeoutException:
            return SubmissionResult.reject(RejectionReason.TIMEOUT, "Channel API timed out")
        except httpx.HTTPError as e:
            logger.warning("Channel API request failed for %s: %s", reservation.id, e)
            return SubmissionResult.reject(RejectionReason.UNAVAILABLE, f"Channel API unreachable: {e}")

        if resp.status_code == 409:
            return SubmissionResult.reject(RejectionReason.CAPACITY_CONFLICT, _detail(resp, "No capacity left"))
        if resp.status_code == 422:
            return SubmissionResult.reject(RejectionReason.INVALID_RATE, _detail(resp, "Rate rejected"))
        if resp.is_error:
            return SubmissionResult.reject(
                RejectionReason.UNAVAILABLE, f"Channel API returned {resp.status_code}"
            )

        return SubmissionResult.accept(_field(resp, "confirmation", reservation.confirmation_number))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _detail(resp: httpx.Response, default: str) -> str:
    return _field(resp, "detail", default)


def _field(resp: httpx.Response, name: str, default: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get(name):
        return str(data[name])
    return default

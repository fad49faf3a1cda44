"""API Dependencies - Service wiring and authentication"""
import random
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from application.services import RatePlanService, SpecialOfferService, SyncService
from domain.auth import Operator
from domain.repositories import KeyValueStore, ChannelTransport
from infrastructure.config import Settings
from infrastructure.repositories.key_value_repositories import (
    KeyValueRatePlanRepository, KeyValueSpecialOfferRepository, KeyValueOfflineQueueRepository,
    KeyValueChannelBufferRepository, KeyValueConflictRepository, KeyValueSyncLogRepository
)
from infrastructure.repositories.key_value_stores import InMemoryKeyValueStore, JsonFileKeyValueStore
from infrastructure.security import InvalidTokenError, decode_access_token
from infrastructure.transports import SimulatedChannelTransport, HttpChannelTransport

# Tokens come from the external auth provider; there is no local login route
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


@dataclass
class ServiceContainer:
    settings: Settings
    store: KeyValueStore
    transport: ChannelTransport
    offer_service: SpecialOfferService
    rate_plan_service: RatePlanService
    sync_service: SyncService


def build_transport(settings: Settings) -> ChannelTransport:
    if settings.channel_transport == "http":
        if not settings.channel_api_url:
            raise ValueError("PMS_CHANNEL_API_URL is required for the http channel transport")
        return HttpChannelTransport(
            settings.channel_api_url, settings.channel_api_key, timeout=settings.sync_timeout_seconds
        )
    return SimulatedChannelTransport(
        rng=random.Random(),
        delay_seconds=settings.sync_delay_seconds,
        jitter_seconds=settings.sync_delay_jitter_seconds,
        failure_rate=settings.simulated_failure_rate,
    )


def build_container(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    transport: Optional[ChannelTransport] = None
) -> ServiceContainer:
    if store is None:
        store = JsonFileKeyValueStore(settings.storage_path) if settings.storage_path else InMemoryKeyValueStore()
    if transport is None:
        transport = build_transport(settings)

    offer_service = SpecialOfferService(KeyValueSpecialOfferRepository(store))
    rate_plan_service = RatePlanService(KeyValueRatePlanRepository(store), offer_service, settings.base_rates)
    sync_service = SyncService(
        KeyValueOfflineQueueRepository(store),
        KeyValueChannelBufferRepository(store),
        KeyValueConflictRepository(store),
        KeyValueSyncLogRepository(store, limit=settings.sync_log_limit),
        transport,
        timeout_seconds=settings.sync_timeout_seconds,
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        transport=transport,
        offer_service=offer_service,
        rate_plan_service=rate_plan_service,
        sync_service=sync_service,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_rate_plan_service(container: ServiceContainer = Depends(get_container)) -> RatePlanService:
    return container.rate_plan_service


def get_offer_service(container: ServiceContainer = Depends(get_container)) -> SpecialOfferService:
    return container.offer_service


def get_sync_service(container: ServiceContainer = Depends(get_container)) -> SyncService:
    return container.sync_service


async def get_current_operator(
    token: str = Depends(oauth2_scheme),
    container: ServiceContainer = Depends(get_container)
) -> Operator:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    settings = container.settings
    try:
        username = decode_access_token(token, settings.token_secret_key, settings.token_algorithm)
    except InvalidTokenError:
        raise credentials_exception
    return Operator(username=username)

"""Application settings, loaded from the environment (PMS_*) and .env"""
from decimal import Decimal
from typing import Callable, Dict, Optional

from pydantic_settings import BaseSettings

from domain.enums import RoomCategory


class Settings(BaseSettings):
    app_name: str = "Hotel PMS Core API"
    currency: str = "TRY"
    log_level: str = "INFO"

    # Pricing
    base_rates: Dict[RoomCategory, Decimal] = {
        RoomCategory.STANDARD: Decimal("1800"),
        RoomCategory.DELUXE: Decimal("2500"),
        RoomCategory.SUITE: Decimal("3500"),
        RoomCategory.FAMILY: Decimal("2800"),
        RoomCategory.KING: Decimal("2200"),
        RoomCategory.TWIN: Decimal("1800"),
    }

    # Storage; empty path keeps everything in memory
    storage_path: str = ""
    sync_log_limit: int = 100

    # Channel manager
    channel_transport: str = "simulated"  # "simulated" | "http"
    channel_api_url: str = ""
    channel_api_key: str = ""
    sync_timeout_seconds: float = 10.0
    sync_delay_seconds: float = 0.3
    sync_delay_jitter_seconds: float = 0.5
    simulated_failure_rate: float = 0.05

    # Bearer tokens are issued by the external auth provider
    token_secret_key: str = "change-me-in-production"
    token_algorithm: str = "HS256"

    model_config = {"env_prefix": "PMS_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class SettingsProvider:
    """Holds one Settings instance and rebuilds it on demand"""

    def __init__(self, factory: Callable[[], Settings] = Settings):
        self._factory = factory
        self._cached: Optional[Settings] = None

    def get(self) -> Settings:
        if self._cached is None:
            self._cached = self._factory()
        return self._cached

    def invalidate(self) -> None:
        self._cached = None

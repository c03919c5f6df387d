"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_API_VERSION = "2025-10"
DEFAULT_WINDOWS = (7, 14, 30)


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _float_env(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def parse_windows(value: str | None) -> tuple[int, ...]:
    if not value:
        return DEFAULT_WINDOWS
    windows = sorted({int(part) for part in value.split(",") if part.strip()})
    if not windows or windows[0] < 1:
        raise ValueError(f"Invalid SALES_WINDOWS value: {value!r}")
    return tuple(windows)


@dataclass(frozen=True, slots=True)
class Settings:
    api_version: str = DEFAULT_API_VERSION
    sales_windows: tuple[int, ...] = field(default=DEFAULT_WINDOWS)
    prediction_days: int = 15
    credential_cache_ttl: float = 300.0
    retry_max_retries: int = 5
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    inventory_batch_size: int = 50
    inventory_concurrency: int = 2
    page_delay: float = 0.1
    order_retention_days: int = 90
    sync_interval_hours: int = 6

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_version=os.environ.get("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
            sales_windows=parse_windows(os.environ.get("SALES_WINDOWS")),
            prediction_days=_int_env("PREDICTION_DAYS", 15),
            credential_cache_ttl=_float_env("CREDENTIAL_CACHE_TTL", 300.0),
            retry_max_retries=_int_env("RETRY_MAX_RETRIES", 5),
            retry_initial_delay=_float_env("RETRY_INITIAL_DELAY", 1.0),
            retry_max_delay=_float_env("RETRY_MAX_DELAY", 30.0),
            inventory_batch_size=_int_env("INVENTORY_BATCH_SIZE", 50),
            inventory_concurrency=_int_env("INVENTORY_CONCURRENCY", 2),
            page_delay=_float_env("PAGE_DELAY", 0.1),
            order_retention_days=_int_env("ORDER_RETENTION_DAYS", 90),
            sync_interval_hours=_int_env("SYNC_INTERVAL_HOURS", 6),
        )

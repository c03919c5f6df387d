"""Pre-emptive pacing against the shop's API quota."""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"
WARNING_UTILIZATION = 0.8
CRITICAL_UTILIZATION = 0.9


def parse_call_limit(value: str | None) -> float | None:
    """Return utilization from a ``used/limit`` header value."""
    if not value or "/" not in value:
        return None
    used, _, limit = value.partition("/")
    try:
        used_n = float(used)
        limit_n = float(limit)
    except ValueError:
        return None
    if limit_n <= 0:
        return None
    return used_n / limit_n


def throttle_status_utilization(payload: Mapping[str, Any] | None) -> float | None:
    if not payload:
        return None
    status = ((payload.get("extensions") or {}).get("cost") or {}).get("throttleStatus") or {}
    maximum = status.get("maximumAvailable")
    available = status.get("currentlyAvailable")
    if not maximum or available is None:
        return None
    return 1.0 - float(available) / float(maximum)


class QuotaPacer:
    """Turns observed quota utilization into an extra delay before the next call."""

    def __init__(self, *, warning_delay: float = 0.5, critical_delay: float = 2.0) -> None:
        self.warning_delay = warning_delay
        self.critical_delay = critical_delay

    def utilization(self, headers: Mapping[str, str], payload: Mapping[str, Any] | None) -> float | None:
        from_header = parse_call_limit(headers.get(CALL_LIMIT_HEADER))
        if from_header is not None:
            return from_header
        return throttle_status_utilization(payload)

    def delay_for(self, utilization: float | None) -> float:
        if utilization is None:
            return 0.0
        if utilization > CRITICAL_UTILIZATION:
            logger.warning("API quota at %.0f%%, pausing %.1fs", utilization * 100, self.critical_delay)
            return self.critical_delay
        if utilization > WARNING_UTILIZATION:
            logger.info("API quota at %.0f%%, pausing %.1fs", utilization * 100, self.warning_delay)
            return self.warning_delay
        return 0.0

"""Retrying executor for calls against the commerce API."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from restock.errors import RemoteProtocolError, ThrottledError
from restock.utils.rate_limit import QuotaPacer

logger = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (httpx.TransportError,)
THROTTLED_CODE = "THROTTLED"

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(slots=True)
class RetryPolicy:
    max_retries: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    retry_after_buffer: float = 0.5
    jitter: float = 0.0

    def backoff(self, attempt: int) -> float:
        return min(self.initial_delay * 2**attempt, self.max_delay)

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        if retry_after is not None:
            base = retry_after + self.retry_after_buffer
        else:
            base = self.backoff(attempt)
        if self.jitter:
            base += random.random() * self.jitter
        return base


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _is_throttled(errors: list[Any]) -> bool:
    for error in errors:
        if isinstance(error, dict) and (error.get("extensions") or {}).get("code") == THROTTLED_CODE:
            return True
    return False


def parse_response(response: httpx.Response) -> dict[str, Any]:
    """Decode a response or raise the matching remote error."""
    if response.status_code == 429:
        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        raise ThrottledError("HTTP 429 from API", retry_after=retry_after)
    if response.status_code >= 400:
        raise RemoteProtocolError(
            f"HTTP {response.status_code} from API: {response.text[:200]}",
            status_code=response.status_code,
        )
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RemoteProtocolError("Invalid JSON from API", status_code=response.status_code) from exc
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors:
        if not isinstance(errors, list):
            errors = [errors]
        if _is_throttled(errors):
            raise ThrottledError("Query throttled", retry_after=_parse_retry_after(response.headers.get("Retry-After")))
        raise RemoteProtocolError(f"API errors: {errors}", status_code=response.status_code, errors=errors)
    return payload


class RequestExecutor:
    """Runs a request with bounded retries on throttling and transient transport failures."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        pacer: QuotaPacer | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.pacer = pacer or QuotaPacer()
        self._sleep = sleep

    async def execute(self, request_fn: Callable[[], Awaitable[httpx.Response]]) -> dict[str, Any]:
        attempt = 0
        while True:
            try:
                response = await request_fn()
                payload = parse_response(response)
            except ThrottledError as exc:
                if attempt >= self.policy.max_retries:
                    logger.warning("Giving up after %s throttled attempts", attempt + 1)
                    raise
                delay = self.policy.delay_for(attempt, exc.retry_after)
                logger.warning("Throttled (attempt %s), retrying in %.2fs", attempt + 1, delay)
            except RETRY_EXCEPTIONS as exc:
                if attempt >= self.policy.max_retries:
                    raise RemoteProtocolError(f"Transport failure after {attempt + 1} attempts: {exc}") from exc
                delay = self.policy.delay_for(attempt)
                logger.warning("Transport error %s (attempt %s), retrying in %.2fs", exc, attempt + 1, delay)
            else:
                pause = self.pacer.delay_for(self.pacer.utilization(response.headers, payload))
                if pause:
                    await self._sleep(pause)
                return payload
            await self._sleep(delay)
            attempt += 1

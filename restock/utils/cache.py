"""Shop credential cache."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CredentialCache(Generic[V]):
    """TTL cache in front of a credential loader, keyed by store.

    Missing credentials are not cached, so a shop that finishes installing is
    picked up on the next lookup. Callers that change a credential must call
    :meth:`invalidate`.
    """

    def __init__(
        self,
        loader: Callable[[str], V | None],
        *,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._data: dict[str, tuple[V, float]] = {}
        self._lock = threading.Lock()

    def get(self, store: str) -> V | None:
        now = self._clock()
        with self._lock:
            cached = self._data.get(store)
            if cached and now - cached[1] <= self.ttl:
                return cached[0]
        value = self._loader(store)
        with self._lock:
            if value is None:
                self._data.pop(store, None)
            else:
                self._data[store] = (value, now)
        return value

    def invalidate(self, store: str) -> None:
        with self._lock:
            self._data.pop(store, None)
        logger.debug("Invalidated cached credential for %s", store)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

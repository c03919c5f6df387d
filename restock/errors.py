"""Error types raised by the restock core."""

from __future__ import annotations

from typing import Any, Sequence


class RestockError(RuntimeError):
    pass


class RemoteError(RestockError):
    """A call to the commerce API failed."""


class ThrottledError(RemoteError):
    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RemoteProtocolError(RemoteError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        errors: Sequence[Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = list(errors or [])


class CredentialMissingError(RestockError):
    def __init__(self, store: str) -> None:
        super().__init__(f"No access credential for {store}; complete the install flow first")
        self.store = store


class PersistenceError(RestockError):
    def __init__(self, message: str, *, failures: Sequence[tuple[Any, Exception]] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])

"""Custom exception hierarchy for storesync."""

from __future__ import annotations

from typing import Any


class StoreSyncError(Exception):
    """Base exception for all storesync errors."""


class SyncConfigError(StoreSyncError):
    """Invalid or missing configuration."""


class TransportError(StoreSyncError):
    """Backend request failed (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FetchError(StoreSyncError):
    """A full-collection pull for one entity kind failed.

    Never raised out of :meth:`storesync.fetcher.Fetcher.fetch_all`; it is
    carried on the returned :class:`~storesync.fetcher.FetchResult` so the
    caller can keep serving the previous snapshot.
    """

    def __init__(self, message: str, *, kind: Any) -> None:
        self.kind = kind
        super().__init__(message)


class SubscriptionError(StoreSyncError):
    """A change channel could not be opened or failed while open."""

    def __init__(self, message: str, *, kind: Any) -> None:
        self.kind = kind
        super().__init__(message)

"""High-level sync orchestrator for the storefront collections."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from storesync._constants import FETCH_WARNING_TEMPLATE, SUBSCRIPTION_WARNING_TEMPLATE
from storesync._mqtt import ChangeFeed, MqttChangeFeed
from storesync._transport import RemoteStore, RestRemoteStore
from storesync.config import SyncConfig
from storesync.exceptions import StoreSyncError, SubscriptionError
from storesync.fetcher import Fetcher, FetchResult, collection_specs
from storesync.state.events import EntityKind, RefreshSource, SnapshotUpdate
from storesync.state.store import ResourceStore
from storesync.subscriptions import Scheduler, SubscriptionHandle, SubscriptionManager

_logger = logging.getLogger(__name__)


class SyncService:
    """Keeps products, orders, users and reviews in step with the backend.

    Usage::

        async with SyncService(SyncConfig.from_env()) as sync:
            await sync.start()
            products = sync.entities(EntityKind.PRODUCT)

    :meth:`start` loads every kind concurrently and only then opens the
    change subscriptions, so a change-triggered refetch can never race
    the initial load. Each subscription coalesces bursts of notifications
    into one refetch of its kind. :meth:`stop` tears everything down;
    nothing is written to the store afterwards.

    Within a kind the last fetch to *complete* wins. There is no
    generation counter, so a slow early fetch that finishes after a
    faster later one overwrites it.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        remote: RemoteStore | None = None,
        feed: ChangeFeed | None = None,
        http_session: aiohttp.ClientSession | None = None,
        store: ResourceStore | None = None,
        scheduler: Scheduler | None = None,
        on_update: Callable[[EntityKind, tuple[Any, ...]], None] | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config or SyncConfig()
        self._remote = remote
        self._feed = feed
        self._owned_feed: MqttChangeFeed | None = None
        self._external_session = http_session is not None
        self._http_session = http_session
        self._store = store or ResourceStore()
        self._scheduler = scheduler
        self._on_update = on_update
        self._on_warning = on_warning
        self._collections = collection_specs(self._config.collections)
        self._fetcher: Fetcher | None = None
        self._subscriptions: SubscriptionManager | None = None
        self._background: set[asyncio.Task[FetchResult]] = set()
        self._loading = False
        self._started = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncService:
        loop = asyncio.get_running_loop()
        if self._remote is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._remote = RestRemoteStore(self._config, self._http_session)
        if self._feed is None and self._config.realtime_enabled:
            self._owned_feed = MqttChangeFeed.from_config(self._config, loop)
            self._feed = self._owned_feed
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.stop()
        if self._owned_feed is not None:
            self._owned_feed.close()
            self._owned_feed = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Consumer-facing state
    # ------------------------------------------------------------------

    @property
    def loading(self) -> bool:
        """True from :meth:`start` until the initial batch has settled."""
        return self._loading

    @property
    def started(self) -> bool:
        return self._started

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def store(self) -> ResourceStore:
        return self._store

    @property
    def subscription_status(self) -> dict[EntityKind, bool]:
        if self._subscriptions is None:
            return {kind: False for kind in EntityKind}
        return self._subscriptions.statuses()

    def entities(self, kind: EntityKind) -> tuple[Any, ...]:
        return self._store.entities(kind)

    def snapshot(self) -> dict[EntityKind, tuple[Any, ...]]:
        return self._store.snapshot()

    def kind_loading(self, kind: EntityKind) -> bool:
        """True while any fetch for *kind* is in flight (background ones included)."""
        return self._store.is_loading(kind)

    def last_error(self, kind: EntityKind) -> Exception | None:
        return self._store.last_error(kind)

    def subscription(self, kind: EntityKind) -> SubscriptionHandle | None:
        if self._subscriptions is None:
            return None
        return self._subscriptions.get(kind)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load every kind, then subscribe to changes."""
        if self._stopped:
            raise StoreSyncError("SyncService was stopped and cannot be restarted")
        if self._started:
            _logger.debug("SyncService already started")
            return
        fetcher = self._require_fetcher()
        self._started = True

        self._loading = True
        try:
            results = await asyncio.gather(*(self._fetch(fetcher, kind, RefreshSource.INITIAL) for kind in EntityKind))
        finally:
            self._loading = False
        _logger.debug(
            "Initial load settled: %s",
            {result.kind.value: (len(result.entities) if result.ok else "error") for result in results},
        )

        if self._stopped:
            return
        self._open_subscriptions()

    def stop(self) -> None:
        """Tear down every subscription and drop pending refetches. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        if self._subscriptions is not None:
            self._subscriptions.close_all()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        self._store.close()
        _logger.debug("SyncService stopped")

    async def refresh(self, kind: EntityKind | None = None) -> dict[EntityKind, FetchResult]:
        """Fetch one kind (or all of them) now, whatever the subscription state."""
        if self._stopped:
            raise StoreSyncError("SyncService is stopped")
        fetcher = self._require_fetcher()
        kinds = [kind] if kind is not None else list(EntityKind)
        results = await asyncio.gather(*(self._fetch(fetcher, k, RefreshSource.MANUAL) for k in kinds))
        return {result.kind: result for result in results}

    async def delete(self, kind: EntityKind, entity_id: str) -> FetchResult:
        """Delete one remote record, then refresh its kind.

        Backend errors propagate as :class:`~storesync.exceptions.TransportError`.
        """
        if self._stopped:
            raise StoreSyncError("SyncService is stopped")
        fetcher = self._require_fetcher()
        assert self._remote is not None  # noqa: S101
        await self._remote.delete(self._collections[kind].name, entity_id)
        _logger.debug("Deleted %s %s", kind, entity_id)
        return await self._fetch(fetcher, kind, RefreshSource.MANUAL)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_fetcher(self) -> Fetcher:
        if self._fetcher is None:
            if self._remote is None:
                raise StoreSyncError("Service not initialized. Use 'async with SyncService(...)' or pass remote=")
            self._fetcher = Fetcher(self._remote, collections=self._collections)
        return self._fetcher

    async def _fetch(self, fetcher: Fetcher, kind: EntityKind, source: RefreshSource) -> FetchResult:
        self._store.begin_fetch(kind)
        try:
            result = await fetcher.fetch_all(kind)
        finally:
            self._store.end_fetch(kind)
        self._apply(result, source)
        return result

    def _apply(self, result: FetchResult, source: RefreshSource) -> None:
        if self._stopped:
            _logger.debug("Discarding %s %s fetch: service stopped", source, result.kind)
            return
        if result.error is not None:
            self._store.record_failure(result.kind, result.error)
            _logger.warning("%s refresh (%s) failed; keeping previous snapshot: %s", result.kind, source, result.error)
            self._warn(FETCH_WARNING_TEMPLATE.format(label=result.kind.label))
            return

        self._store.apply(SnapshotUpdate(kind=result.kind, source=source, entities=result.entities))
        if self._on_update is not None:
            try:
                self._on_update(result.kind, result.entities)
            except Exception:
                _logger.debug("on_update callback failed", exc_info=True)

    def _warn(self, message: str) -> None:
        if self._on_warning is None:
            return
        try:
            self._on_warning(message)
        except Exception:
            _logger.debug("on_warning callback failed", exc_info=True)

    def _open_subscriptions(self) -> None:
        if self._feed is None:
            _logger.debug("Realtime disabled; refreshing on demand only")
            return
        manager = SubscriptionManager(
            self._feed,
            collections={kind: spec.name for kind, spec in self._collections.items()},
            debounce_seconds=self._config.debounce_seconds,
            scheduler=self._scheduler,
            on_error=self._on_subscription_error,
        )
        self._subscriptions = manager
        for kind in EntityKind:
            manager.subscribe(kind, self._on_remote_change)

    def _on_remote_change(self, kind: EntityKind) -> None:
        if self._stopped:
            return
        fetcher = self._require_fetcher()
        task = asyncio.get_running_loop().create_task(self._fetch(fetcher, kind, RefreshSource.CHANGE))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_subscription_error(self, error: SubscriptionError) -> None:
        if self._stopped:
            return
        self._warn(SUBSCRIPTION_WARNING_TEMPLATE.format(label=EntityKind(error.kind).label))

"""Per-kind change subscriptions.

Owns:
- the debounce state machine that coalesces bursts of change notifications
- :class:`SubscriptionHandle`, one channel's lifecycle (status, timer, teardown)
- :class:`SubscriptionManager`, which keeps at most one live handle per kind
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Protocol

from storesync._constants import DEFAULT_DEBOUNCE_SECONDS
from storesync._mqtt import ChangeChannel, ChangeFeed, ChangeNotification, ChannelStatus
from storesync.exceptions import SubscriptionError
from storesync.state.events import EntityKind

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an asyncio event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class SubscriptionStatus(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    ERRORED = "errored"
    CLOSED = "closed"


class DebounceState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


class Debouncer:
    """Run *callback* once after *delay* seconds without another :meth:`trigger`.

    ``IDLE --trigger--> ARMED --quiet period--> FIRED``; a trigger while
    ``ARMED`` restarts the quiet period, a trigger after ``FIRED`` arms a
    new round. :meth:`cancel` drops an armed timer.
    """

    def __init__(self, delay: float, callback: Callable[[], None], scheduler: Scheduler) -> None:
        self._delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._timer: TimerHandle | None = None
        self.state = DebounceState.IDLE

    def trigger(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler.call_later(self._delay, self._fire)
        self.state = DebounceState.ARMED

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.state == DebounceState.ARMED:
            self.state = DebounceState.IDLE

    def _fire(self) -> None:
        self._timer = None
        self.state = DebounceState.FIRED
        self._callback()


class SubscriptionHandle:
    """Lifecycle of one kind's change channel.

    ``IDLE -> CONNECTING -> {SUBSCRIBED, ERRORED} -> CLOSED``. The channel
    may move between ``SUBSCRIBED`` and ``ERRORED`` as the transport drops
    and reconnects; ``CLOSED`` is terminal and only reached through
    :meth:`teardown`.
    """

    def __init__(
        self,
        kind: EntityKind,
        collection: str,
        *,
        on_change: Callable[[EntityKind], None],
        scheduler: Scheduler,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_error: Callable[[SubscriptionError], None] | None = None,
    ) -> None:
        self.kind = kind
        self.collection = collection
        self._on_change = on_change
        self._on_error = on_error
        self._debouncer = Debouncer(debounce_seconds, self._quiet_period_elapsed, scheduler)
        self._channel: ChangeChannel | None = None
        self.status = SubscriptionStatus.IDLE
        self.notifications_received = 0

    @property
    def debounce_state(self) -> DebounceState:
        return self._debouncer.state

    @property
    def is_subscribed(self) -> bool:
        return self.status == SubscriptionStatus.SUBSCRIBED

    @property
    def closed(self) -> bool:
        return self.status == SubscriptionStatus.CLOSED

    def open(self, feed: ChangeFeed) -> None:
        """Open the channel on *feed*. Failures leave the handle ``ERRORED``."""
        if self.status != SubscriptionStatus.IDLE:
            raise RuntimeError(f"{self.kind} subscription already opened (status={self.status})")
        self.status = SubscriptionStatus.CONNECTING
        try:
            self._channel = feed.subscribe_to_changes(self.collection, self._on_notification, self._on_channel_status)
        except Exception as exc:
            self._fail(f"could not open channel for {self.collection}: {exc}", cause=exc)

    def teardown(self) -> None:
        """Cancel the pending refetch and release the channel. Safe to repeat."""
        if self.status == SubscriptionStatus.CLOSED:
            return
        self.status = SubscriptionStatus.CLOSED
        self._debouncer.cancel()
        channel = self._channel
        self._channel = None
        if channel is None:
            return
        try:
            channel.close()
        except Exception:
            _logger.warning("Closing %s channel failed", self.kind, exc_info=True)
        _logger.debug("%s subscription closed", self.kind)

    def _on_notification(self, notification: ChangeNotification) -> None:
        if self.status != SubscriptionStatus.SUBSCRIBED:
            _logger.debug("Ignoring %s change while %s", self.kind, self.status)
            return
        self.notifications_received += 1
        _logger.debug("%s change event=%s; debouncing", self.kind, notification.event_type)
        self._debouncer.trigger()

    def _on_channel_status(self, status: ChannelStatus) -> None:
        if self.status == SubscriptionStatus.CLOSED:
            return
        if status == ChannelStatus.SUBSCRIBED:
            if self.status != SubscriptionStatus.SUBSCRIBED:
                _logger.debug("%s subscription live", self.kind)
            self.status = SubscriptionStatus.SUBSCRIBED
        elif status == ChannelStatus.CONNECTING:
            self.status = SubscriptionStatus.CONNECTING
        elif status == ChannelStatus.ERRORED:
            self._fail(f"channel for {self.collection} reported an error")
        else:
            # Closed from the remote side; only teardown() makes a handle CLOSED.
            self._fail(f"channel for {self.collection} closed by the remote side")

    def _quiet_period_elapsed(self) -> None:
        if self.status == SubscriptionStatus.CLOSED:
            return
        self._on_change(self.kind)

    def _fail(self, message: str, *, cause: Exception | None = None) -> None:
        self.status = SubscriptionStatus.ERRORED
        error = SubscriptionError(message, kind=self.kind)
        if cause is not None:
            error.__cause__ = cause
        _logger.warning("%s subscription error: %s", self.kind, message)
        if self._on_error is not None:
            self._on_error(error)


class SubscriptionManager:
    """Creates, replaces and tears down handles: at most one live handle per kind."""

    def __init__(
        self,
        feed: ChangeFeed,
        *,
        collections: Mapping[EntityKind, str],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        scheduler: Scheduler | None = None,
        on_error: Callable[[SubscriptionError], None] | None = None,
    ) -> None:
        self._feed = feed
        self._collections = dict(collections)
        self._debounce_seconds = debounce_seconds
        self._scheduler = scheduler
        self._on_error = on_error
        self._handles: dict[EntityKind, SubscriptionHandle] = {}

    def subscribe(self, kind: EntityKind, on_change: Callable[[EntityKind], None]) -> SubscriptionHandle:
        """Open a fresh subscription for *kind*, tearing down any previous one first."""
        previous = self._handles.pop(kind, None)
        if previous is not None:
            _logger.debug("Replacing %s subscription (status=%s)", kind, previous.status)
            previous.teardown()

        handle = SubscriptionHandle(
            kind,
            self._collections[kind],
            on_change=on_change,
            scheduler=self._scheduler or asyncio.get_running_loop(),
            debounce_seconds=self._debounce_seconds,
            on_error=self._on_error,
        )
        self._handles[kind] = handle
        handle.open(self._feed)
        return handle

    def get(self, kind: EntityKind) -> SubscriptionHandle | None:
        return self._handles.get(kind)

    def unsubscribe(self, kind: EntityKind) -> None:
        handle = self._handles.pop(kind, None)
        if handle is not None:
            handle.teardown()

    def close_all(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.teardown()

    def statuses(self) -> dict[EntityKind, bool]:
        """``True`` for every kind whose handle is currently ``SUBSCRIBED``."""
        return {kind: (self._handles[kind].is_subscribed if kind in self._handles else False) for kind in EntityKind}

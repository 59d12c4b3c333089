"""In-memory stand-ins for the backend, the change feed and the event loop timer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from storesync._mqtt import ChangeNotification, ChannelStatus
from storesync.exceptions import TransportError


class _Timer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for ``loop.call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[_Timer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self.timers if not t.cancelled and t.when <= self.now + 1e-9),
            key=lambda t: t.when,
        )
        for timer in due:
            self.timers.remove(timer)
            timer.callback()

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t.cancelled)


@dataclass
class FakeChannel:
    collection: str
    on_change: Callable[[ChangeNotification], None]
    on_status: Callable[[ChannelStatus], None]
    close_calls: int = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def close(self) -> None:
        self.close_calls += 1


class FakeFeed:
    def __init__(self, *, auto_subscribe: bool = True, failing: tuple[str, ...] = ()) -> None:
        self.auto_subscribe = auto_subscribe
        self.failing = failing
        self.channels: list[FakeChannel] = []

    def subscribe_to_changes(
        self,
        collection: str,
        on_change: Callable[[ChangeNotification], None],
        on_status: Callable[[ChannelStatus], None],
    ) -> FakeChannel:
        if collection in self.failing:
            raise ConnectionError("broker unreachable")
        channel = FakeChannel(collection, on_change, on_status)
        self.channels.append(channel)
        on_status(ChannelStatus.CONNECTING)
        if self.auto_subscribe:
            on_status(ChannelStatus.SUBSCRIBED)
        return channel

    def live(self, collection: str) -> list[FakeChannel]:
        return [c for c in self.channels if c.collection == collection and not c.closed]

    def emit(self, collection: str, event_type: str = "UPDATE") -> None:
        for channel in self.live(collection):
            channel.on_change(ChangeNotification(event_type=event_type, collection=collection))


@dataclass
class FakeRemote:
    """Backend double recording every listing call.

    ``gates`` holds a collection's next listings until the event is set;
    ``failing`` collections answer with a 503.
    """

    rows: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    calls: list[tuple[str, str, str]] = field(default_factory=list)
    deleted: list[tuple[str, str]] = field(default_factory=list)

    def count(self, collection: str) -> int:
        return sum(1 for call in self.calls if call[0] == collection)

    async def list(self, collection: str, order_by: str, direction: str) -> list[dict[str, Any]]:
        self.calls.append((collection, order_by, direction))
        snapshot = [dict(row) for row in self.rows.get(collection, [])]
        gate = self.gates.get(collection)
        if gate is not None:
            await gate.wait()
        if collection in self.failing:
            raise TransportError(f"HTTP 503 from {collection}", status_code=503, endpoint=collection)
        return snapshot

    async def delete(self, collection: str, entity_id: str) -> None:
        self.deleted.append((collection, entity_id))
        self.rows[collection] = [row for row in self.rows.get(collection, []) if row.get("id") != entity_id]


def make_rows(prefix: str, count: int, **extra: Any) -> list[dict[str, Any]]:
    return [{"id": f"{prefix}-{i}", "created_at": f"2026-01-0{i + 1}T00:00:00Z", **extra} for i in range(count)]


async def drain(rounds: int = 5) -> None:
    """Let tasks scheduled on the running loop make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)

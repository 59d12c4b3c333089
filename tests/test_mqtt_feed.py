from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import paho.mqtt.client as mqtt
import pytest
from fakes import drain

from storesync._mqtt import ChangeNotification, ChannelStatus, MqttChangeFeed, parse_change_message
from storesync.config import SyncConfig
from storesync.exceptions import SyncConfigError


@dataclass
class _ReasonCode:
    is_failure: bool = False


@dataclass
class _Message:
    topic: str
    payload: bytes


class _FakeClient:
    def __init__(self, subscribe_rc: int = mqtt.MQTT_ERR_SUCCESS) -> None:
        self.subscribe_rc = subscribe_rc
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.disconnected = False
        self.loop_stopped = False

    def subscribe(self, topic: str, qos: int = 0) -> tuple[int, int]:
        self.subscribed.append(topic)
        return self.subscribe_rc, len(self.subscribed)

    def unsubscribe(self, topic: str) -> None:
        self.unsubscribed.append(topic)

    def disconnect(self) -> None:
        self.disconnected = True

    def loop_stop(self) -> None:
        self.loop_stopped = True


class _Recorder:
    def __init__(self) -> None:
        self.statuses: list[ChannelStatus] = []
        self.changes: list[ChangeNotification] = []


def _feed(client: _FakeClient) -> MqttChangeFeed:
    feed = MqttChangeFeed(loop=asyncio.get_running_loop(), host="broker.local", topic_prefix="shop/changes/")
    # Skip the real network loop.
    feed._client = client  # type: ignore[assignment]
    return feed


def _open(feed: MqttChangeFeed, collection: str) -> tuple[Any, _Recorder]:
    recorder = _Recorder()
    channel = feed.subscribe_to_changes(collection, recorder.changes.append, recorder.statuses.append)
    return channel, recorder


# ------------------------------------------------------------------
# Message parsing
# ------------------------------------------------------------------


def test_parse_change_message_spellings() -> None:
    camel = parse_change_message("shop/changes/orders", json.dumps({"eventType": "insert"}).encode())
    trigger = parse_change_message("x/y", json.dumps({"type": "DELETE", "table": "reviews"}).encode())
    empty = parse_change_message("shop/changes/users", b"")

    assert camel == ChangeNotification(event_type="INSERT", collection="orders", payload={"eventType": "insert"})
    assert trigger.collection == "reviews"
    assert trigger.event_type == "DELETE"
    assert empty.collection == "users"
    assert empty.event_type == ""


def test_parse_change_message_rejects_non_objects() -> None:
    with pytest.raises(ValueError):
        parse_change_message("shop/changes/orders", b"[1, 2]")
    with pytest.raises(ValueError):
        parse_change_message("shop/changes/orders", b"not json")


@pytest.mark.asyncio
async def test_from_config_requires_broker_host() -> None:
    with pytest.raises(SyncConfigError):
        MqttChangeFeed.from_config(SyncConfig(), asyncio.get_running_loop())


@pytest.mark.asyncio
async def test_from_config_builds_topics_from_prefix() -> None:
    config = SyncConfig(mqtt_host="broker.local", mqtt_topic_prefix="shop/live")
    feed = MqttChangeFeed.from_config(config, asyncio.get_running_loop())

    assert feed.topic_for("orders") == "shop/live/orders"
    assert not feed.is_running


# ------------------------------------------------------------------
# Channel lifecycle
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_channel_subscribes_on_connect_and_reports_status() -> None:
    client = _FakeClient()
    feed = _feed(client)
    _channel, recorder = _open(feed, "products")

    assert recorder.statuses == [ChannelStatus.CONNECTING]
    assert client.subscribed == []

    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    assert client.subscribed == ["shop/changes/products"]
    feed._on_subscribe(client, None, 1, [_ReasonCode()], None)  # type: ignore[arg-type]
    await drain()

    assert recorder.statuses == [ChannelStatus.CONNECTING, ChannelStatus.SUBSCRIBED]


@pytest.mark.asyncio
async def test_messages_reach_only_their_channel() -> None:
    client = _FakeClient()
    feed = _feed(client)
    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    _products, products = _open(feed, "products")
    _orders, orders = _open(feed, "orders")

    feed._on_message(client, None, _Message("shop/changes/orders", b'{"eventType": "UPDATE"}'))  # type: ignore[arg-type]
    feed._on_message(client, None, _Message("shop/changes/orders", b"garbage"))  # type: ignore[arg-type]
    feed._on_message(client, None, _Message("shop/changes/unknown", b"{}"))  # type: ignore[arg-type]
    await drain()

    assert products.changes == []
    assert [c.event_type for c in orders.changes] == ["UPDATE"]


@pytest.mark.asyncio
async def test_refused_subscription_and_disconnect_report_errored() -> None:
    client = _FakeClient()
    feed = _feed(client)
    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    _channel, recorder = _open(feed, "reviews")

    feed._on_subscribe(client, None, 1, [_ReasonCode(is_failure=True)], None)  # type: ignore[arg-type]
    feed._on_disconnect(client, None, None, _ReasonCode(is_failure=True), None)  # type: ignore[arg-type]
    feed._on_disconnect(client, None, None, _ReasonCode(is_failure=True), None)  # type: ignore[arg-type]
    await drain()

    assert recorder.statuses == [ChannelStatus.CONNECTING, ChannelStatus.ERRORED, ChannelStatus.ERRORED]


@pytest.mark.asyncio
async def test_failed_connect_and_failed_subscribe_call_report_errored() -> None:
    client = _FakeClient(subscribe_rc=mqtt.MQTT_ERR_NO_CONN)
    feed = _feed(client)
    _channel, recorder = _open(feed, "users")

    feed._on_connect(client, None, None, _ReasonCode(is_failure=True), None)  # type: ignore[arg-type]
    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    await drain()

    assert recorder.statuses == [ChannelStatus.CONNECTING, ChannelStatus.ERRORED, ChannelStatus.ERRORED]


@pytest.mark.asyncio
async def test_closed_channel_unsubscribes_and_goes_quiet() -> None:
    client = _FakeClient()
    feed = _feed(client)
    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    channel, recorder = _open(feed, "products")

    channel.close()
    channel.close()
    feed._on_subscribe(client, None, 1, [_ReasonCode()], None)  # type: ignore[arg-type]
    feed._on_message(client, None, _Message("shop/changes/products", b"{}"))  # type: ignore[arg-type]
    await drain()

    assert channel.closed
    assert client.unsubscribed == ["shop/changes/products"]
    assert recorder.statuses == [ChannelStatus.CONNECTING]
    assert recorder.changes == []


@pytest.mark.asyncio
async def test_resubscribing_a_topic_replaces_the_old_channel() -> None:
    client = _FakeClient()
    feed = _feed(client)
    first, _ = _open(feed, "orders")
    second, recorder = _open(feed, "orders")

    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]
    feed._on_message(client, None, _Message("shop/changes/orders", b"{}"))  # type: ignore[arg-type]
    await drain()

    assert first.closed
    assert not second.closed
    assert client.subscribed == ["shop/changes/orders"]
    assert len(recorder.changes) == 1


@pytest.mark.asyncio
async def test_close_stops_network_loop() -> None:
    client = _FakeClient()
    feed = _feed(client)
    channel, _ = _open(feed, "products")

    feed.close()

    assert channel.closed
    assert client.disconnected
    assert client.loop_stopped
    assert not feed.is_running


class _InlineAckClient(_FakeClient):
    """Delivers the SUBACK before ``subscribe()`` returns."""

    def __init__(self, refuse: bool = False) -> None:
        super().__init__()
        self.refuse = refuse
        self.on_subscribe: Any = None

    def subscribe(self, topic: str, qos: int = 0) -> tuple[int, int]:
        rc, mid = super().subscribe(topic, qos)
        self.on_subscribe(self, None, mid, [_ReasonCode(is_failure=self.refuse)], None)
        return rc, mid


@pytest.mark.asyncio
@pytest.mark.parametrize(("refuse", "expected"), [(False, ChannelStatus.SUBSCRIBED), (True, ChannelStatus.ERRORED)])
async def test_suback_before_subscribe_returns_still_settles_channel(refuse: bool, expected: ChannelStatus) -> None:
    client = _InlineAckClient(refuse=refuse)
    feed = _feed(client)
    client.on_subscribe = feed._on_subscribe
    feed._on_connect(client, None, None, _ReasonCode(), None)  # type: ignore[arg-type]

    _channel, recorder = _open(feed, "orders")
    await drain()

    assert recorder.statuses == [ChannelStatus.CONNECTING, expected]
    assert feed._pending_subs == {}  # type: ignore[attr-defined]
    assert feed._early_acks == {}  # type: ignore[attr-defined]

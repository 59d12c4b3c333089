"""Change-notification channels over MQTT.

The backend publishes one message per row change on
``<topic_prefix>/<collection>``. This module exposes those messages as
per-collection channels with an explicit status stream and close handle.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from storesync._constants import DEFAULT_MQTT_PORT, DEFAULT_TOPIC_PREFIX
from storesync.config import SyncConfig
from storesync.exceptions import SyncConfigError


class ChannelStatus(StrEnum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    ERRORED = "errored"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChangeNotification:
    """One remote change, as delivered by a channel."""

    event_type: str
    collection: str
    payload: dict[str, Any] = field(default_factory=dict)


class ChangeChannel(Protocol):
    def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Structural interface of the change-notification collaborator."""

    def subscribe_to_changes(
        self,
        collection: str,
        on_change: Callable[[ChangeNotification], None],
        on_status: Callable[[ChannelStatus], None],
    ) -> ChangeChannel:
        ...


def parse_change_message(topic: str, payload: bytes) -> ChangeNotification:
    """Decode an MQTT change message.

    Accepts ``{"eventType", "collectionName"}`` as well as the
    ``{"type", "table"}`` spelling used by database triggers. The
    collection defaults to the last topic segment.
    """
    parsed = json.loads(payload.decode("utf-8")) if payload else {}
    if not isinstance(parsed, dict):
        raise ValueError("change message is not a JSON object")
    event_type = str(parsed.get("eventType") or parsed.get("type") or "")
    collection = str(parsed.get("collectionName") or parsed.get("table") or topic.rsplit("/", 1)[-1])
    return ChangeNotification(event_type=event_type.upper(), collection=collection, payload=parsed)


class MqttChannel:
    """One collection's subscription on a shared :class:`MqttChangeFeed`."""

    def __init__(
        self,
        feed: MqttChangeFeed,
        *,
        collection: str,
        topic: str,
        on_change: Callable[[ChangeNotification], None],
        on_status: Callable[[ChannelStatus], None],
    ) -> None:
        self._feed = feed
        self.collection = collection
        self.topic = topic
        self._on_change = on_change
        self._on_status = on_status
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._release(self)

    def _deliver(self, notification: ChangeNotification) -> None:
        if not self._closed:
            self._on_change(notification)

    def _report(self, status: ChannelStatus) -> None:
        if not self._closed:
            self._on_status(status)


class MqttChangeFeed:
    """Threaded paho-mqtt client that hands change messages to an asyncio loop.

    One broker connection is shared by every channel. paho reconnects on
    its own after a drop; channels report ``ERRORED`` while disconnected
    and ``SUBSCRIBED`` again once their topic is re-acknowledged.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        host: str,
        port: int = DEFAULT_MQTT_PORT,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
        username: str | None = None,
        password: str | None = None,
        tls: bool = True,
        keepalive: int = 120,
        client_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._host = host
        self._port = port
        self._topic_prefix = topic_prefix.rstrip("/")
        self._username = username
        self._password = password
        self._tls = tls
        self._keepalive = keepalive
        self._client_id = client_id or f"storesync-{secrets.token_hex(6)}"
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._connected = False
        self._lock = threading.RLock()
        self._channels: dict[str, MqttChannel] = {}
        self._pending_subs: dict[int, str] = {}
        self._early_acks: dict[int, list[Any]] = {}

    @classmethod
    def from_config(cls, config: SyncConfig, loop: asyncio.AbstractEventLoop) -> MqttChangeFeed:
        if not config.mqtt_host:
            raise SyncConfigError("mqtt_host is required when realtime_enabled is set")
        return cls(
            loop=loop,
            host=config.mqtt_host,
            port=config.mqtt_port,
            topic_prefix=config.mqtt_topic_prefix,
            username=config.mqtt_username,
            password=config.mqtt_password,
            tls=config.mqtt_tls,
            keepalive=config.mqtt_keepalive,
        )

    @property
    def is_running(self) -> bool:
        return self._client is not None

    def topic_for(self, collection: str) -> str:
        return f"{self._topic_prefix}/{collection}"

    def subscribe_to_changes(
        self,
        collection: str,
        on_change: Callable[[ChangeNotification], None],
        on_status: Callable[[ChannelStatus], None],
    ) -> MqttChannel:
        """Open a channel for *collection*; replaces any channel on the same topic."""
        topic = self.topic_for(collection)
        channel = MqttChannel(self, collection=collection, topic=topic, on_change=on_change, on_status=on_status)
        with self._lock:
            previous = self._channels.get(topic)
            self._channels[topic] = channel
            connected = self._connected
        if previous is not None:
            previous._closed = True
        on_status(ChannelStatus.CONNECTING)

        client = self._ensure_client()
        if connected:
            self._subscribe(client, channel)
        return channel

    def close(self) -> None:
        """Close every channel and stop the network loop."""
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
            self._pending_subs.clear()
            self._early_acks.clear()
            client = self._client
            self._client = None
            self._connected = False
        for channel in channels:
            channel._closed = True

        if client is None:
            return
        try:
            self._logger.debug("MQTT disconnect requested")
            client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_client(self) -> mqtt.Client:
        if self._client is not None:
            return self._client

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if self._username:
            client.username_pw_set(self._username, self._password)
        if self._tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        client.on_disconnect = self._on_disconnect

        self._logger.debug(
            "MQTT start host=%s port=%s prefix=%s client_id=%s",
            self._host,
            self._port,
            self._topic_prefix,
            self._client_id,
        )
        client.connect_async(self._host, self._port, keepalive=self._keepalive)
        client.loop_start()
        self._client = client
        return client

    def _release(self, channel: MqttChannel) -> None:
        with self._lock:
            if self._channels.get(channel.topic) is not channel:
                return
            del self._channels[channel.topic]
            client = self._client if self._connected else None
        if client is not None:
            self._logger.debug("MQTT unsubscribing topic=%s", channel.topic)
            client.unsubscribe(channel.topic)

    def _subscribe(self, client: mqtt.Client, channel: MqttChannel) -> None:
        # The SUBACK may be handled before subscribe() returns; _on_subscribe
        # waits on the lock until the mid is recorded.
        with self._lock:
            result, mid = client.subscribe(channel.topic, qos=1)
            if result == mqtt.MQTT_ERR_SUCCESS:
                self._pending_subs[mid] = channel.topic
                early_ack = self._early_acks.pop(mid, None)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT subscribe failed topic=%s rc=%s", channel.topic, result)
            self._dispatch(channel._report, ChannelStatus.ERRORED)
            return
        self._logger.debug("MQTT subscribing topic=%s mid=%s", channel.topic, mid)
        if early_ack is not None:
            self._settle_subscription(mid, early_ack)

    def _dispatch(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            self._logger.debug("Event loop closed; dropping MQTT callback")

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        with self._lock:
            channels = list(self._channels.values())
            self._connected = not reason_code.is_failure
            self._early_acks.clear()
        if reason_code.is_failure:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            for channel in channels:
                self._dispatch(channel._report, ChannelStatus.ERRORED)
            return
        self._logger.debug("MQTT connected reason=%s", reason_code)
        for channel in channels:
            self._subscribe(client, channel)

    def _on_subscribe(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        _properties: Any,
    ) -> None:
        with self._lock:
            if mid not in self._pending_subs:
                # Acknowledged from inside subscribe() on this thread.
                self._early_acks[mid] = list(reason_code_list)
                return
        self._settle_subscription(mid, reason_code_list)

    def _settle_subscription(self, mid: int, reason_code_list: list[Any]) -> None:
        with self._lock:
            topic = self._pending_subs.pop(mid, None)
            channel = self._channels.get(topic) if topic is not None else None
        if channel is None:
            return
        if any(rc.is_failure for rc in reason_code_list):
            self._logger.warning("MQTT subscription refused topic=%s codes=%s", topic, reason_code_list)
            self._dispatch(channel._report, ChannelStatus.ERRORED)
            return
        self._dispatch(channel._report, ChannelStatus.SUBSCRIBED)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        with self._lock:
            channel = self._channels.get(msg.topic)
        if channel is None:
            return
        try:
            notification = parse_change_message(msg.topic, msg.payload)
        except ValueError:
            self._logger.debug("MQTT change message parse failure topic=%s", msg.topic, exc_info=True)
            return
        self._logger.debug("MQTT change topic=%s event=%s", msg.topic, notification.event_type)
        self._dispatch(channel._deliver, notification)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        with self._lock:
            was_connected = self._connected
            self._connected = False
            channels = list(self._channels.values())
        if not was_connected:
            return
        self._logger.debug("MQTT disconnected: %s", reason_code)
        for channel in channels:
            self._dispatch(channel._report, ChannelStatus.ERRORED)

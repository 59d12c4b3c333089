"""Client configuration for storesync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from storesync._constants import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_MQTT_PORT, DEFAULT_TOPIC_PREFIX
from storesync.exceptions import SyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, raw: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(raw)
    except ValueError as exc:
        raise SyncConfigError(f"{env_key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class CollectionNames:
    """Remote collection (table) backing each entity kind."""

    products: str = "products"
    orders: str = "orders"
    users: str = "users"
    reviews: str = "reviews"


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Synchronization layer configuration.

    Parameters
    ----------
    base_url : str
        Root URL of the hosted backend (e.g. ``https://xyz.supabase.co``).
    api_key : str
        Backend API key, sent as ``apikey`` and bearer token.
    debounce_seconds : float
        Quiet period after the last change notification before a
        coalesced refetch runs. Defaults to 0.5 s.
    realtime_enabled : bool
        Open change subscriptions after the initial load. When disabled
        the service only refreshes on demand.
    mqtt_host : str or None
        Change-notification broker host. Required when ``realtime_enabled``
        is set and no change feed is injected.
    mqtt_port : int
        Broker port.
    mqtt_username, mqtt_password : str or None
        Broker credentials.
    mqtt_tls : bool
        Wrap the broker connection in TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topic_prefix : str
        Topic prefix; each collection publishes on ``<prefix>/<collection>``.
    collections : CollectionNames
        Remote collection names.
    """

    base_url: str = ""
    api_key: str = ""
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    realtime_enabled: bool = True
    mqtt_host: str | None = None
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = True
    mqtt_keepalive: int = 120
    mqtt_topic_prefix: str = DEFAULT_TOPIC_PREFIX
    collections: CollectionNames = dataclasses.field(default_factory=CollectionNames)

    def __post_init__(self) -> None:
        if self.debounce_seconds < 0:
            raise SyncConfigError(f"debounce_seconds must be >= 0, got {self.debounce_seconds}")
        if not 0 < self.mqtt_port < 65536:
            raise SyncConfigError(f"mqtt_port out of range: {self.mqtt_port}")

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from ``STORESYNC_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        collection_kwargs: dict[str, str] = {}
        _ENV_COLLECTION_MAP = {
            "STORESYNC_PRODUCTS_COLLECTION": "products",
            "STORESYNC_ORDERS_COLLECTION": "orders",
            "STORESYNC_USERS_COLLECTION": "users",
            "STORESYNC_REVIEWS_COLLECTION": "reviews",
        }
        for env_key, field_name in _ENV_COLLECTION_MAP.items():
            val = env.get(env_key)
            if val is not None:
                collection_kwargs[field_name] = val

        collection_overrides = overrides.pop("collections", None)
        if isinstance(collection_overrides, dict):
            collection_kwargs.update(collection_overrides)
        elif isinstance(collection_overrides, CollectionNames):
            collection_kwargs = dataclasses.asdict(collection_overrides)

        _ENV_CONFIG_MAP = {
            "STORESYNC_BASE_URL": "base_url",
            "STORESYNC_API_KEY": "api_key",
            "STORESYNC_MQTT_HOST": "mqtt_host",
            "STORESYNC_MQTT_USERNAME": "mqtt_username",
            "STORESYNC_MQTT_PASSWORD": "mqtt_password",
            "STORESYNC_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
        }
        config_kwargs: dict[str, Any] = {"collections": CollectionNames(**collection_kwargs)}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "STORESYNC_DEBOUNCE_SECONDS": ("debounce_seconds", float),
            "STORESYNC_MQTT_PORT": ("mqtt_port", int),
            "STORESYNC_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("STORESYNC_REALTIME_ENABLED"), True)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("STORESYNC_MQTT_TLS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

"""storesync - Live synchronization of storefront collections with a hosted backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("storesync")
except PackageNotFoundError:
    __version__ = "0+local"
from storesync._mqtt import ChangeNotification, ChannelStatus, MqttChangeFeed
from storesync._transport import RestRemoteStore
from storesync.cart import ActionGate, Cart, CartGate, GateResult, PendingAction
from storesync.config import CollectionNames, SyncConfig
from storesync.exceptions import (
    FetchError,
    StoreSyncError,
    SubscriptionError,
    SyncConfigError,
    TransportError,
)
from storesync.fetcher import Fetcher, FetchResult
from storesync.ingestion.entities import batch_normalize, normalize
from storesync.models import CanonicalModel, Order, Product, Review, User
from storesync.service import SyncService
from storesync.state.events import EntityKind
from storesync.state.store import ResourceStore
from storesync.subscriptions import (
    DebounceState,
    SubscriptionHandle,
    SubscriptionManager,
    SubscriptionStatus,
)

__all__ = [
    "__version__",
    "ActionGate",
    "CanonicalModel",
    "Cart",
    "CartGate",
    "ChangeNotification",
    "ChannelStatus",
    "CollectionNames",
    "DebounceState",
    "EntityKind",
    "FetchError",
    "FetchResult",
    "Fetcher",
    "GateResult",
    "MqttChangeFeed",
    "Order",
    "PendingAction",
    "Product",
    "ResourceStore",
    "RestRemoteStore",
    "Review",
    "StoreSyncError",
    "SubscriptionError",
    "SubscriptionHandle",
    "SubscriptionManager",
    "SubscriptionStatus",
    "SyncConfig",
    "SyncConfigError",
    "SyncService",
    "TransportError",
    "User",
    "batch_normalize",
    "normalize",
]

"""Internal constants shared across the library."""

from __future__ import annotations

#: Quiet period (seconds) after the last change notification before a
#: coalesced refetch fires.
DEFAULT_DEBOUNCE_SECONDS: float = 0.5

#: Path prefix of the PostgREST-style listing API.
REST_PATH_PREFIX = "/rest/v1"

USER_AGENT = "storesync/1"

DEFAULT_MQTT_PORT = 8883
DEFAULT_TOPIC_PREFIX = "storesync/changes"

#: Column every collection is ordered by.
ORDER_COLUMN = "created_at"

ASCENDING = "asc"
DESCENDING = "desc"

# ------------------------------------------------------------------
# Warnings surfaced to the UI through ``SyncService(on_warning=...)``
# ------------------------------------------------------------------

FETCH_WARNING_TEMPLATE = "Failed to load {label}. Please refresh the page."
SUBSCRIPTION_WARNING_TEMPLATE = "Live updates for {label} are unavailable."

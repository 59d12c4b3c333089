"""Remote store access over the backend's REST listing API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from storesync._constants import ASCENDING, DESCENDING, REST_PATH_PREFIX, USER_AGENT
from storesync.config import SyncConfig
from storesync.exceptions import TransportError

_logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Structural interface of the remote store used by the fetcher.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestRemoteStore`) concrete.
    """

    async def list(self, collection: str, order_by: str, direction: str) -> list[dict[str, Any]]:
        ...

    async def delete(self, collection: str, entity_id: str) -> None:
        ...


class RestRemoteStore:
    """PostgREST-style client: ``GET /rest/v1/<collection>?order=<col>.<dir>``."""

    def __init__(self, config: SyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_key:
            headers["apikey"] = self._config.api_key
            headers["authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _url(self, collection: str) -> str:
        return f"{self._config.base_url.rstrip('/')}{REST_PATH_PREFIX}/{collection}"

    async def list(self, collection: str, order_by: str, direction: str) -> list[dict[str, Any]]:
        """Read every row of *collection* in a deterministic order."""
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"direction must be {ASCENDING!r} or {DESCENDING!r}, got {direction!r}")
        params = {"select": "*", "order": f"{order_by}.{direction}"}
        text = await self._request("GET", collection, params)

        try:
            body = json.loads(text) if text.strip() else []
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {collection}: {text[:200]}",
                endpoint=collection,
            ) from exc

        if not isinstance(body, list):
            raise TransportError(
                f"Expected a row list from {collection}, got {type(body).__name__}",
                endpoint=collection,
            )
        return [row for row in body if isinstance(row, dict)]

    async def delete(self, collection: str, entity_id: str) -> None:
        """Delete one row by primary key."""
        await self._request("DELETE", collection, {"id": f"eq.{entity_id}"})

    async def _request(self, method: str, collection: str, params: dict[str, str]) -> str:
        url = self._url(collection)
        _logger.debug("%s %s params=%s", method, url, params)
        try:
            async with self._http.request(method, url, params=params, headers=self._headers()) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise TransportError(
                        f"HTTP {resp.status} from {collection}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=collection,
                    )
        except TransportError:
            raise
        except aiohttp.ClientError as exc:
            raise TransportError(
                f"Request to {collection} failed: {exc}",
                endpoint=collection,
            ) from exc
        return text

"""Record store backed by a json-server style REST collection endpoint.

Ideas and folders live at ``/{entity}`` and ``/{entity}/{id}`` on the
remote server. Settings never go over the wire; they are kept in a local
JSON file slot next to the workspace.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from ideaforge.exceptions import StoreUnavailableError
from ideaforge.storage.base import Entity, StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class LocalSettingsSlot:
    """A single JSON file holding the settings singleton."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable settings slot at %s", self.path)
            return None

    def write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)


class RestStore(StorageBackend):
    """REST collection store.

    Args:
        base_url: Server root, e.g. ``http://localhost:3001``
        settings_path: Local file for the settings singleton
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        settings_path: Path,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._slot = LocalSettingsSlot(settings_path)
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
            logger.info("Using REST store at %s", self.base_url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise StoreUnavailableError("Store not initialized. Call initialize() first.")
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise StoreUnavailableError(
                f"Cannot connect to record store at {self.base_url}. Is the server running?"
            ) from e
        except httpx.TimeoutException as e:
            raise StoreUnavailableError(f"Record store timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"Record store request failed: {e}") from e

    @staticmethod
    def _fail(response: httpx.Response, action: str) -> StoreUnavailableError:
        return StoreUnavailableError(
            f"Failed to {action}: {response.reason_phrase or response.status_code}",
            {"status": response.status_code},
        )

    # --- Records ---

    async def get_all(self, entity: Entity) -> list[dict[str, Any]]:
        path = f"/{Entity(entity).value}"
        response = await self._request("GET", path)
        if response.status_code == 404:
            # json-server answers 404 for a collection that was never created
            return []
        if not response.is_success:
            raise self._fail(response, f"fetch {path}")
        return response.json()

    async def get(self, entity: Entity, record_id: str) -> dict[str, Any] | None:
        path = f"/{Entity(entity).value}/{record_id}"
        response = await self._request("GET", path)
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise self._fail(response, f"fetch {path}")
        return response.json()

    async def put(self, entity: Entity, record: dict[str, Any]) -> dict[str, Any]:
        collection = f"/{Entity(entity).value}"
        record_id = record.get("id")
        if not record_id:
            raise ValueError("record must have an id")

        # Updates are the common case, so try PUT first and create on 404
        response = await self._request("PUT", f"{collection}/{record_id}", json=record)
        if response.is_success:
            return record

        if response.status_code == 404:
            created = await self._request("POST", collection, json=record)
            if not created.is_success:
                raise self._fail(created, f"create {collection}/{record_id}")
            logger.debug("Created %s/%s", collection, record_id)
            return record

        raise self._fail(response, f"save {collection}/{record_id}")

    async def delete(self, entity: Entity, record_id: str) -> None:
        path = f"/{Entity(entity).value}/{record_id}"
        response = await self._request("DELETE", path)
        if response.status_code == 404:
            logger.debug("Delete of missing %s treated as done", path)
            return
        if not response.is_success:
            raise self._fail(response, f"delete {path}")

    # --- Settings singleton ---

    async def get_settings(self) -> dict[str, Any] | None:
        return self._slot.read()

    async def put_settings(self, data: dict[str, Any]) -> None:
        self._slot.write(data)

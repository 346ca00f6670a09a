"""SQLite record store in WAL mode."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from ideaforge.exceptions import StoreUnavailableError
from ideaforge.storage.base import SETTINGS_KEY, Entity, StorageBackend

logger = logging.getLogger(__name__)


@contextmanager
def _unavailable_on_error(operation: str) -> Iterator[None]:
    """Translate sqlite failures into StoreUnavailableError."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("SQLite %s failed: %s", operation, e)
        raise StoreUnavailableError(f"Record store failed during {operation}", {"error": str(e)}) from e
    except ValueError as e:
        # aiosqlite raises ValueError when the connection is already closed
        raise StoreUnavailableError(f"Record store closed during {operation}") from e


class SQLiteStore(StorageBackend):
    """SQLite-backed store. Each record is one JSON document row."""

    def __init__(self, db_path: Path, *, wal_mode: bool = True) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create database and apply schema. Safe to call twice."""
        if self._db is not None:
            return
        with _unavailable_on_error("initialize"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(str(self.db_path))
            self._db.row_factory = aiosqlite.Row

            if self.wal_mode:
                await self._db.execute("PRAGMA journal_mode=WAL")

            await self._db.executescript(_load_sql("store.sql"))
            await self._db.commit()
        logger.info("Initialized SQLite store at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreUnavailableError("Store not initialized. Call initialize() first.")
        return self._db

    # --- Records ---

    async def get_all(self, entity: Entity) -> list[dict[str, Any]]:
        table = Entity(entity).value
        with _unavailable_on_error(f"get_all({table})"):
            cursor = await self.db.execute(f"SELECT data FROM {table}")
            rows = await cursor.fetchall()
        return [json.loads(row["data"]) for row in rows]

    async def get(self, entity: Entity, record_id: str) -> dict[str, Any] | None:
        table = Entity(entity).value
        with _unavailable_on_error(f"get({table})"):
            cursor = await self.db.execute(f"SELECT data FROM {table} WHERE id = ?", (record_id,))
            row = await cursor.fetchone()
        return json.loads(row["data"]) if row else None

    async def put(self, entity: Entity, record: dict[str, Any]) -> dict[str, Any]:
        table = Entity(entity).value
        record_id = record.get("id")
        if not record_id:
            raise ValueError("record must have an id")
        with _unavailable_on_error(f"put({table})"):
            await self.db.execute(
                f"""INSERT INTO {table} (id, timestamp, data) VALUES (?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        timestamp = excluded.timestamp, data = excluded.data""",
                (record_id, int(record.get("timestamp") or 0), json.dumps(record)),
            )
            await self.db.commit()
        logger.debug("Stored %s/%s", table, record_id)
        return record

    async def delete(self, entity: Entity, record_id: str) -> None:
        table = Entity(entity).value
        with _unavailable_on_error(f"delete({table})"):
            await self.db.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            await self.db.commit()
        logger.debug("Deleted %s/%s", table, record_id)

    async def count(self, entity: Entity) -> int:
        table = Entity(entity).value
        with _unavailable_on_error(f"count({table})"):
            cursor = await self.db.execute(f"SELECT COUNT(*) FROM {table}")
            row = await cursor.fetchone()
        return row[0] if row else 0

    # --- Settings singleton ---

    async def get_settings(self) -> dict[str, Any] | None:
        with _unavailable_on_error("get_settings"):
            cursor = await self.db.execute(
                "SELECT data FROM settings WHERE key = ?", (SETTINGS_KEY,)
            )
            row = await cursor.fetchone()
        return json.loads(row["data"]) if row else None

    async def put_settings(self, data: dict[str, Any]) -> None:
        with _unavailable_on_error("put_settings"):
            await self.db.execute(
                """INSERT INTO settings (key, data) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET data = excluded.data""",
                (SETTINGS_KEY, json.dumps(data)),
            )
            await self.db.commit()


# --- Helpers ---


def _load_sql(filename: str) -> str:
    """Load SQL file from the schema package."""
    schema_dir = Path(__file__).parent.parent / "schema"
    return (schema_dir / filename).read_text()

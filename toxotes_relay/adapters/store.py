"""SQLite persistence for the ``things`` table."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, TypeVar

from ..core.models import Device, DeviceUpdate, PowerState, Selector
from ..errors import PersistenceError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS things (
    unique_id TEXT PRIMARY KEY,
    friendly_name TEXT NOT NULL,
    host_id TEXT NOT NULL,
    under_manual_control INTEGER,
    manual_control_for INTEGER NOT NULL DEFAULT 0,
    current_value TEXT,
    automatic_command TEXT,
    automatic_retain INTEGER NOT NULL DEFAULT 0,
    automatic_qos INTEGER NOT NULL DEFAULT 2,
    show_automatic_control INTEGER NOT NULL DEFAULT 0
)
"""

_SELECT_COLUMNS = """
    SELECT
        unique_id,
        friendly_name,
        host_id,
        under_manual_control,
        manual_control_for,
        current_value,
        automatic_command
    FROM things
"""

# Only these columns may be written through apply_updates.
UPDATABLE_COLUMNS = frozenset(
    {
        "under_manual_control",
        "automatic_command",
        "automatic_retain",
        "automatic_qos",
        "show_automatic_control",
        "current_value",
    }
)

_SELECT_BY_COLUMN = {
    "unique_id": _SELECT_COLUMNS + " WHERE unique_id = ?",
    "friendly_name": _SELECT_COLUMNS + " WHERE friendly_name = ?",
}


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(round(value.timestamp() * 1000))


def _ms_to_datetime(millis: float, raw: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        LOGGER.warning("Ignoring out-of-range under_manual_control value %r", raw)
        return None


def from_epoch_ms(value: Any) -> Optional[datetime]:
    """Decode ``under_manual_control`` as written by this or older writers."""

    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return _ms_to_datetime(value, value)
    text = str(value).strip()
    try:
        millis = int(text)
    except ValueError:
        pass
    else:
        return _ms_to_datetime(millis, value)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        LOGGER.warning("Ignoring unparseable under_manual_control value %r", value)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_column_value(value: Any) -> Any:
    if isinstance(value, PowerState):
        return value.value
    if isinstance(value, datetime):
        return to_epoch_ms(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_device(row: sqlite3.Row) -> Device:
    return Device(
        unique_id=row["unique_id"],
        friendly_name=row["friendly_name"],
        host_id=row["host_id"],
        under_manual_control=from_epoch_ms(row["under_manual_control"]),
        manual_control_for=int(row["manual_control_for"] or 0),
        current_value=PowerState.parse(row["current_value"]),
        automatic_command=PowerState.parse(row["automatic_command"]),
    )


class SqliteDeviceStore:
    """SQLite-backed store for relay control state.

    Each call opens its own connection inside a worker thread, so the store
    can be shared by several processes pointing at the same file. Batches
    take the write lock up front (``BEGIN IMMEDIATE``) and either commit as
    a whole or roll back.
    """

    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self._timeout = timeout
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Create the schema if needed and mark the store ready."""

        await self._run(self._init_schema)
        self._connected = True
        LOGGER.info("Device store ready at %s", self.db_path)

    async def close(self) -> None:
        self._connected = False

    async def query_devices(self, selector: Selector) -> List[Device]:
        return await self._run(lambda conn: self._query_devices(conn, selector))

    async def apply_updates(self, updates: Sequence[DeviceUpdate]) -> None:
        if not updates:
            return
        await self._run(lambda conn: self._apply_updates(conn, updates))

    async def upsert_device(
        self,
        unique_id: str,
        *,
        friendly_name: str,
        host_id: str,
        manual_control_for: Optional[int] = None,
        current_value: Optional[PowerState] = None,
    ) -> None:
        """Insert or refresh a thing's identity columns.

        On an existing thing, ``manual_control_for`` and ``current_value``
        are only overwritten when given.
        """

        await self._run(
            lambda conn: self._upsert_device(
                conn,
                unique_id,
                friendly_name,
                host_id,
                manual_control_for,
                current_value,
            )
        )

    # ------------------------------------------------------------------
    # Synchronous helpers executed in a worker thread
    # ------------------------------------------------------------------
    async def _run(self, func: Callable[[sqlite3.Connection], T]) -> T:
        def runner() -> T:
            with self._connection() as conn:
                return func(conn)

        try:
            return await asyncio.to_thread(runner)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Database operation failed: {exc}") from exc

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path), timeout=self._timeout, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(SCHEMA)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_things_friendly_name ON things(friendly_name)"
        )

    def _query_devices(
        self, conn: sqlite3.Connection, selector: Selector
    ) -> List[Device]:
        rows = conn.execute(_SELECT_BY_COLUMN[selector.column], (selector.value,)).fetchall()
        return [_row_to_device(row) for row in rows]

    def _apply_updates(
        self, conn: sqlite3.Connection, updates: Sequence[DeviceUpdate]
    ) -> None:
        statements = []
        for update in updates:
            unknown = set(update.fields) - UPDATABLE_COLUMNS
            if unknown:
                raise PersistenceError(
                    f"Refusing to update unknown columns {sorted(unknown)} "
                    f"for {update.unique_id}"
                )
            if not update.fields:
                continue
            columns = sorted(update.fields)
            assignments = ", ".join(f"{column} = ?" for column in columns)
            params = [_to_column_value(update.fields[column]) for column in columns]
            params.append(update.unique_id)
            statements.append((f"UPDATE things SET {assignments} WHERE unique_id = ?", params))

        conn.execute("BEGIN IMMEDIATE")
        try:
            for sql, params in statements:
                conn.execute(sql, params)
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        LOGGER.debug("Committed %d thing updates", len(statements))

    def _upsert_device(
        self,
        conn: sqlite3.Connection,
        unique_id: str,
        friendly_name: str,
        host_id: str,
        manual_control_for: Optional[int],
        current_value: Optional[PowerState],
    ) -> None:
        conn.execute(
            """
            INSERT INTO things (
                unique_id, friendly_name, host_id, manual_control_for, current_value
            ) VALUES (
                :unique_id, :friendly_name, :host_id,
                COALESCE(:manual_control_for, 0), :current_value
            )
            ON CONFLICT(unique_id) DO UPDATE SET
                friendly_name = excluded.friendly_name,
                host_id = excluded.host_id,
                manual_control_for = COALESCE(
                    :manual_control_for, things.manual_control_for
                ),
                current_value = COALESCE(excluded.current_value, things.current_value)
            """,
            {
                "unique_id": unique_id,
                "friendly_name": friendly_name,
                "host_id": host_id,
                "manual_control_for": manual_control_for,
                "current_value": (
                    current_value.value if current_value is not None else None
                ),
            },
        )

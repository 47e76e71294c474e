import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio

from toxotes_relay.adapters.store import SqliteDeviceStore
from toxotes_relay.core.models import PowerState
from toxotes_relay.errors import PublishError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


class FakePublisher:
    """Records publishes; topics in ``fail_topics`` raise PublishError."""

    def __init__(self, fail_topics=()) -> None:
        self.published: list[tuple[str, PowerState, int, bool]] = []
        self.fail_topics = set(fail_topics)

    async def publish(self, topic: str, state: PowerState, qos: int, retain: bool) -> int:
        if topic in self.fail_topics:
            raise PublishError(f"broker refused {topic}", failures=[(topic, RuntimeError("refused"))])
        self.published.append((topic, state, qos, retain))
        return len(self.published)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "things.db"


@pytest_asyncio.fixture
async def store(db_path: Path) -> SqliteDeviceStore:
    device_store = SqliteDeviceStore(db_path)
    await device_store.connect()
    return device_store


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def insert_thing(db_path: Path):
    """Insert a raw ``things`` row, bypassing the store."""

    def insert(
        unique_id: str,
        *,
        friendly_name: str = "Porch",
        host_id: Optional[str] = None,
        under_manual_control: Optional[int] = None,
        manual_control_for: int = 10,
        current_value: Optional[str] = "off",
        automatic_command: Optional[str] = None,
    ) -> None:
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                """
                INSERT INTO things (
                    unique_id, friendly_name, host_id, under_manual_control,
                    manual_control_for, current_value, automatic_command
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    unique_id,
                    friendly_name,
                    host_id or f"host-{unique_id}",
                    under_manual_control,
                    manual_control_for,
                    current_value,
                    automatic_command,
                ),
            )

    return insert


@pytest.fixture
def read_thing(db_path: Path):
    def read(unique_id: str) -> Dict[str, Any]:
        with sqlite3.connect(db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM things WHERE unique_id = ?", (unique_id,)
            ).fetchone()
        assert row is not None, f"{unique_id} missing"
        return dict(row)

    return read

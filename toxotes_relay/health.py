"""Health and status reporting for toxotes-relay."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from .core.models import DisplayStatus


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks component statuses and the last command status line."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._display: Optional[DisplayStatus] = None
        self._display_updated_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def set_display_status(self, status: DisplayStatus) -> None:
        async with self._lock:
            self._display = status
            self._display_updated_at = datetime.now(timezone.utc)

    @property
    def display_status(self) -> Optional[DisplayStatus]:
        return self._display

    async def display_snapshot(self) -> Dict[str, object]:
        async with self._lock:
            display = self._display
            updated_at = self._display_updated_at

        if display is None or updated_at is None:
            return {"status": None}
        return {
            "status": display.as_dict(),
            "updatedAt": updated_at.isoformat(timespec="seconds"),
        }

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        components = [status.as_dict() for status in entries]
        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}

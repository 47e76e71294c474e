"""Domain models for relay commands and things."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class PowerState(str, Enum):
    ON = "on"
    OFF = "off"

    @property
    def payload(self) -> str:
        """Wire representation understood by the relay firmware."""
        return self.value.upper()

    @classmethod
    def parse(cls, value: Any) -> Optional["PowerState"]:
        """Leniently interpret a stored state, returning None when unknown."""

        if value is None:
            return None
        if isinstance(value, PowerState):
            return value
        if isinstance(value, bool):
            return cls.ON if value else cls.OFF
        text = str(value).strip().lower()
        if text in ("on", "1", "true"):
            return cls.ON
        if text in ("off", "0", "false"):
            return cls.OFF
        return None


@dataclass(slots=True, frozen=True)
class UniqueIdSelector:
    unique_id: str

    @property
    def column(self) -> str:
        return "unique_id"

    @property
    def value(self) -> str:
        return self.unique_id

    def not_found_message(self) -> str:
        return f"Unique ID {self.unique_id} not found"


@dataclass(slots=True, frozen=True)
class FriendlyNameSelector:
    friendly_name: str

    @property
    def column(self) -> str:
        return "friendly_name"

    @property
    def value(self) -> str:
        return self.friendly_name

    def not_found_message(self) -> str:
        return f"Thing {self.friendly_name} not found"


Selector = Union[UniqueIdSelector, FriendlyNameSelector]


@dataclass(slots=True, frozen=True)
class RelayCommand:
    """A validated command, ready to be applied to one or more things."""

    selector: Selector
    state: PowerState
    qos: int = 2
    retain: bool = False
    manual: bool = False


@dataclass(slots=True, frozen=True)
class Device:
    """Persisted control state of a single relay."""

    unique_id: str
    friendly_name: str
    host_id: str
    under_manual_control: Optional[datetime] = None
    manual_control_for: int = 0
    current_value: Optional[PowerState] = None
    automatic_command: Optional[PowerState] = None

    def manual_window_active(self, now: datetime) -> bool:
        return self.under_manual_control is not None and self.under_manual_control > now


@dataclass(slots=True, frozen=True)
class DeviceUpdate:
    """Column values to write back for one thing."""

    unique_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class PublishAction:
    unique_id: str
    topic: str
    state: PowerState
    qos: int
    retain: bool


@dataclass(slots=True, frozen=True)
class DisplayStatus:
    text: str
    fill: Optional[str] = None
    shape: Optional[str] = None

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {"fill": self.fill, "shape": self.shape, "text": self.text}

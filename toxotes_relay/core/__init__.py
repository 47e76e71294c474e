"""Core primitives for toxotes-relay."""

from .models import (
    Device,
    DeviceUpdate,
    DisplayStatus,
    FriendlyNameSelector,
    PowerState,
    PublishAction,
    RelayCommand,
    Selector,
    UniqueIdSelector,
)
from .protocols import DeviceRepository, RelayPublisher

__all__ = [
    "Device",
    "DeviceRepository",
    "DeviceUpdate",
    "DisplayStatus",
    "FriendlyNameSelector",
    "PowerState",
    "PublishAction",
    "RelayCommand",
    "RelayPublisher",
    "Selector",
    "UniqueIdSelector",
]

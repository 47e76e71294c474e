"""Adapter modules for external integrations."""

from .mqtt import MQTTClient, MQTTConnectionError, MQTTPublishError
from .store import SqliteDeviceStore

__all__ = [
    "MQTTClient",
    "MQTTConnectionError",
    "MQTTPublishError",
    "SqliteDeviceStore",
]

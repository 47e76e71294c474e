"""Constants used across the toxotes-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "toxotes-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".toxotes" / DEFAULT_CONFIG_FILENAME
DEFAULT_DATABASE_PATH = Path.home() / ".toxotes" / "things.db"

DEFAULT_LOG_PATH = Path.home() / ".toxotes" / "logs" / f"{APP_NAME}.log"

DEFAULT_BROKER_HOST = "localhost"
DEFAULT_BROKER_PORT = 1883

# Tasmota style command topic: cmnd/<host_id>/POWER
DEFAULT_COMMAND_TOPIC_PREFIX = "cmnd"
DEFAULT_COMMAND_TOPIC_SUFFIX = "POWER"

DEFAULT_QOS = 2

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8765

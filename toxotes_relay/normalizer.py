"""Validation of inbound relay command messages.

A message is a mapping shaped like::

    {"payload": "on", "unique_id": "relay_ABCDEF", "qos": 2,
     "retain": False, "manual": False}

``payload`` accepts 1, 0, true, false, on, off. Targets are picked by
``unique_id`` or, failing that, by ``friendly_name``, which may address
several things at once. ``manual`` marks commands coming from a person (a
wall button for example); those hold off automatic commands for the thing's
manual window.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from . import constants
from .config import NodeConfig
from .core.models import (
    FriendlyNameSelector,
    PowerState,
    RelayCommand,
    Selector,
    UniqueIdSelector,
)
from .errors import ValidationError

_ON_VALUES = {"1", "true", "on"}
_OFF_VALUES = {"0", "false", "off"}
_TRUE_FLAGS = {"1", "true", "yes", "on"}
_VALID_QOS = (0, 1, 2)


def normalize_command(
    message: Mapping[str, Any], node: Optional[NodeConfig] = None
) -> RelayCommand:
    """Turn a raw message into a :class:`RelayCommand`.

    Raises:
        ValidationError: If the payload is invalid or no target is given.
    """

    if not isinstance(message, Mapping):
        raise ValidationError("message must be an object", code="invalid_message")

    node = node or NodeConfig()

    state = normalize_payload(message.get("payload"))
    qos = normalize_qos(message.get("qos")) if "qos" in message else constants.DEFAULT_QOS

    retain = _pick_flag(node.retain, message.get("retain"))
    manual = _pick_flag(node.override_as_manual, message.get("manual"))

    selector = _resolve_selector(message, node)

    return RelayCommand(
        selector=selector,
        state=state,
        qos=qos,
        retain=retain,
        manual=manual,
    )


def normalize_payload(value: Any) -> PowerState:
    if isinstance(value, bool):
        return PowerState.ON if value else PowerState.OFF
    if isinstance(value, (int, float)):
        if value == 1:
            return PowerState.ON
        if value == 0:
            return PowerState.OFF
    elif isinstance(value, str):
        text = value.strip().lower()
        if text in _ON_VALUES:
            return PowerState.ON
        if text in _OFF_VALUES:
            return PowerState.OFF
    raise ValidationError(
        f"invalid payload {value!r}, use 1, 0, on, off", code="invalid_payload"
    )


def normalize_qos(value: Any) -> int:
    """Parse a QoS level, falling back to 2 for anything unusable."""

    if isinstance(value, bool):
        return constants.DEFAULT_QOS
    try:
        qos = int(value)
    except (TypeError, ValueError):
        return constants.DEFAULT_QOS
    if qos not in _VALID_QOS:
        return constants.DEFAULT_QOS
    return qos


def coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return False


def _pick_flag(configured: Optional[bool], supplied: Any) -> bool:
    # Node configuration wins over the message.
    if configured is not None:
        return configured
    return coerce_flag(supplied)


def _resolve_selector(message: Mapping[str, Any], node: NodeConfig) -> Selector:
    unique_id = _clean(message.get("unique_id"))
    if unique_id:
        return UniqueIdSelector(unique_id)

    friendly_name = node.friendly_name or _clean(message.get("friendly_name"))
    if friendly_name:
        return FriendlyNameSelector(friendly_name)

    raise ValidationError(
        "missing target, set unique_id or friendly_name", code="missing_target"
    )


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()

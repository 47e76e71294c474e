"""Per-thing reconciliation of a command into writes and publishes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from . import constants
from .arbiter import decide
from .core.models import Device, DeviceUpdate, PublishAction, RelayCommand

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CommandTopics:
    """Builds the command topic of a thing from its host id."""

    prefix: str = constants.DEFAULT_COMMAND_TOPIC_PREFIX
    suffix: str = constants.DEFAULT_COMMAND_TOPIC_SUFFIX

    def for_host(self, host_id: str) -> str:
        return f"{self.prefix}/{host_id}/{self.suffix}"


@dataclass(slots=True)
class Reconciliation:
    updates: List[DeviceUpdate] = field(default_factory=list)
    publishes: List[PublishAction] = field(default_factory=list)
    suppressed: List[str] = field(default_factory=list)


def reconcile(
    now: datetime,
    command: RelayCommand,
    devices: Sequence[Device],
    topics: Optional[CommandTopics] = None,
) -> Reconciliation:
    """Decide, for every resolved thing, what to persist and what to send.

    Every thing gets exactly one update. Manual commands are always
    published; automatic commands are published unless the thing is inside
    an active manual window, but their bookkeeping is written either way.
    """

    topics = topics or CommandTopics()
    result = Reconciliation()

    for device in devices:
        decision = decide(now, device, command)

        fields: Dict[str, Any]
        if command.manual:
            fields = {
                "automatic_command": (
                    decision.seed_automatic_command
                    if decision.seed_automatic_command is not None
                    else device.automatic_command
                ),
            }
            if decision.manual_expiry is not None:
                fields["under_manual_control"] = decision.manual_expiry
        else:
            fields = {
                "automatic_command": command.state,
                "automatic_retain": command.retain,
                "automatic_qos": command.qos,
                "show_automatic_control": True,
            }

        result.updates.append(DeviceUpdate(unique_id=device.unique_id, fields=fields))

        if decision.suppress:
            LOGGER.info(
                "%s (%s) is under manual control until %s; recorded automatic %s only",
                device.friendly_name,
                device.unique_id,
                device.under_manual_control.isoformat() if device.under_manual_control else "?",
                command.state.value,
            )
            result.suppressed.append(device.unique_id)
            continue

        result.publishes.append(
            PublishAction(
                unique_id=device.unique_id,
                topic=topics.for_host(device.host_id),
                state=command.state,
                qos=command.qos,
                retain=command.retain,
            )
        )

    return result

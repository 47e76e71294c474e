"""Status line shown for the last processed command."""

from __future__ import annotations

from typing import Optional, Sequence

from .core.models import Device, DisplayStatus, PowerState, RelayCommand


def summarize(
    command: RelayCommand,
    devices: Sequence[Device],
    *,
    node_friendly_name: str = "",
    suppressed: int = 0,
) -> DisplayStatus:
    """Summarise a processed command.

    Without a fixed friendly name on the node the status names the last
    thing changed, so a command sent by unique id shows which relay it hit.
    When some things of a group stayed under manual control, the count is
    appended, e.g. ``on (Porch) [1/3 manual]``.
    """

    text = command.state.value
    if not node_friendly_name and devices:
        text = f"{text} ({devices[-1].friendly_name})"
    if suppressed and devices:
        text = f"{text} [{suppressed}/{len(devices)} manual]"

    if command.state is PowerState.ON:
        return DisplayStatus(text=text, fill="green", shape="dot")
    if command.state is PowerState.OFF:
        return DisplayStatus(text=text, fill="red", shape="dot")
    return DisplayStatus(text=text)


def error_status(message: str, *, prefix: Optional[str] = "Error") -> DisplayStatus:
    text = f"{prefix}: {message}" if prefix else message
    return DisplayStatus(text=text, fill="red", shape="ring")

"""Arbitration between manual and automatic control of a thing.

Manual commands always reach the hardware and open a manual window of
``manual_control_for`` minutes. Automatic commands arriving while that
window is open are recorded but not sent. The window is never closed
explicitly: expiry is noticed the next time an automatic command compares
``under_manual_control`` against the current time, so a thing keeps a stale
timestamp until it is touched again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .core.models import Device, PowerState, RelayCommand


@dataclass(slots=True, frozen=True)
class ArbiterDecision:
    suppress: bool
    manual_expiry: Optional[datetime] = None
    seed_automatic_command: Optional[PowerState] = None


def decide(now: datetime, device: Device, command: RelayCommand) -> ArbiterDecision:
    if command.manual:
        manual_expiry = None
        # A zero or negative window cannot produce a future expiry.
        if device.manual_control_for > 0:
            manual_expiry = now + timedelta(minutes=device.manual_control_for)

        seed = None
        if device.automatic_command is None:
            # Automatic control resumes from the state seen before the override.
            seed = device.current_value

        return ArbiterDecision(
            suppress=False,
            manual_expiry=manual_expiry,
            seed_automatic_command=seed,
        )

    return ArbiterDecision(suppress=device.manual_window_active(now))

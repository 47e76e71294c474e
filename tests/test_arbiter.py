"""Tests for manual/automatic arbitration."""

from datetime import timedelta

from conftest import NOW

from toxotes_relay.arbiter import decide
from toxotes_relay.core.models import Device, PowerState, RelayCommand, UniqueIdSelector


def _command(*, manual: bool, state: PowerState = PowerState.ON) -> RelayCommand:
    return RelayCommand(selector=UniqueIdSelector("relay_1"), state=state, manual=manual)


def _device(**overrides) -> Device:
    values = dict(
        unique_id="relay_1",
        friendly_name="Porch",
        host_id="porch",
        manual_control_for=10,
        current_value=PowerState.OFF,
    )
    values.update(overrides)
    return Device(**values)


def test_manual_command_opens_window():
    decision = decide(NOW, _device(), _command(manual=True))

    assert decision.suppress is False
    assert decision.manual_expiry == NOW + timedelta(minutes=10)


def test_manual_command_seeds_automatic_from_current_value():
    decision = decide(NOW, _device(automatic_command=None), _command(manual=True))

    assert decision.seed_automatic_command is PowerState.OFF


def test_manual_command_keeps_existing_automatic_command():
    device = _device(automatic_command=PowerState.ON, current_value=PowerState.OFF)

    decision = decide(NOW, device, _command(manual=True))

    assert decision.seed_automatic_command is None


def test_manual_command_never_suppressed_inside_window():
    device = _device(under_manual_control=NOW + timedelta(minutes=5))

    decision = decide(NOW, device, _command(manual=True))

    assert decision.suppress is False


def test_manual_command_without_window_length_sets_no_expiry():
    decision = decide(NOW, _device(manual_control_for=0), _command(manual=True))

    assert decision.suppress is False
    assert decision.manual_expiry is None


def test_automatic_command_suppressed_inside_window():
    device = _device(under_manual_control=NOW + timedelta(minutes=5))

    decision = decide(NOW, device, _command(manual=False))

    assert decision.suppress is True
    assert decision.manual_expiry is None


def test_automatic_command_after_window_expired():
    device = _device(under_manual_control=NOW - timedelta(seconds=1))

    decision = decide(NOW, device, _command(manual=False))

    assert decision.suppress is False


def test_window_ending_exactly_now_is_expired():
    device = _device(under_manual_control=NOW)

    assert decide(NOW, device, _command(manual=False)).suppress is False


def test_automatic_command_without_window():
    assert decide(NOW, _device(), _command(manual=False)).suppress is False

"""Tests for per-thing reconciliation."""

from datetime import timedelta

from conftest import NOW

from toxotes_relay.core.models import (
    Device,
    FriendlyNameSelector,
    PowerState,
    RelayCommand,
    UniqueIdSelector,
)
from toxotes_relay.reconciler import CommandTopics, reconcile


def _device(unique_id: str, **overrides) -> Device:
    values = dict(
        unique_id=unique_id,
        friendly_name="Porch",
        host_id=f"host-{unique_id}",
        manual_control_for=10,
        current_value=PowerState.OFF,
    )
    values.update(overrides)
    return Device(**values)


def test_command_topic_convention():
    assert CommandTopics().for_host("tasmota_ABCDEF") == "cmnd/tasmota_ABCDEF/POWER"
    assert CommandTopics(prefix="site/cmnd", suffix="POWER1").for_host("x") == "site/cmnd/x/POWER1"


def test_manual_command_updates_window_and_seeds_automatic():
    command = RelayCommand(selector=UniqueIdSelector("a"), state=PowerState.ON, manual=True)

    plan = reconcile(NOW, command, [_device("a")])

    assert len(plan.updates) == 1
    assert plan.updates[0].fields == {
        "under_manual_control": NOW + timedelta(minutes=10),
        "automatic_command": PowerState.OFF,
    }
    assert [action.topic for action in plan.publishes] == ["cmnd/host-a/POWER"]
    assert plan.publishes[0].state is PowerState.ON


def test_manual_command_preserves_existing_automatic_command():
    command = RelayCommand(selector=UniqueIdSelector("a"), state=PowerState.OFF, manual=True)

    plan = reconcile(NOW, command, [_device("a", automatic_command=PowerState.ON)])

    assert plan.updates[0].fields["automatic_command"] is PowerState.ON


def test_automatic_command_suppressed_but_recorded():
    device = _device("a", under_manual_control=NOW + timedelta(minutes=5))
    command = RelayCommand(
        selector=UniqueIdSelector("a"), state=PowerState.ON, qos=1, retain=True
    )

    plan = reconcile(NOW, command, [device])

    assert plan.publishes == []
    assert plan.suppressed == ["a"]
    assert plan.updates[0].fields == {
        "automatic_command": PowerState.ON,
        "automatic_retain": True,
        "automatic_qos": 1,
        "show_automatic_control": True,
    }


def test_automatic_command_after_expired_window_publishes():
    device = _device("a", under_manual_control=NOW - timedelta(minutes=5))
    command = RelayCommand(selector=UniqueIdSelector("a"), state=PowerState.OFF)

    plan = reconcile(NOW, command, [device])

    assert len(plan.publishes) == 1
    assert plan.publishes[0].qos == 2
    assert plan.publishes[0].retain is False
    assert plan.suppressed == []


def test_group_fans_out_per_thing():
    devices = [
        _device("a"),
        _device("b", under_manual_control=NOW + timedelta(minutes=1)),
        _device("c"),
    ]
    command = RelayCommand(selector=FriendlyNameSelector("Porch"), state=PowerState.ON)

    plan = reconcile(NOW, command, devices)

    assert [update.unique_id for update in plan.updates] == ["a", "b", "c"]
    assert [action.unique_id for action in plan.publishes] == ["a", "c"]
    assert plan.suppressed == ["b"]

"""Tests for inbound command validation."""

import pytest

from toxotes_relay.config import NodeConfig
from toxotes_relay.core.models import FriendlyNameSelector, PowerState, UniqueIdSelector
from toxotes_relay.errors import ValidationError
from toxotes_relay.normalizer import coerce_flag, normalize_command, normalize_qos


@pytest.mark.parametrize("payload", [1, 1.0, "1", True, "true", "TRUE", "on", "On", " ON "])
def test_payload_on_spellings(payload):
    command = normalize_command({"payload": payload, "unique_id": "relay_ABCDEF"})

    assert command.state is PowerState.ON


@pytest.mark.parametrize("payload", [0, 0.0, "0", False, "false", "False", "off", "OFF"])
def test_payload_off_spellings(payload):
    command = normalize_command({"payload": payload, "unique_id": "relay_ABCDEF"})

    assert command.state is PowerState.OFF


@pytest.mark.parametrize("payload", [2, -1, "yes", "toggle", "", None, 1.5, [1]])
def test_invalid_payload_rejected(payload):
    with pytest.raises(ValidationError) as excinfo:
        normalize_command({"payload": payload, "unique_id": "relay_ABCDEF"})

    assert excinfo.value.code == "invalid_payload"
    assert "invalid payload" in str(excinfo.value)


def test_missing_payload_rejected():
    with pytest.raises(ValidationError):
        normalize_command({"unique_id": "relay_ABCDEF"})


def test_defaults_applied():
    command = normalize_command({"payload": "on", "friendly_name": "Porch"})

    assert command.qos == 2
    assert command.retain is False
    assert command.manual is False
    assert command.selector == FriendlyNameSelector("Porch")


@pytest.mark.parametrize("value,expected", [(0, 0), ("1", 1), (2, 2), ("0", 0)])
def test_valid_qos_kept(value, expected):
    assert normalize_qos(value) == expected


@pytest.mark.parametrize("value", [3, -1, "-1", "abc", "", None, True, 7.0])
def test_out_of_range_qos_becomes_two(value):
    assert normalize_qos(value) == 2

    command = normalize_command({"payload": "on", "unique_id": "a", "qos": value})
    assert command.qos == 2


@pytest.mark.parametrize(
    "value,expected",
    [(True, True), ("true", True), ("TRUE", True), ("1", True), (1, True),
     (False, False), ("false", False), ("no", False), (None, False), (0, False)],
)
def test_flag_coercion(value, expected):
    assert coerce_flag(value) is expected


def test_string_flags_in_message():
    command = normalize_command(
        {"payload": "1", "unique_id": "a", "retain": "true", "manual": "false"}
    )

    assert command.retain is True
    assert command.manual is False


def test_node_config_overrides_manual_and_retain():
    node = NodeConfig(retain=False, override_as_manual=True)

    command = normalize_command(
        {"payload": "on", "unique_id": "a", "retain": True, "manual": False}, node
    )

    assert command.manual is True
    assert command.retain is False


def test_unique_id_takes_precedence():
    node = NodeConfig(friendly_name="Garden")

    command = normalize_command(
        {"payload": "on", "unique_id": "relay_ABCDEF", "friendly_name": "Porch"}, node
    )

    assert command.selector == UniqueIdSelector("relay_ABCDEF")


def test_node_friendly_name_overrides_message():
    node = NodeConfig(friendly_name="Garden")

    command = normalize_command({"payload": "on", "friendly_name": "Porch"}, node)

    assert command.selector == FriendlyNameSelector("Garden")


def test_node_friendly_name_used_without_message_target():
    command = normalize_command({"payload": "off"}, NodeConfig(friendly_name="Garden"))

    assert command.selector == FriendlyNameSelector("Garden")


@pytest.mark.parametrize(
    "message",
    [
        {"payload": "on"},
        {"payload": "on", "unique_id": ""},
        {"payload": "on", "friendly_name": "   "},
    ],
)
def test_missing_target_rejected(message):
    with pytest.raises(ValidationError) as excinfo:
        normalize_command(message)

    assert excinfo.value.code == "missing_target"


def test_non_mapping_rejected():
    with pytest.raises(ValidationError):
        normalize_command(["on"])  # type: ignore[arg-type]

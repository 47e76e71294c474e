import sqlite3
from pathlib import Path

from toxotes_relay.cli import build_message, build_parser, main


def _write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "toxotes-relay.cfg"
    config_path.write_text(
        f"[database]\npath = {tmp_path / 'things.db'}\n\n[logging]\npath =\n",
        encoding="utf-8",
    )
    return config_path


def test_build_message_from_send_arguments():
    args = build_parser().parse_args(
        ["send", "on", "--friendly-name", "Porch", "--qos", "1", "--manual"]
    )

    assert build_message(args) == {
        "payload": "on",
        "friendly_name": "Porch",
        "qos": "1",
        "manual": True,
    }


def test_build_message_minimal():
    args = build_parser().parse_args(["send", "0", "--unique-id", "relay_ABCDEF"])

    assert build_message(args) == {"payload": "0", "unique_id": "relay_ABCDEF"}


def test_init_db_and_add_thing(tmp_path: Path, capsys):
    config_path = _write_config(tmp_path)

    assert main(["-c", str(config_path), "init-db"]) == 0
    assert "Things table ready" in capsys.readouterr().out

    assert (
        main(
            [
                "-c",
                str(config_path),
                "add-thing",
                "relay_ABCDEF",
                "--friendly-name",
                "Porch",
                "--host-id",
                "tasmota_ABCDEF",
                "--manual-minutes",
                "10",
                "--current-value",
                "off",
            ]
        )
        == 0
    )

    with sqlite3.connect(tmp_path / "things.db") as conn:
        row = conn.execute(
            "SELECT friendly_name, host_id, manual_control_for, current_value FROM things"
        ).fetchone()
    assert row == ("Porch", "tasmota_ABCDEF", 10, "off")


def test_show_config_prints_sections(tmp_path: Path, capsys):
    config_path = _write_config(tmp_path)

    assert main(["-c", str(config_path), "show-config"]) == 0

    output = capsys.readouterr().out
    assert "[mqtt]" in output
    assert "command_topic_prefix = cmnd" in output
    assert "[node]" in output


def test_add_thing_again_keeps_window_and_state(tmp_path: Path):
    config_path = _write_config(tmp_path)
    base = ["-c", str(config_path), "add-thing", "relay_ABCDEF", "--host-id", "tasmota_ABCDEF"]

    assert (
        main(base + ["--friendly-name", "Porch", "--manual-minutes", "10", "--current-value", "off"])
        == 0
    )
    assert main(base + ["--friendly-name", "Front porch"]) == 0

    with sqlite3.connect(tmp_path / "things.db") as conn:
        row = conn.execute(
            "SELECT friendly_name, manual_control_for, current_value FROM things"
        ).fetchone()
    assert row == ("Front porch", 10, "off")

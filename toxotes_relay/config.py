"""Configuration loader for toxotes-relay."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class MQTTConfig:
    broker_host: str = constants.DEFAULT_BROKER_HOST
    broker_port: int = constants.DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    keepalive: int = 60
    command_topic_prefix: str = constants.DEFAULT_COMMAND_TOPIC_PREFIX
    command_topic_suffix: str = constants.DEFAULT_COMMAND_TOPIC_SUFFIX
    publish_timeout_seconds: Optional[float] = 30.0  # None waits forever


@dataclass(slots=True)
class DatabaseConfig:
    path: Path = constants.DEFAULT_DATABASE_PATH


@dataclass(slots=True)
class NodeConfig:
    """Static settings that take precedence over message fields.

    ``None`` means "not configured", in which case the message decides.
    """

    friendly_name: str = ""
    retain: Optional[bool] = None
    override_as_manual: Optional[bool] = None


@dataclass(slots=True)
class ApiConfig:
    enabled: bool = True
    host: str = constants.DEFAULT_API_HOST
    port: int = constants.DEFAULT_API_PORT


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class RelayConfig:
    mqtt: MQTTConfig
    database: DatabaseConfig
    node: NodeConfig
    api: ApiConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path = field(default=constants.DEFAULT_CONFIG_PATH)


def _parse_optional_bool(parser: ConfigParser, section: str, option: str) -> Optional[bool]:
    value = parser.get(section, option, fallback="").strip()
    if not value:
        return None
    return parser.getboolean(section, option)


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "mqtt": {
                "broker_host": constants.DEFAULT_BROKER_HOST,
                "broker_port": str(constants.DEFAULT_BROKER_PORT),
                "keepalive": "60",
                "command_topic_prefix": constants.DEFAULT_COMMAND_TOPIC_PREFIX,
                "command_topic_suffix": constants.DEFAULT_COMMAND_TOPIC_SUFFIX,
                "publish_timeout_seconds": "30",
            },
            "database": {
                "path": str(constants.DEFAULT_DATABASE_PATH),
            },
            "node": {
                "friendly_name": "",
                "retain": "",
                "override_as_manual": "",
            },
            "api": {
                "enabled": "true",
                "host": constants.DEFAULT_API_HOST,
                "port": str(constants.DEFAULT_API_PORT),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    broker_host_value = parser.get("mqtt", "broker_host")
    broker_port_value = parser.getint(
        "mqtt", "broker_port", fallback=constants.DEFAULT_BROKER_PORT
    )

    if ":" in broker_host_value:
        host_part, port_part = broker_host_value.rsplit(":", 1)
        try:
            parsed_port = int(port_part)
        except ValueError:
            pass
        else:
            broker_host_value = host_part
            broker_port_value = parsed_port
            parser.set("mqtt", "broker_host", host_part)
            parser.set("mqtt", "broker_port", str(parsed_port))

    publish_timeout = parser.getfloat("mqtt", "publish_timeout_seconds", fallback=30.0)

    mqtt = MQTTConfig(
        broker_host=broker_host_value,
        broker_port=broker_port_value,
        username=parser.get("mqtt", "username", fallback=None),
        password=parser.get("mqtt", "password", fallback=None),
        client_id=parser.get("mqtt", "client_id", fallback=None) or None,
        keepalive=max(1, parser.getint("mqtt", "keepalive", fallback=60)),
        command_topic_prefix=parser.get("mqtt", "command_topic_prefix").strip("/"),
        command_topic_suffix=parser.get("mqtt", "command_topic_suffix").strip("/"),
        publish_timeout_seconds=publish_timeout if publish_timeout > 0 else None,
    )

    database = DatabaseConfig(
        path=Path(parser.get("database", "path")).expanduser(),
    )

    node = NodeConfig(
        friendly_name=parser.get("node", "friendly_name", fallback="").strip(),
        retain=_parse_optional_bool(parser, "node", "retain"),
        override_as_manual=_parse_optional_bool(parser, "node", "override_as_manual"),
    )

    api = ApiConfig(
        enabled=parser.getboolean("api", "enabled", fallback=True),
        host=parser.get("api", "host", fallback=constants.DEFAULT_API_HOST),
        port=parser.getint("api", "port", fallback=constants.DEFAULT_API_PORT),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return RelayConfig(
        mqtt=mqtt,
        database=database,
        node=node,
        api=api,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )


def save_config(config: RelayConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)

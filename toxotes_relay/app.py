"""Main application entry-point for toxotes-relay."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Mapping, Optional

from . import constants
from .adapters import MQTTClient, MQTTConnectionError, SqliteDeviceStore
from .api import RelayApiServer
from .config import RelayConfig, load_config
from .engine import InvocationResult, RelayStateEngine
from .errors import PersistenceError
from .health import HealthReporter
from .logging import configure_logging
from .publisher import MqttRelayPublisher
from .reconciler import CommandTopics

LOGGER = logging.getLogger(__name__)


class RelayStateApp:
    """Coordinates startup and shutdown of the relay service.

    Owns the device store, the MQTT connection, the engine and the HTTP
    API. Collaborators can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        *,
        store: Optional[SqliteDeviceStore] = None,
        mqtt_client: Optional[MQTTClient] = None,
    ) -> None:
        self._config = config or load_config()
        self._store = store or SqliteDeviceStore(self._config.database.path)
        self._mqtt_client = mqtt_client or MQTTClient(
            self._config.mqtt, client_id=_build_client_id(self._config)
        )
        self._health = HealthReporter()
        self._engine = RelayStateEngine(
            self._store,
            MqttRelayPublisher(
                self._mqtt_client, timeout=self._config.mqtt.publish_timeout_seconds
            ),
            node=self._config.node,
            topics=CommandTopics(
                prefix=self._config.mqtt.command_topic_prefix,
                suffix=self._config.mqtt.command_topic_suffix,
            ),
            on_status=self._health.set_display_status,
        )
        self._api_server: Optional[RelayApiServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def engine(self) -> RelayStateEngine:
        return self._engine

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        """Start all services and wait until shutdown is requested."""

        self._shutdown_event = asyncio.Event()

        LOGGER.info("toxotes-relay starting with config: %s", self._config.path)
        started = await self.start_services()
        if not started:
            LOGGER.warning("Service startup incomplete; running in degraded mode")

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("toxotes-relay received shutdown signal")
            raise
        finally:
            await self.stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def send(self, message: Mapping[str, Any]) -> InvocationResult:
        """Process a single command with services already started."""
        return await self._engine.handle(message)

    @classmethod
    def start(cls, config: Optional[RelayConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("toxotes-relay received shutdown signal")

    async def start_services(self, *, with_api: bool = True) -> bool:
        await self._health.update("database", False, "initialising")
        await self._health.update("mqtt", False, "initialising")

        ready = True

        try:
            await self._store.connect()
        except PersistenceError as exc:
            LOGGER.error("Device store unavailable: %s", exc)
            await self._health.update("database", False, str(exc))
            ready = False
        else:
            await self._health.update("database", True, None)

        self._mqtt_client.register_disconnect_handler(self._on_mqtt_disconnect)
        self._mqtt_client.register_connect_handler(self._on_mqtt_connect)
        try:
            await self._mqtt_client.connect()
        except MQTTConnectionError as exc:
            LOGGER.error("MQTT connection failed: %s", exc)
            await self._health.update("mqtt", False, str(exc))
            ready = False
        else:
            await self._health.update("mqtt", True, None)

        if with_api and self._config.api.enabled:
            await self._start_api_server()

        return ready

    async def stop_services(self) -> None:
        if self._api_server is not None:
            await self._api_server.stop()
            self._api_server = None
            await self._health.update("api", False, "shutdown")

        await self._mqtt_client.disconnect()
        await self._health.update("mqtt", False, "shutdown")

        await self._store.close()
        await self._health.update("database", False, "shutdown")

        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def _start_api_server(self) -> None:
        api = self._config.api
        server = RelayApiServer(self._engine, self._health, api.host, api.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start relay API: %s", exc)
            await self._health.update("api", False, str(exc))
        else:
            self._api_server = server
            await self._health.update("api", True, None)

    def _on_mqtt_disconnect(self, rc: int) -> None:
        self._schedule_health_update("mqtt", False, f"disconnected (rc={rc})")

    def _on_mqtt_connect(self, rc: int) -> None:
        self._schedule_health_update("mqtt", True, None)

    def _schedule_health_update(
        self, name: str, healthy: bool, detail: Optional[str]
    ) -> None:
        # Handlers already run on the event loop via call_soon_threadsafe.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self._health.update(name, healthy, detail))


def _build_client_id(config: RelayConfig) -> str:
    if config.mqtt.client_id:
        return config.mqtt.client_id
    return f"{constants.APP_NAME}-{os.getpid()}"

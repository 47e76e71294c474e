"""MQTT adapter encapsulating paho-mqtt client usage."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

import paho.mqtt.client as mqtt

from ..config import MQTTConfig

LOGGER = logging.getLogger(__name__)


class MQTTConnectionError(RuntimeError):
    """Raised when the MQTT client fails to establish a connection."""


class MQTTPublishError(MQTTConnectionError):
    """Raised when the broker does not acknowledge a publish."""


class MQTTClient:
    """Async-friendly wrapper over the threaded paho-mqtt client."""

    def __init__(
        self,
        config: MQTTConfig,
        *,
        client_id: str,
    ) -> None:
        self.config = config
        self.client_id = client_id
        self.keepalive = config.keepalive

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected_event: Optional[asyncio.Event] = None
        self._disconnect_event: Optional[asyncio.Event] = None
        self._last_connect_rc: Optional[int] = None
        self._connected: bool = False
        self._disconnect_handlers: List[Callable[[int], None]] = []
        self._connect_handlers: List[Callable[[int], None]] = []

    async def connect(self, timeout: float = 30.0) -> None:
        """Connect to the MQTT broker and wait for acknowledgement."""

        self._loop = asyncio.get_running_loop()
        self._connected_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()
        self._last_connect_rc = None

        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        client.enable_logger(LOGGER.getChild("paho"))

        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect

        self._client = client

        LOGGER.info(
            "Connecting to MQTT broker %s:%s",
            self.config.broker_host,
            self.config.broker_port,
        )

        client.connect_async(
            self.config.broker_host, self.config.broker_port, self.keepalive
        )
        client.loop_start()

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            if self._last_connect_rc is None or self._last_connect_rc != 0:
                raise MQTTConnectionError(
                    f"MQTT broker rejected connection (rc={self._last_connect_rc})"
                )
        except asyncio.TimeoutError as exc:
            client.loop_stop()
            self._client = None
            raise MQTTConnectionError("Timed out connecting to MQTT broker") from exc
        except MQTTConnectionError:
            client.loop_stop()
            self._client = None
            raise

    async def disconnect(self, timeout: float = 5.0) -> None:
        """Gracefully disconnect from the broker."""

        if not self._client:
            return

        assert self._disconnect_event is not None

        self._client.disconnect()

        try:
            await asyncio.wait_for(self._disconnect_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("Timed out waiting for MQTT disconnect acknowledgement")
        finally:
            self._client.loop_stop()
            self._client = None
        self._connected = False

    async def publish(
        self,
        topic: str,
        payload: bytes,
        qos: int = 2,
        retain: bool = False,
        *,
        timeout: Optional[float] = None,
    ) -> int:
        """Publish a message and wait until the broker has acknowledged it.

        Returns the paho message id. For QoS 0 the wait ends once the
        message has been written to the socket.
        """

        if not self._client:
            raise MQTTConnectionError("MQTT client not connected")

        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTPublishError(f"Publish to {topic} failed with rc={info.rc}")

        try:
            await asyncio.to_thread(info.wait_for_publish, timeout)
        except (RuntimeError, ValueError) as exc:
            raise MQTTPublishError(f"Publish to {topic} failed: {exc}") from exc

        if not info.is_published():
            raise MQTTPublishError(
                f"Publish to {topic} was not acknowledged within {timeout}s"
            )

        LOGGER.debug("Published to %s (mid=%s, qos=%s, retain=%s)", topic, info.mid, qos, retain)
        return info.mid

    def register_disconnect_handler(self, handler: Callable[[int], None]) -> None:
        self._disconnect_handlers.append(handler)

    def register_connect_handler(self, handler: Callable[[int], None]) -> None:
        self._connect_handlers.append(handler)

    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Internal callbacks bridging the threaded paho callbacks into asyncio
    # ------------------------------------------------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        rc = 0 if reason_code == 0 else getattr(reason_code, "value", reason_code)
        self._last_connect_rc = rc
        if rc == 0:
            LOGGER.info("Connected to MQTT broker")
            self._connected = True
            self._signal(self._connected_event)
            if self._loop:
                for handler in self._connect_handlers:
                    self._loop.call_soon_threadsafe(handler, rc)
        else:
            LOGGER.error("MQTT connection failed with rc=%s", reason_code)
            self._connected = False
            self._signal(self._connected_event)

    def _on_disconnect(
        self, client, userdata, flags, reason_code, properties=None
    ) -> None:
        rc = 0 if reason_code == 0 else getattr(reason_code, "value", reason_code)
        LOGGER.info("Disconnected from MQTT broker (rc=%s)", reason_code)
        self._signal(self._disconnect_event)
        self._connected = False
        if self._loop:
            for handler in self._disconnect_handlers:
                self._loop.call_soon_threadsafe(handler, rc)

    def _signal(self, event: Optional[asyncio.Event]) -> None:
        if event is None:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)

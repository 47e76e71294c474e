"""Publisher adapter sending relay commands over MQTT."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .core.models import PowerState
from .errors import PublishError

LOGGER = logging.getLogger(__name__)


class MQTTPublishClient(Protocol):
    async def publish(
        self,
        topic: str,
        payload: bytes,
        qos: int = 2,
        retain: bool = False,
        *,
        timeout: Optional[float] = None,
    ) -> int: ...


class MqttRelayPublisher:
    """Thin pass-through from publish actions to the MQTT client."""

    def __init__(
        self, client: MQTTPublishClient, *, timeout: Optional[float] = None
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def publish(
        self, topic: str, state: PowerState, qos: int, retain: bool
    ) -> int:
        payload = state.payload.encode("utf-8")
        try:
            mid = await self._client.publish(
                topic, payload, qos=qos, retain=retain, timeout=self._timeout
            )
        except Exception as exc:
            raise PublishError(
                f"Failed to publish {state.payload} to {topic}: {exc}",
                failures=[(topic, exc)],
            ) from exc
        LOGGER.info("Sent %s to %s (qos=%s, retain=%s)", state.payload, topic, qos, retain)
        return mid

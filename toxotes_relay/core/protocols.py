"""Protocol definitions for the collaborators of the relay engine.

The engine only talks to persistence and to the broker through these
contracts, so alternative stores or transports can be injected (the tests
use in-memory fakes for the publisher).
"""

from __future__ import annotations

from typing import Any, List, Protocol, Sequence, runtime_checkable

from .models import Device, DeviceUpdate, PowerState, Selector


@runtime_checkable
class DeviceRepository(Protocol):
    """Contract for the persisted ``things`` table."""

    @property
    def connected(self) -> bool:
        """Whether the store is ready to serve queries."""
        ...

    async def query_devices(self, selector: Selector) -> List[Device]:
        """Return every thing matching the selector exactly.

        Raises:
            PersistenceError: If the query fails.
        """
        ...

    async def apply_updates(self, updates: Sequence[DeviceUpdate]) -> None:
        """Apply all updates as one atomic batch.

        Raises:
            PersistenceError: If the batch could not be committed. Nothing
                from the batch is visible in that case.
        """
        ...


@runtime_checkable
class RelayPublisher(Protocol):
    """Contract for sending a power command to a relay."""

    async def publish(
        self, topic: str, state: PowerState, qos: int, retain: bool
    ) -> Any:
        """Publish one command and wait for the broker acknowledgement.

        Raises:
            PublishError: If the broker did not accept the message.
        """
        ...


__all__ = ["DeviceRepository", "RelayPublisher"]

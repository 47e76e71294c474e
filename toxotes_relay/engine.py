"""Invocation pipeline applying one relay command end to end."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

from .config import NodeConfig
from .core.models import Device, DeviceUpdate, DisplayStatus, PublishAction, RelayCommand
from .core.protocols import DeviceRepository, RelayPublisher
from .errors import NotFoundError, PersistenceError, PublishError, ValidationError
from .normalizer import normalize_command
from .reconciler import CommandTopics, reconcile
from .resolver import DeviceResolver
from .status import error_status, summarize

LOGGER = logging.getLogger(__name__)

StatusCallback = Callable[[DisplayStatus], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class InvocationResult:
    """Observable outcome of one processed command."""

    command: RelayCommand
    status: DisplayStatus
    devices: List[Device] = field(default_factory=list)
    updates: List[DeviceUpdate] = field(default_factory=list)
    published: List[PublishAction] = field(default_factory=list)
    suppressed: List[str] = field(default_factory=list)
    persisted: bool = False
    error: Optional[str] = None


class RelayStateEngine:
    """Validates, resolves, arbitrates and applies relay commands.

    Invocations are serialised: a command is fully processed, publishes and
    the database batch included, before the next one starts.

    Usage:
        engine = RelayStateEngine(store, publisher, node=config.node)
        result = await engine.handle({"friendly_name": "Porch", "payload": "on"})
    """

    def __init__(
        self,
        repository: DeviceRepository,
        publisher: RelayPublisher,
        *,
        node: Optional[NodeConfig] = None,
        topics: Optional[CommandTopics] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self._repository = repository
        self._resolver = DeviceResolver(repository)
        self._publisher = publisher
        self._node = node or NodeConfig()
        self._topics = topics or CommandTopics()
        self._clock = clock or _utcnow
        self._on_status = on_status
        self._lock = asyncio.Lock()
        self._last_status: Optional[DisplayStatus] = None

    @property
    def last_status(self) -> Optional[DisplayStatus]:
        return self._last_status

    async def handle(self, message: Mapping[str, Any]) -> InvocationResult:
        """Process one inbound message.

        Raises:
            ValidationError: The message was rejected; nothing was changed.
            NotFoundError: No thing matched; nothing was changed.
            PublishError: At least one publish failed. The database batch
                has still been attempted.

        Persistence failures are logged and reported through the status
        line; the returned result then has ``persisted`` set to False.
        """

        async with self._lock:
            return await self._handle(message)

    async def _handle(self, message: Mapping[str, Any]) -> InvocationResult:
        try:
            command = normalize_command(message, self._node)
        except ValidationError as exc:
            LOGGER.error("Rejected relay command %r: %s", message, exc)
            await self._report(error_status(str(exc)))
            raise

        if not self._repository.connected:
            LOGGER.error(
                "Dropping relay command for %s: database not yet connected",
                command.selector.value,
            )
            status = error_status("Database not yet connected")
            await self._report(status)
            return InvocationResult(
                command=command, status=status, error="Database not yet connected"
            )

        try:
            devices = await self._resolver.resolve(command.selector)
        except NotFoundError as exc:
            LOGGER.warning("%s", exc)
            await self._report(error_status(str(exc), prefix=None))
            raise
        except PersistenceError as exc:
            LOGGER.error(
                "Failed to look up things for %s=%s: %s",
                command.selector.column,
                command.selector.value,
                exc,
                exc_info=True,
            )
            status = error_status(str(exc))
            await self._report(status)
            return InvocationResult(command=command, status=status, error=str(exc))

        now = self._clock()
        plan = reconcile(now, command, devices, self._topics)

        failures = await self._dispatch(plan.publishes)
        failed_actions = [action for action, _ in failures]
        delivered = [action for action in plan.publishes if action not in failed_actions]

        persist_error = await self._commit(plan.updates, delivered)

        if failures:
            status = error_status(
                f"{len(failures)} of {len(plan.publishes)} publishes failed"
            )
        elif persist_error is not None:
            status = error_status(persist_error)
        else:
            status = summarize(
                command,
                devices,
                node_friendly_name=self._node.friendly_name,
                suppressed=len(plan.suppressed),
            )
        await self._report(status)

        if failures:
            raise PublishError(
                "Failed to publish to "
                + ", ".join(action.topic for action, _ in failures),
                failures=[(action.topic, exc) for action, exc in failures],
            )

        return InvocationResult(
            command=command,
            status=status,
            devices=devices,
            updates=plan.updates,
            published=delivered,
            suppressed=plan.suppressed,
            persisted=persist_error is None,
            error=persist_error,
        )

    async def _dispatch(
        self, actions: Sequence[PublishAction]
    ) -> List[Tuple[PublishAction, BaseException]]:
        if not actions:
            return []

        results = await asyncio.gather(
            *(
                self._publisher.publish(action.topic, action.state, action.qos, action.retain)
                for action in actions
            ),
            return_exceptions=True,
        )

        failures: List[Tuple[PublishAction, BaseException]] = []
        for action, result in zip(actions, results):
            if isinstance(result, BaseException):
                LOGGER.error(
                    "Publish of %s to %s (%s) failed: %s",
                    action.state.payload,
                    action.topic,
                    action.unique_id,
                    result,
                )
                failures.append((action, result))
        return failures

    async def _commit(
        self, updates: Sequence[DeviceUpdate], delivered: Sequence[PublishAction]
    ) -> Optional[str]:
        try:
            await self._repository.apply_updates(updates)
        except PersistenceError as exc:
            LOGGER.error(
                "Failed to store state for %s: %s",
                ", ".join(update.unique_id for update in updates),
                exc,
                exc_info=True,
            )
            if delivered:
                # Publishes are not rolled back.
                LOGGER.warning(
                    "Hardware commands already sent to %s; stored control state is stale until the next command",
                    ", ".join(action.unique_id for action in delivered),
                )
            return str(exc)
        return None

    async def _report(self, status: DisplayStatus) -> None:
        self._last_status = status
        if self._on_status is not None:
            await self._on_status(status)

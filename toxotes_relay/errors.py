"""Exceptions raised while processing relay commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .core.models import Selector


class RelayStateError(RuntimeError):
    """Base class for failures of a single relay command invocation."""

    code = "relay_error"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ValidationError(RelayStateError):
    """Raised when an inbound command is malformed."""

    code = "invalid_command"


class NotFoundError(RelayStateError):
    """Raised when a selector matches no device."""

    code = "not_found"

    def __init__(self, selector: "Selector") -> None:
        super().__init__(selector.not_found_message())
        self.selector = selector


class PersistenceError(RelayStateError):
    """Raised when the device store cannot be queried or updated."""

    code = "persistence_failed"


class PublishError(RelayStateError):
    """Raised when one or more hardware commands could not be published.

    ``failures`` holds ``(topic, exception)`` pairs for every failed publish.
    """

    code = "publish_failed"

    def __init__(
        self,
        message: str,
        *,
        failures: Sequence[Tuple[str, BaseException]] = (),
    ) -> None:
        super().__init__(message)
        self.failures = list(failures)

"""Resolution of command selectors to persisted things."""

from __future__ import annotations

import logging
from typing import List

from .core.models import Device, Selector
from .core.protocols import DeviceRepository
from .errors import NotFoundError

LOGGER = logging.getLogger(__name__)


class DeviceResolver:
    """Looks up the things addressed by a selector."""

    def __init__(self, repository: DeviceRepository) -> None:
        self._repository = repository

    async def resolve(self, selector: Selector) -> List[Device]:
        """Return all matching things, in the store's row order.

        Raises:
            NotFoundError: If nothing matches.
            PersistenceError: If the store query fails.
        """

        devices = await self._repository.query_devices(selector)
        if not devices:
            raise NotFoundError(selector)

        LOGGER.debug(
            "Resolved %s=%s to %d thing(s)", selector.column, selector.value, len(devices)
        )
        return list(devices)

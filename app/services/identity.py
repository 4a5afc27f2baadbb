"""Process-wide cache of the server identity and client addresses."""

from __future__ import annotations

import itertools
import logging
from typing import Iterator

from ..config import Settings
from .plex import PlexClient

logger = logging.getLogger(__name__)


class PlayerNotFoundError(LookupError):
    """Raised when no connected Plex client carries the requested name."""


class IdentityCache:
    """Memoises lookups that stay stable for the lifetime of the process.

    Concurrent first lookups may both hit the server; the last one to finish
    wins, which is harmless because both see the same value.
    """

    def __init__(self, settings: Settings, plex: PlexClient):
        self._plex = plex
        self._machine_identifier: str | None = settings.pms_identifier
        self._address_override: str | None = settings.player_address
        self._addresses: dict[str, str] = {}
        self._command_ids: dict[str, Iterator[int]] = {}

    async def get_machine_identifier(self) -> str:
        if self._machine_identifier:
            return self._machine_identifier
        container = await self._plex.query("/")
        identifier = container.get("machineIdentifier")
        if not identifier:
            raise ValueError("Plex server did not report a machineIdentifier")
        self._machine_identifier = str(identifier)
        return self._machine_identifier

    async def get_client_address(self, name: str) -> str:
        if self._address_override:
            return self._address_override
        cached = self._addresses.get(name)
        if cached:
            return cached

        clients = await self._plex.find("/clients", name=name)
        address = clients[0].get("address") if clients else None
        if not address:
            logger.warning("No Plex client named %s is connected", name)
            raise PlayerNotFoundError(f"Player '{name}' not found")
        self._addresses[name] = str(address)
        return self._addresses[name]

    def next_command_id(self, address: str) -> int:
        """Return the next command sequence number for ``address``."""

        counter = self._command_ids.setdefault(address, itertools.count(1))
        return next(counter)

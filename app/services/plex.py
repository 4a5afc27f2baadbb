"""Utilities for communicating with a Plex Media Server."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..models import Episode, Show
from ..utils import container_children

logger = logging.getLogger(__name__)


class PlexClient:
    """Thin wrapper around the Plex Media Server HTTP API.

    Paths handed to the request verbs are fully built by the caller,
    including any pre-encoded query string.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Plex-Product": self._settings.app_name,
            "X-Plex-Client-Identifier": self._settings.client_identifier,
        }
        if self._settings.pms_token:
            headers["X-Plex-Token"] = self._settings.pms_token
        return headers

    async def _request(self, method: str, path: str) -> httpx.Response:
        response = await self._client.request(method, path, headers=self._headers())
        response.raise_for_status()
        return response

    @staticmethod
    def _container(response: httpx.Response) -> dict[str, Any]:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected Plex response structure")
        container = data.get("MediaContainer", data)
        if not isinstance(container, dict):
            raise ValueError("Unexpected Plex MediaContainer structure")
        return container

    async def query(self, path: str) -> dict[str, Any]:
        """GET ``path`` and return its ``MediaContainer``."""

        return self._container(await self._request("GET", path))

    async def post_query(self, path: str) -> dict[str, Any]:
        """POST to ``path`` and return its ``MediaContainer``."""

        return self._container(await self._request("POST", path))

    async def perform(self, path: str) -> dict[str, Any]:
        """Issue a command; most command endpoints reply with an empty body."""

        response = await self._request("GET", path)
        if not response.content:
            return {}
        try:
            return self._container(response)
        except ValueError:
            return {}

    async def find(self, path: str, **criteria: Any) -> list[dict[str, Any]]:
        """Return child entries of ``path`` whose attributes match ``criteria``."""

        container = await self.query(path)
        return [
            child
            for child in container_children(container)
            if all(child.get(name) == value for name, value in criteria.items())
        ]

    async def list_tv_shows(self) -> list[Show]:
        container = await self.query(
            f"/library/sections/{self._settings.tv_library_section}/all"
        )
        return [
            Show.model_validate(entry)
            for entry in container_children(container)
            if entry.get("ratingKey") is not None
        ]

    async def get_all_episodes(self, show: Show | str) -> list[Episode]:
        rating_key = show.rating_key if isinstance(show, Show) else show
        container = await self.query(f"/library/metadata/{rating_key}/allLeaves")
        return Episode.from_container(container)

    async def get_on_deck(self) -> dict[str, Any]:
        """Return the On Deck listing of shows and movies."""

        return await self.query("/library/onDeck")

    async def get_players(self) -> list[dict[str, Any]]:
        """Return connected clients that advertise playback support."""

        clients = await self.find("/clients")
        return [
            client
            for client in clients
            if "playback" in str(client.get("protocolCapabilities") or "").lower()
        ]

"""Utility helpers for the PlexVoice service."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote


# Characters ``encodeURIComponent`` leaves untouched besides alphanumerics.
URI_COMPONENT_SAFE = "-_.!~*'()"

CONTAINER_CHILD_KEYS: tuple[str, ...] = ("Metadata", "Server", "Device", "Directory")


def encode_uri_component(value: object) -> str:
    """Percent-encode a value the way Plex clients expect query components."""

    return quote(str(value), safe=URI_COMPONENT_SAFE)


def container_children(container: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    """Return the child entries of a Plex ``MediaContainer`` payload."""

    if not container:
        return []
    for key in CONTAINER_CHILD_KEYS:
        children = container.get(key)
        if isinstance(children, list):
            return [child for child in children if isinstance(child, dict)]
    return []

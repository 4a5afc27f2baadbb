"""Turn Plex media listings into names Alexa can read out."""

from __future__ import annotations

from typing import Any, Mapping

from .utils import container_children

MAX_SPOKEN_NAMES = 6


def names_from_list(container: Mapping[str, Any] | None) -> list[str]:
    """Return show and movie names from a mixed listing such as On Deck.

    Only the first six entries are considered. Episodes contribute their
    show's title, movies their own title and anything else is skipped.
    """

    names: list[str] = []
    for item in container_children(container)[:MAX_SPOKEN_NAMES]:
        item_type = item.get("type")
        if item_type == "episode":
            names.append(str(item.get("grandparentTitle") or ""))
        elif item_type == "movie":
            names.append(str(item.get("title") or ""))
    return names

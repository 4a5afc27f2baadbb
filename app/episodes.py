"""Episode filters and selection policies.

Everything in here is pure: inputs are never mutated and the only source of
non-determinism is the random generator handed to :func:`random_episode`.
"""

from __future__ import annotations

import random
from typing import Iterable, Sequence

from .models import Episode


class NoEpisodesAvailableError(RuntimeError):
    """Raised when a selector is asked to choose from an empty episode set."""


def filter_available(episodes: Iterable[Episode]) -> list[Episode]:
    """Drop episodes Plex has flagged as deleted."""

    return [episode for episode in episodes if episode.available]


def _rating_sort_key(episode: Episode) -> tuple[bool, float]:
    if episode.rating is None:
        return (True, 0.0)
    return (False, -episode.rating)


def filter_top_rated(
    episodes: Sequence[Episode], top_percent: float | None = None
) -> list[Episode]:
    """Keep the best rated fraction of ``episodes``.

    Episodes are ordered by descending rating with unrated ones last, then the
    prefix whose ``position / total`` stays within ``top_percent`` is kept.
    A falsy ``top_percent`` returns the episodes unchanged.
    """

    if not top_percent:
        return list(episodes)

    ranked = sorted(episodes, key=_rating_sort_key)
    total = len(ranked)
    return [
        episode
        for position, episode in enumerate(ranked)
        if position / total <= top_percent
    ]


def _candidates(
    episodes: Iterable[Episode], top_percent: float | None
) -> list[Episode]:
    available = filter_available(episodes)
    if top_percent:
        available = filter_top_rated(available, top_percent)
    return available


def first_unwatched(episodes: Iterable[Episode]) -> Episode | None:
    """Return the earliest unwatched episode by (season, episode) number."""

    unwatched = [episode for episode in episodes if not episode.watched]
    if not unwatched:
        return None
    return min(
        unwatched,
        key=lambda episode: (episode.parent_index or 0, episode.index or 0),
    )


def resume_candidate(
    episodes: Iterable[Episode], top_percent: float | None = None
) -> Episode | None:
    """Return the first partially watched episode, in catalog order."""

    for episode in _candidates(episodes, top_percent):
        if episode.view_offset > 0:
            return episode
    return None


def random_episode(
    episodes: Iterable[Episode],
    top_percent: float | None = None,
    rng: random.Random | None = None,
) -> Episode:
    """Return a uniformly random available episode."""

    candidates = _candidates(episodes, top_percent)
    if not candidates:
        raise NoEpisodesAvailableError("No available episodes to choose from")
    chooser = rng or random
    return chooser.choice(candidates)

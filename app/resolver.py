"""Fuzzy resolution of spoken show names against the Plex library."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Sequence, TypeVar

from rapidfuzz import fuzz, process

from .models import Show

T = TypeVar("T")


@dataclass(slots=True)
class MatchResult(Generic[T]):
    """Best fuzzy match and its score on a 0 to 100 scale."""

    best_match: T | None
    confidence: float = 0.0


Matcher = Callable[..., MatchResult]


def _normalise(value: str) -> str:
    return " ".join(value.casefold().split())


def find_best_match(
    query: str,
    candidates: Sequence[T],
    key: Callable[[T], str],
    *,
    score_cutoff: float | None = None,
) -> MatchResult[T]:
    """Return the candidate whose ``key`` best matches ``query``."""

    normalized_query = _normalise(query or "")
    if not normalized_query or not candidates:
        return MatchResult(best_match=None, confidence=0.0)

    choices = [_normalise(key(candidate) or "") for candidate in candidates]
    match = process.extractOne(
        normalized_query,
        choices,
        scorer=fuzz.WRatio,
        score_cutoff=score_cutoff or 0,
    )
    if match is None:
        return MatchResult(best_match=None, confidence=0.0)
    _, score, index = match
    return MatchResult(best_match=candidates[index], confidence=float(score))


def resolve_show(
    spoken_name: str,
    catalog: Sequence[Show],
    *,
    matcher: Matcher = find_best_match,
    score_cutoff: float | None = None,
) -> MatchResult[Show]:
    """Map a spoken show name onto the closest show in ``catalog``."""

    return matcher(
        spoken_name,
        catalog,
        lambda show: show.title,
        score_cutoff=score_cutoff,
    )

"""
Filter/Search Evaluator.

Pure functions over an in-memory catalog. Safe to call on every keystroke.
"""

from typing import Iterable, List

from trailhub.core.errors import ValidationError
from trailhub.core.models import DIFFICULTY_ALIASES, Difficulty, Trail

ALL = "all"


def _difficulty_filter(value: str) -> str:
    cleaned = (value or ALL).strip()
    if cleaned.lower() == ALL:
        return ALL
    cleaned = DIFFICULTY_ALIASES.get(cleaned, cleaned.lower())
    try:
        return Difficulty(cleaned).value
    except ValueError:
        raise ValidationError(f"Unknown difficulty filter: {value!r}")


def matches(trail: Trail, query: str, difficulty: str, country: str) -> bool:
    """Whether one trail passes all three predicates (inputs already normalized)."""
    if query:
        haystacks = (trail.name, trail.country, trail.region)
        if not any(query in h.lower() for h in haystacks):
            return False
    if difficulty != ALL and trail.difficulty.value != difficulty:
        return False
    if country != ALL and trail.country != country:
        return False
    return True


def visible(
    trails: Iterable[Trail],
    query: str = "",
    difficulty_filter: str = ALL,
    country_filter: str = ALL,
) -> List[Trail]:
    """
    Returns the visible subset of `trails`, in catalog order.

    A trail is visible when the query is empty or a case-insensitive substring
    of its name, country or region, and the difficulty and country filters are
    either "all" or equal to the trail's value.

    Raises:
        ValidationError: If the difficulty filter is not a known level.
    """
    q = (query or "").strip().lower()
    difficulty = _difficulty_filter(difficulty_filter)
    country = (country_filter or ALL).strip()
    if country.lower() == ALL:
        country = ALL
    return [t for t in trails if matches(t, q, difficulty, country)]

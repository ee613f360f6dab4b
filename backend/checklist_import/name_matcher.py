"""Exact and fuzzy name matching against catalog entities.

Names are compared after lowercasing and accent folding, so "Acuña" and
"acuna" are the same name. A candidate is an *exact* match when its
normalized name contains the normalized query, which tolerates catalog
names carrying suffixes or middle initials ("Ken Griffey Jr.").

Fuzzy matches tolerate typos. The rule mirrors the catalog batch lookup:
Levenshtein distance ``d`` and similarity ``s = 1 - d / max_len`` on names
with periods removed; a candidate is fuzzy when ``d <= 2``, or ``d <= 3``
and ``s > 0.75``, or ``s > 0.85``. A one-word query equal to a candidate's
first or last name ("Ichiro") scores 0.95.
"""

import re
import unicodedata
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from .models import MatchSet, Player, Team

MAX_FUZZY_RESULTS = 5
SINGLE_NAME_SIMILARITY = 0.95


def fold_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_name(value: Optional[str]) -> str:
    """Lowercase, strip diacritics and collapse whitespace."""
    if not value:
        return ""
    return re.sub(r"\s+", " ", fold_accents(value.lower())).strip()


def _fuzzy_key(value: Optional[str]) -> str:
    # "J.T. Realmuto" -> "jt realmuto"
    return re.sub(r"\s+", " ", normalize_name(value).replace(".", "")).strip()


def covers(resolved_name: str, mention: str) -> bool:
    """True when a resolved catalog name accounts for a free-text mention."""
    needle = normalize_name(mention)
    if not needle:
        return False
    return needle in normalize_name(resolved_name)


def similarity(query: str, candidate: str) -> Tuple[int, float]:
    """Return ``(distance, ratio)`` between two already-normalized names."""
    distance = Levenshtein.distance(query, candidate)
    max_len = max(len(query), len(candidate))
    if max_len == 0:
        return 0, 1.0
    return distance, 1.0 - distance / max_len


def _is_fuzzy(distance: int, ratio: float) -> bool:
    return distance <= 2 or (distance <= 3 and ratio > 0.75) or ratio > 0.85


def match(
    query: str,
    candidates: Sequence,
    name_of: Callable[[object], str],
    name_parts_of: Optional[Callable[[object], Iterable[str]]] = None,
    limit: int = MAX_FUZZY_RESULTS,
) -> MatchSet:
    """Partition ``candidates`` into exact and fuzzy matches for ``query``.

    Exact matches keep catalog order. Fuzzy matches are ranked by similarity,
    ties broken by name and then catalog order, and capped at ``limit``.
    The same inputs always produce the same partition and ordering.
    """
    needle = normalize_name(query)
    if not needle:
        return MatchSet()

    fuzzy_needle = _fuzzy_key(query)
    single_name = " " not in fuzzy_needle

    exact = []
    scored: List[Tuple[float, str, int, object]] = []
    for position, candidate in enumerate(candidates):
        name = normalize_name(name_of(candidate))
        if not name:
            continue
        if needle in name:
            exact.append(candidate)
            continue

        if single_name and name_parts_of is not None:
            parts = {_fuzzy_key(part) for part in name_parts_of(candidate) if part}
            if fuzzy_needle in parts:
                scored.append((SINGLE_NAME_SIMILARITY, name, position, candidate))
                continue

        distance, ratio = similarity(fuzzy_needle, _fuzzy_key(name))
        if _is_fuzzy(distance, ratio):
            scored.append((ratio, name, position, candidate))

    scored.sort(key=lambda item: (-item[0], item[1], item[2]))
    return MatchSet(exact=exact, fuzzy=[c for _, _, _, c in scored[:limit]])


def match_players(query: str, players: Sequence[Player], limit: int = MAX_FUZZY_RESULTS) -> MatchSet:
    return match(
        query,
        players,
        name_of=lambda p: p.player_name,
        name_parts_of=lambda p: (p.first_name, p.last_name),
        limit=limit,
    )


def match_teams(query: str, teams: Sequence[Team], limit: int = MAX_FUZZY_RESULTS) -> MatchSet:
    return match(query, teams, name_of=lambda t: t.team_name, limit=limit)

"""Address normalisation and typo-tolerant ranking."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import re

from rapidfuzz.distance import Levenshtein

from .entities import Building

__all__ = [
    "STREET_ABBREVIATIONS",
    "DEFAULT_MAX_DISTANCE",
    "SearchStatus",
    "SearchOutcome",
    "normalize_address",
    "edit_distance",
    "score",
    "rank",
    "AddressIndex",
    "search",
]

logger = logging.getLogger(__name__)

STREET_ABBREVIATIONS: dict[str, str] = {
    "STREET": "ST",
    "AVENUE": "AVE",
    "BOULEVARD": "BLVD",
    "PLACE": "PL",
    "ROAD": "RD",
    "DRIVE": "DR",
    "LANE": "LN",
    "COURT": "CT",
    "TERRACE": "TER",
    "NORTH": "N",
    "SOUTH": "S",
    "EAST": "E",
    "WEST": "W",
}

DEFAULT_MAX_DISTANCE = 10

_ORDINAL_RE = re.compile(r"(\d+)(ST|ND|RD|TH)\b")
_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(map(re.escape, STREET_ABBREVIATIONS)) + r")\b"
)
_SPACES_RE = re.compile(r"\s+")


def normalize_address(text: Optional[str]) -> str:
    """Canonical uppercase form used on both sides of a comparison.

    >>> normalize_address("108th St.")
    '108 ST'
    >>> normalize_address("West Street")
    'W ST'
    """

    if not text:
        return ""
    q = str(text).upper().replace(".", "")
    q = _ORDINAL_RE.sub(r"\1", q)
    q = _ABBREVIATION_RE.sub(lambda m: STREET_ABBREVIATIONS[m.group(1)], q)
    return _SPACES_RE.sub(" ", q).strip()


def edit_distance(a: str, b: str) -> int:
    """Unit-cost Levenshtein distance."""
    return Levenshtein.distance(a, b)


def score(
    query: str, address: str, *, max_distance: int = DEFAULT_MAX_DISTANCE
) -> Optional[int]:
    """Score two normalised strings; lower is better, ``None`` means no match.

    A prefix match scores -1 and any other substring match 0. Otherwise the
    query is compared with the address prefix of the same length, and
    distances of ``max_distance`` or more are rejected.
    """

    if query in address:
        return -1 if address.startswith(query) else 0
    dist = edit_distance(query, address[: len(query)])
    if dist >= max_distance:
        return None
    return dist


def rank(
    query: str,
    candidates: Iterable[Tuple[str, str]],
    *,
    limit: Optional[int] = None,
    max_distance: int = DEFAULT_MAX_DISTANCE,
    normalized: bool = False,
) -> List[Tuple[str, int]]:
    """Rank ``(id, address)`` pairs against ``query``.

    Ascending score; ties keep candidate order. ``normalized=True`` skips
    re-normalising addresses that were prepared ahead of time.
    """

    q = normalize_address(query)
    scored: List[Tuple[str, int]] = []
    for cid, address in candidates:
        addr = address if normalized else normalize_address(address)
        s = score(q, addr, max_distance=max_distance)
        if s is not None:
            scored.append((cid, s))
    scored.sort(key=lambda item: item[1])
    if limit is not None:
        scored = scored[:limit]
    return scored


class SearchStatus(Enum):
    OK = "ok"
    INSUFFICIENT_INPUT = "insufficient_input"


@dataclass(frozen=True)
class SearchOutcome:
    status: SearchStatus
    query: str = ""
    ids: Tuple[str, ...] = ()
    scores: Tuple[int, ...] = field(default=(), repr=False)

    @property
    def ok(self) -> bool:
        return self.status is SearchStatus.OK

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self):
        return iter(self.ids)


class AddressIndex:
    """Normalised display addresses, computed once for the loaded catalog."""

    def __init__(self, buildings: Iterable[Building], *, max_distance: int = DEFAULT_MAX_DISTANCE):
        self._entries: List[Tuple[str, str]] = [
            (b.id, normalize_address(b.display_address)) for b in buildings
        ]
        self.max_distance = max_distance

    def __len__(self) -> int:
        return len(self._entries)

    def search(
        self, query: Optional[str], *, limit: Optional[int] = None, min_length: int = 3
    ) -> SearchOutcome:
        raw = (query or "").strip()
        q = normalize_address(raw)
        if len(raw) < min_length or not q:
            return SearchOutcome(SearchStatus.INSUFFICIENT_INPUT, query=q)
        ranked = rank(
            q, self._entries, limit=limit, max_distance=self.max_distance, normalized=True
        )
        logger.debug("search.ranked query=%s results=%d limit=%s", q, len(ranked), limit)
        return SearchOutcome(
            SearchStatus.OK,
            query=q,
            ids=tuple(cid for cid, _ in ranked),
            scores=tuple(s for _, s in ranked),
        )


def search(
    query: Optional[str],
    buildings: Sequence[Building],
    *,
    limit: Optional[int] = None,
    min_length: int = 3,
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> SearchOutcome:
    return AddressIndex(buildings, max_distance=max_distance).search(
        query, limit=limit, min_length=min_length
    )

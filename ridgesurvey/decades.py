"""Construction-decade parsing and bucketing helpers."""

from __future__ import annotations

from typing import Any, Optional
import re

__all__ = [
    "DECADE_BUCKETS",
    "DECADE_LABELS",
    "EARLIEST_LABEL",
    "LATEST_LABEL",
    "year_from_text",
    "decade_for_year",
    "decade_for",
    "decade_sort_key",
]

EARLIEST_LABEL = "1870s or earlier"
LATEST_LABEL = "1940 or later"

# (exclusive upper year, label); anything past the last bound is LATEST_LABEL.
DECADE_BUCKETS: list[tuple[int, str]] = [
    (1880, EARLIEST_LABEL),
    (1890, "1880s"),
    (1900, "1890s"),
    (1910, "1900s"),
    (1920, "1910s"),
    (1930, "1920s"),
    (1940, "1930s"),
]

DECADE_LABELS: tuple[str, ...] = tuple(label for _, label in DECADE_BUCKETS) + (
    LATEST_LABEL,
)

_DECADE_RANK: dict[str, int] = {label: i for i, label in enumerate(DECADE_LABELS)}

_YEAR_RE = re.compile(r"\d{4}")


def year_from_text(value: Any) -> Optional[int]:
    """Return the first four-digit run in ``value`` as an int, else ``None``.

    >>> year_from_text("c. 1894-1896")
    1894
    >>> year_from_text("unknown") is None
    True
    """

    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(int(value))
    if not isinstance(value, str):
        return None
    m = _YEAR_RE.search(value)
    if m is None:
        return None
    return int(m.group(0))


def decade_for_year(year: int) -> str:
    for upper, label in DECADE_BUCKETS:
        if year < upper:
            return label
    return LATEST_LABEL


def decade_for(value: Any) -> Optional[str]:
    """Bucket a free-text built date; unparseable input yields ``None``."""

    year = year_from_text(value)
    if year is None:
        return None
    return decade_for_year(year)


def decade_sort_key(label: str) -> tuple[int, str]:
    return (_DECADE_RANK.get(label, len(_DECADE_RANK)), label)

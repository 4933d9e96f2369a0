from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator, Optional

from .routes import HomeRoute, PropertyRoute, Route

__all__ = ["DEFAULT_HISTORY_CAP", "HistoryStack"]

DEFAULT_HISTORY_CAP = 300


class HistoryStack:
    """Capped navigation history; the newest route is the top.

    A route equal to the current top is not pushed again. Past ``cap``
    entries the oldest one is evicted.
    """

    def __init__(self, cap: int = DEFAULT_HISTORY_CAP, routes: Iterable[Route] = ()):
        if cap < 1:
            raise ValueError("history cap must be >= 1")
        self._items: deque[Route] = deque(maxlen=cap)
        for route in routes:
            self.push(route)

    @property
    def cap(self) -> int:
        return self._items.maxlen

    def push(self, route: Route) -> bool:
        if self._items and self._items[-1] == route:
            return False
        self._items.append(route)
        return True

    @property
    def top(self) -> Optional[Route]:
        return self._items[-1] if self._items else None

    @property
    def previous(self) -> Optional[Route]:
        return self._items[-2] if len(self._items) > 1 else None

    def last_non_property(self) -> Optional[Route]:
        for route in reversed(self._items):
            if not isinstance(route, PropertyRoute):
                return route
        return None

    def last_list_route(self) -> Optional[Route]:
        """Most recent route a closed property panel should return to."""
        for route in reversed(self._items):
            if not isinstance(route, (PropertyRoute, HomeRoute)):
                return route
        return None

    def copy(self) -> "HistoryStack":
        return HistoryStack(self.cap, self._items)

    def __iter__(self) -> Iterator[Route]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HistoryStack(len={len(self)}, cap={self.cap}, top={self.top!r})"

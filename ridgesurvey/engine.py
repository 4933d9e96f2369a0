from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple
import asyncio
import functools
import logging
import time

from .config import Settings, discover_config
from .entities import Building, District, EntityList, ReadOnlyEntityView, entity_map
from .filters import Dimension, FilterComposer, predicate_for
from .geometry import Bounds
from .loader import buildings_from_geojson, districts_from_geojson, load_files
from .membership import MembershipIndex
from .preprocess import preprocess
from .query import Query, unwrap_query
from .router import AppState, Resolution, ViewStateRouter
from .routes import PropertyRoute, SurveyDimension, serialize_route
from .scheduler import AsyncioScheduler, Debouncer, Scheduler
from .search import AddressIndex, SearchOutcome

__all__ = ["SurveyEngine", "ShowAttempt"]

logger = logging.getLogger(__name__)

Listener = Callable[[Resolution], Any]


def timeit(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(
                "engine.timing func=%s seconds=%.4f", func.__name__, time.perf_counter() - start
            )

    return wrapper


@dataclass(frozen=True)
class ShowAttempt:
    """Outcome of asking to open a building under the current filters.

    ``navigated`` is set when the building was visible and the engine moved
    to it. Otherwise ``needs_confirmation`` is set and ``confirm_tokens``
    lists the navigation that clears filters first (home, then the property).
    """

    building_id: str
    navigated: bool = False
    needs_confirmation: bool = False
    resolution: Optional[Resolution] = None
    confirm_tokens: Tuple[str, ...] = ()


class SurveyEngine:
    """One browsing session over a fixed building catalog.

    The catalog, membership index and subset caches are built once by
    :meth:`load`; navigation before that is dropped. All per-event state
    lives in :attr:`state` and changes only inside :meth:`navigate`,
    :meth:`refresh` and the other event entry points.
    """

    def __init__(self, settings: Optional[Settings] = None, *, scheduler: Optional[Scheduler] = None):
        self.settings = settings or Settings()
        self.scheduler = scheduler or AsyncioScheduler()
        self.state = AppState.for_settings(self.settings)
        self.last_resolution: Optional[Resolution] = None

        self._buildings: EntityList = EntityList()
        self._districts: EntityList = EntityList()
        self._by_id = entity_map(())
        self._index: Optional[MembershipIndex] = None
        self._composer: Optional[FilterComposer] = None
        self._router: Optional[ViewStateRouter] = None
        self._addresses: Optional[AddressIndex] = None
        self._loaded = False
        self._listeners: List[Listener] = []
        self._debouncer = Debouncer(self.scheduler, self.settings.debounce_seconds)
        self._in_bulk = False

    # ------------------------------------------------------------------
    # Construction / loading
    # ------------------------------------------------------------------
    @classmethod
    def from_files(
        cls,
        buildings_path: str | Path,
        district_paths: Mapping[str, str | Path] | Sequence[str | Path],
        *,
        settings: Optional[Settings] = None,
        scheduler: Optional[Scheduler] = None,
        initial: Optional[str] = None,
    ) -> "SurveyEngine":
        if isinstance(district_paths, Mapping):
            sources: Optional[Sequence[str]] = list(district_paths)
            paths = list(district_paths.values())
        else:
            sources, paths = None, list(district_paths)
        buildings, districts = load_files(buildings_path, paths)
        engine = cls(settings, scheduler=scheduler)
        return engine.load(buildings, *districts, sources=sources, initial=initial)

    @classmethod
    def from_config(
        cls,
        path: str | Path | None = None,
        *,
        scheduler: Optional[Scheduler] = None,
        initial: Optional[str] = None,
    ) -> "SurveyEngine":
        settings = discover_config(path)
        if not settings.buildings_path or not settings.district_paths:
            raise ValueError(
                "Config must name data_sources.buildings and data_sources.districts"
            )
        return cls.from_files(
            settings.buildings_path,
            settings.district_paths,
            settings=settings,
            scheduler=scheduler,
            initial=initial,
        )

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(
        self,
        buildings: Any,
        *district_collections: Any,
        sources: Optional[Sequence[str]] = None,
        initial: Optional[str] = None,
    ) -> "SurveyEngine":
        """Parse GeoJSON collections and build the session's indexes."""

        records = buildings_from_geojson(buildings)
        districts = districts_from_geojson(
            *district_collections, sources=sources, settings=self.settings
        )
        return self.load_records(records, districts, initial=initial)

    async def aload(
        self,
        buildings: Awaitable[Any],
        *district_collections: Awaitable[Any],
        sources: Optional[Sequence[str]] = None,
        initial: Optional[str] = None,
    ) -> "SurveyEngine":
        """Await every input collection together, then :meth:`load` synchronously."""

        results = await asyncio.gather(buildings, *district_collections)
        return self.load(results[0], *results[1:], sources=sources, initial=initial)

    @timeit
    def load_records(
        self,
        buildings: Iterable[Building],
        districts: Iterable[District],
        *,
        initial: Optional[str] = None,
    ) -> "SurveyEngine":
        if self._loaded:
            raise RuntimeError("SurveyEngine is already loaded; create a new session instead")

        with self.bulk():
            self._buildings = EntityList(buildings)
            self._districts = EntityList(districts)
            preprocess(self._buildings, self._districts)

        self._loaded = True
        logger.info(
            "engine.loaded buildings=%d districts=%d claimed=%d",
            len(self._buildings),
            len(self._districts),
            len(self._index.reverse),
        )
        if initial is not None:
            self.navigate(initial)
        return self

    @contextmanager
    def bulk(self):
        """Defer index construction until the block finishes."""
        prev = self._in_bulk
        self._in_bulk = True
        try:
            yield
        finally:
            self._in_bulk = prev
            self._rebuild_indexes()

    def _rebuild_indexes(self) -> None:
        self._by_id = entity_map(self._buildings)
        self._index = MembershipIndex.build(self._buildings, self._districts)
        self._composer = FilterComposer(
            self._buildings, self._index, color_order=self.settings.color_order
        )
        self._addresses = AddressIndex(
            self._buildings, max_distance=self.settings.max_edit_distance
        )
        self._router = ViewStateRouter(
            self._buildings,
            self._districts,
            self._index,
            composer=self._composer,
            settings=self.settings,
            addresses=self._addresses,
        )

    # ------------------------------------------------------------------
    # Catalog access
    # ------------------------------------------------------------------
    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("SurveyEngine has not been loaded")

    @property
    def buildings(self) -> ReadOnlyEntityView:
        return ReadOnlyEntityView(self._by_id)

    @property
    def districts(self) -> EntityList:
        return EntityList(self._districts)

    @property
    def index(self) -> MembershipIndex:
        self._require_loaded()
        return self._index

    @property
    def composer(self) -> FilterComposer:
        self._require_loaded()
        return self._composer

    @property
    def router(self) -> ViewStateRouter:
        self._require_loaded()
        return self._router

    def __len__(self) -> int:
        return len(self._buildings)

    def __iter__(self):
        return iter(self._buildings)

    def __getitem__(self, building_id: str) -> Building:
        return self._by_id[building_id]

    def building(self, building_id: Any) -> Optional[Building]:
        return self._by_id.get(str(building_id))

    def district(self, name: str) -> Optional[District]:
        for d in self._districts:
            if d.name == name:
                return d
        return None

    def buildings_in(self, name: str) -> EntityList:
        self._require_loaded()
        return EntityList(self._by_id[i] for i in self._index.entities_in(name))

    def district_of(self, building_id: Any) -> Optional[str]:
        self._require_loaded()
        return self._index.region_of(str(building_id))

    # ------------------------------------------------------------------
    # Presentation listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, resolution: Resolution) -> Resolution:
        self.last_resolution = resolution
        for listener in list(self._listeners):
            listener(resolution)
        return resolution

    # ------------------------------------------------------------------
    # Navigation events
    # ------------------------------------------------------------------
    def navigate(self, token: str) -> Optional[Resolution]:
        if not self._loaded:
            logger.debug("engine.navigation_dropped token=%s reason=not_loaded", token)
            return None
        return self._emit(self._router.resolve(token, self.state))

    def refresh(self) -> Optional[Resolution]:
        if not self._loaded:
            return None
        return self._emit(self._router.refresh(self.state))

    def close_property(self) -> Optional[Resolution]:
        if not self._loaded:
            return None
        return self.navigate(self._router.close_property(self.state))

    def attempt_show_property(self, building_id: Any) -> ShowAttempt:
        """Open a building if the current filters show it; otherwise ask first."""

        bid = str(building_id)
        token = serialize_route(PropertyRoute(bid))
        if not self._loaded:
            return ShowAttempt(bid)
        if self._router.is_visible(bid, self.state):
            return ShowAttempt(bid, navigated=True, resolution=self.navigate(token))
        logger.info("engine.show_needs_confirmation id=%s", bid)
        return ShowAttempt(bid, needs_confirmation=True, confirm_tokens=("home", token))

    def confirm_show_property(self, attempt: ShowAttempt) -> Optional[Resolution]:
        """Carry out a confirmed :class:`ShowAttempt`: clear filters, then open it."""
        resolution = None
        for token in attempt.confirm_tokens:
            resolution = self.navigate(token)
        return resolution

    # ------------------------------------------------------------------
    # Follow-map
    # ------------------------------------------------------------------
    def set_follow_map(self, enabled: bool) -> Optional[Resolution]:
        self.state.follow_map = bool(enabled)
        if not enabled:
            self._debouncer.cancel()
        return self.refresh()

    def on_viewport_change(self, bounds: Bounds) -> None:
        """Record the viewport; refresh lists once the burst settles."""

        if not isinstance(bounds, Bounds):
            raise TypeError(f"on_viewport_change expects Bounds, got {type(bounds).__name__}")
        self.state.viewport = bounds
        if not (self._loaded and self.state.follow_map):
            return
        self._debouncer.trigger(self._debounced_refresh)

    def _debounced_refresh(self) -> None:
        if isinstance(self.state.route, PropertyRoute):
            logger.debug("engine.refresh_skipped reason=property_route")
            return
        self.refresh()

    # ------------------------------------------------------------------
    # Search and highlight
    # ------------------------------------------------------------------
    def suggest(self, query: str) -> SearchOutcome:
        """Inline suggestions; stored as the open dropdown until the next navigation."""
        self._require_loaded()
        outcome = self._addresses.search(
            query,
            limit=self.settings.suggestion_limit,
            min_length=self.settings.min_suggestion_length,
        )
        self.state.suggestions = outcome.ids
        return outcome

    def clear_suggestions(self) -> None:
        self.state.suggestions = ()

    def lookup(self, query: str, *, limit: Optional[int] = None) -> SearchOutcome:
        self._require_loaded()
        return self._addresses.search(
            query,
            limit=self.settings.lookup_limit if limit is None else limit,
            min_length=self.settings.min_search_length,
        )

    def toggle_highlight(self, origin: str, ids: Optional[Iterable[str]] = None) -> bool:
        """Toggle a panel highlight.

        ``ids`` defaults to the subset the current panel offered for ``origin``.
        Returns whether a highlight is active afterwards.
        """
        self._require_loaded()
        if ids is None:
            ids = self.state.highlight_targets.get(origin, ())
        active = self._composer.toggle_highlight(self.state.highlight, origin, ids)
        logger.debug("engine.highlight origin=%s active=%s", origin, active)
        return active

    def clear_highlight(self) -> None:
        self._require_loaded()
        self._composer.clear_highlight(self.state.highlight)

    # ------------------------------------------------------------------
    # Query DSL
    # ------------------------------------------------------------------
    def __rshift__(self, query):
        """
        Overloaded >> operator supports:
          1) Predicate callables:
             engine >> (lambda b: b.color == "Red")          -> Query[Building]

          2) Tuple-based mini-DSL:
             engine >> ("building", "42")                    -> Query[Building]
             engine >> ("district", "Ridge Historic District")  -> Query[District]
             engine >> ("district", "RIDGE*")                -> glob, case-insensitive
             engine >> ("search", "10100 S Longwood")        -> ranked Query[Building]
             engine >> ("survey", "color", "Red")            -> Query[Building]
             engine >> ("landmarks",)                        -> Query[Building]

          Every result is chainable: ``>> ("in_view", bounds) >> ("sorted",)``.
        """
        self._require_loaded()
        if callable(query):
            return Query([b for b in self._buildings if query(b)], self)
        if isinstance(query, str):
            query = (query,)
        if not (isinstance(query, tuple) and query):
            raise ValueError(f"Unsupported >> query: {query!r}")

        key = query[0]
        if key == "landmarks":
            pred = predicate_for(Dimension.LANDMARK_OR_CONTRIBUTING)
            return Query([b for b in self._buildings if pred(b)], self)

        if len(query) >= 2:
            if key == "building":
                b = self.building(unwrap_query(query[1]))
                return Query([b] if b is not None else [], self)

            if key == "district":
                import fnmatch

                target = (str(query[1]) if query[1] is not None else "").strip()
                if not target:
                    return Query([], self)
                pattern = target.replace("%", "*").upper()
                has_glob = any(ch in pattern for ch in ("*", "?"))
                matches = [
                    d
                    for d in self._districts
                    if (fnmatch.fnmatchcase(d.name.upper(), pattern) if has_glob else d.name.upper() == pattern)
                ]
                return Query(matches, self)

            if key == "search":
                outcome = self._addresses.search(
                    query[1], min_length=self.settings.min_search_length
                )
                return Query([self._by_id[i] for i in outcome.ids], self)

            if key == "survey":
                dim = SurveyDimension(str(query[1]).lower()).dimension
                value = query[2] if len(query) >= 3 else None
                ids = self._composer.subset(dim, value)
                return Query([self._by_id[i] for i in ids], self)

        raise ValueError(f"Unsupported >> query: {query!r}")

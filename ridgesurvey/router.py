"""View-state router: navigation token in, resolved application state out.

The router owns no state of its own. Every call takes an :class:`AppState`,
updates it in one synchronous pass and returns a :class:`Resolution` for
the presentation layer. Lookups that miss (unknown building id, unknown
district name) resolve to empty content; nothing here raises on bad
navigation input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union
import logging

from .config import Settings
from .entities import Building, District, entity_map
from .filters import Dimension, FilterComposer, HighlightState, origin_key
from .geometry import Bounds
from .history import HistoryStack
from .membership import MembershipIndex
from .routes import (
    HOME,
    DistrictRoute,
    DistrictsListRoute,
    HomeRoute,
    LandmarksRoute,
    PropertyRoute,
    Route,
    SearchRoute,
    SurveyDimensionRoute,
    SurveyRoute,
    SurveyValueRoute,
    parse_route,
    serialize_route,
)
from .search import AddressIndex, SearchStatus

__all__ = [
    "ALL_DISTRICTS",
    "DistrictContext",
    "AppState",
    "Resolution",
    "ViewStateRouter",
]

logger = logging.getLogger(__name__)


class _Context(Enum):
    ALL_DISTRICTS = "__ALL_DISTRICTS__"

    def __repr__(self) -> str:
        return "ALL_DISTRICTS"


ALL_DISTRICTS = _Context.ALL_DISTRICTS

DistrictContext = Union[str, _Context, None]

LANDMARK_KEY = origin_key(Dimension.LANDMARK)
CONTRIBUTING_KEY = origin_key(Dimension.CONTRIBUTING)


@dataclass
class AppState:
    """Everything one navigation event may change."""

    history: HistoryStack = field(default_factory=HistoryStack)
    active_context: DistrictContext = None
    highlight: HighlightState = field(default_factory=HighlightState)
    # origin key -> ids the panel offers for highlighting
    highlight_targets: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    follow_map: bool = False
    viewport: Optional[Bounds] = None
    selected_id: Optional[str] = None
    suggestions: Tuple[str, ...] = ()
    # None means the survey layer is unfiltered
    layer_ids: Optional[frozenset] = None
    # last list shown, for previous/next stepping on property panels
    navigation_ids: Tuple[str, ...] = ()

    @classmethod
    def for_settings(cls, settings: Settings) -> "AppState":
        return cls(history=HistoryStack(settings.history_cap))

    @property
    def route(self) -> Route:
        return self.history.top or HOME

    @property
    def follow_bounds(self) -> Optional[Bounds]:
        """Viewport to filter lists by, or None when follow-map is off."""
        return self.viewport if self.follow_map else None


@dataclass
class Resolution:
    route: Route
    token: str
    active_context: DistrictContext = None
    display_ids: Tuple[str, ...] = ()
    highlight_ids: Tuple[str, ...] = ()
    highlight_origin: Optional[str] = None
    emphasized_region: Optional[str] = None
    show_all_regions: bool = False
    selected_id: Optional[str] = None
    layer_ids: Optional[frozenset] = None
    groups: Optional[Dict[str, Tuple[str, ...]]] = None
    region_names: Optional[Dict[str, Tuple[str, ...]]] = None
    search_status: Optional[SearchStatus] = None
    redirect: Optional[str] = None
    redirect_needs_confirmation: bool = False
    prev_id: Optional[str] = None
    next_id: Optional[str] = None
    # 1-based (index, total) within the navigation list
    position: Optional[Tuple[int, int]] = None
    state: Optional[AppState] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict:
        ctx = self.active_context
        return {
            "token": self.token,
            "route": type(self.route).__name__,
            "active_context": ctx.name if isinstance(ctx, _Context) else ctx,
            "display_ids": list(self.display_ids),
            "highlight_origin": self.highlight_origin,
            "highlight_ids": list(self.highlight_ids),
            "emphasized_region": self.emphasized_region,
            "show_all_regions": self.show_all_regions,
            "selected_id": self.selected_id,
            "layer_size": None if self.layer_ids is None else len(self.layer_ids),
            "groups": None
            if self.groups is None
            else {k: len(v) for k, v in self.groups.items()},
            "region_names": None
            if self.region_names is None
            else {k: list(v) for k, v in self.region_names.items()},
            "search_status": self.search_status.value if self.search_status else None,
            "redirect": self.redirect,
            "redirect_needs_confirmation": self.redirect_needs_confirmation,
            "prev_id": self.prev_id,
            "next_id": self.next_id,
            "position": None if self.position is None else list(self.position),
        }


class ViewStateRouter:
    def __init__(
        self,
        buildings: Sequence[Building],
        districts: Sequence[District],
        index: MembershipIndex,
        composer: Optional[FilterComposer] = None,
        settings: Optional[Settings] = None,
        addresses: Optional[AddressIndex] = None,
    ):
        self.settings = settings or Settings()
        self.index = index
        self.composer = composer or FilterComposer(
            buildings, index, color_order=self.settings.color_order
        )
        self.districts = entity_map(districts, key="name")
        self.addresses = addresses or AddressIndex(
            buildings, max_distance=self.settings.max_edit_distance
        )

    # ------------------------------------------------------------------
    # District context
    # ------------------------------------------------------------------
    def _known_district(self, name: str) -> Optional[str]:
        return name if self.index.has_district(name) else None

    def decide_context(
        self, route: Route, prev: Optional[Route], current: DistrictContext
    ) -> DistrictContext:
        """District context after moving from ``prev`` to ``route``."""

        if isinstance(route, DistrictRoute):
            return self._known_district(route.name)
        if not isinstance(route, PropertyRoute):
            return None

        if isinstance(prev, DistrictRoute) and self._known_district(prev.name):
            return prev.name
        if current is not None:
            return current

        region = self.index.region_of(route.id)
        if region is not None and isinstance(prev, PropertyRoute):
            if self.index.region_of(prev.id) == region:
                return region

        if prev is None or isinstance(prev, (DistrictsListRoute, HomeRoute)):
            return ALL_DISTRICTS
        return None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def resolve(self, token: str, state: AppState) -> Resolution:
        route = parse_route(token)
        state.history.push(route)
        prev = state.history.previous

        # transient per-building state never survives a navigation
        state.selected_id = None
        state.suggestions = ()

        before = state.active_context
        state.active_context = self.decide_context(route, prev, before)
        if state.active_context != before:
            logger.debug(
                "router.context from=%r to=%r route=%s",
                before,
                state.active_context,
                serialize_route(route),
            )

        resolution = self._panel(route, state)
        logger.debug(
            "router.resolved token=%s route=%s display=%d history=%d",
            resolution.token,
            type(route).__name__,
            len(resolution.display_ids),
            len(state.history),
        )
        return resolution

    def refresh(self, state: AppState) -> Resolution:
        """Rebuild the underlying list panel for the current viewport.

        On a property route this is the last non-property route in
        history (Home when there is none). History and the district
        context are left alone.
        """

        route = state.route
        if isinstance(route, PropertyRoute):
            route = state.history.last_non_property() or HOME
        return self._panel(route, state, selected=state.selected_id)

    def close_property(self, state: AppState) -> str:
        route = state.history.last_list_route()
        return serialize_route(route) if route is not None else "home"

    def is_visible(self, building_id: str, state: AppState) -> bool:
        building = self.composer.get(building_id)
        if building is None:
            return False
        if state.layer_ids is not None and building.id not in state.layer_ids:
            return False
        if state.follow_map and state.viewport is not None:
            return state.viewport.contains(building.centroid)
        return True

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------
    def _panel(
        self, route: Route, state: AppState, *, selected: Optional[str] = None
    ) -> Resolution:
        res = Resolution(route=route, token=serialize_route(route), state=state)

        if isinstance(route, PropertyRoute):
            self._property(route, state, res)
        elif isinstance(route, DistrictRoute):
            self._district(route, state, res)
        elif isinstance(route, SearchRoute):
            self._search(route, state, res)
        elif isinstance(route, LandmarksRoute):
            self._landmarks(state, res)
        elif isinstance(route, DistrictsListRoute):
            self._districts_list(state, res)
        elif isinstance(route, SurveyRoute):
            self._survey_root(state, res)
        elif isinstance(route, SurveyDimensionRoute):
            self._survey_dimension(route, state, res)
        elif isinstance(route, SurveyValueRoute):
            self._survey_value(route, state, res)
        else:
            self._home(state, res)

        if selected is not None:
            state.selected_id = selected
        res.active_context = state.active_context
        res.selected_id = state.selected_id
        res.layer_ids = state.layer_ids
        res.highlight_origin = state.highlight.origin
        res.highlight_ids = state.highlight.ids
        return res

    def _listing(self, ids: Iterable[str], state: AppState) -> Tuple[str, ...]:
        return self.composer.sort_ids(self.composer.restrict(ids, state.follow_bounds))

    def _reset_highlight(self, state: AppState) -> None:
        self.composer.clear_highlight(state.highlight)
        state.highlight_targets = {}

    def _home(self, state: AppState, res: Resolution) -> None:
        self._reset_highlight(state)
        state.layer_ids = None
        res.show_all_regions = True

    def _property(self, route: PropertyRoute, state: AppState, res: Resolution) -> None:
        building = self.composer.get(route.id)
        if building is None:
            logger.info("router.unknown_building id=%s", route.id)
        else:
            state.selected_id = building.id
            res.display_ids = (building.id,)

        ctx = state.active_context
        if isinstance(ctx, str):
            state.layer_ids = frozenset(self.index.entities_in(ctx))
            res.emphasized_region = ctx
        res.show_all_regions = ctx is ALL_DISTRICTS
        if building is not None and not state.follow_map:
            self._step(building.id, state.navigation_ids, res)

    def _step(self, building_id: str, ids: Tuple[str, ...], res: Resolution) -> None:
        try:
            i = ids.index(building_id)
        except ValueError:
            return
        res.prev_id = ids[i - 1] if i > 0 else None
        res.next_id = ids[i + 1] if i + 1 < len(ids) else None
        res.position = (i + 1, len(ids))

    def _district(self, route: DistrictRoute, state: AppState, res: Resolution) -> None:
        self._reset_highlight(state)
        members = self.index.entities_in(route.name)
        if not self.index.has_district(route.name):
            logger.info("router.unknown_district name=%s", route.name)
        else:
            res.emphasized_region = route.name
        state.layer_ids = frozenset(members)
        res.display_ids = self._listing(members, state)
        state.navigation_ids = res.display_ids
        if (
            route.name in self.settings.street_group_districts
            and len(res.display_ids) > self.settings.street_group_min
        ):
            res.groups = self.composer.street_groups(res.display_ids)

    def _search(self, route: SearchRoute, state: AppState, res: Resolution) -> None:
        self._reset_highlight(state)
        outcome = self.addresses.search(
            route.query, min_length=self.settings.min_search_length
        )
        res.search_status = outcome.status
        if not outcome.ok:
            return
        if len(outcome.ids) == 1:
            only = outcome.ids[0]
            res.redirect = serialize_route(PropertyRoute(only))
            res.redirect_needs_confirmation = not self.is_visible(only, state)
        res.display_ids = self.composer.restrict(outcome.ids, state.follow_bounds)
        state.navigation_ids = res.display_ids

    def _landmarks(self, state: AppState, res: Resolution) -> None:
        bounds = state.follow_bounds
        all_landmarks = self.composer.subset(Dimension.LANDMARK)
        all_contributing = self.composer.subset(Dimension.CONTRIBUTING)
        # the map highlight covers every landmark; only the list follows the viewport
        state.highlight_targets = {
            LANDMARK_KEY: self.composer.sort_ids(all_landmarks),
            CONTRIBUTING_KEY: self.composer.sort_ids(all_contributing),
        }
        self.composer.set_highlight(
            state.highlight, LANDMARK_KEY, state.highlight_targets[LANDMARK_KEY]
        )
        state.layer_ids = frozenset(self.composer.subset(Dimension.LANDMARK_OR_CONTRIBUTING))
        landmarks = self._listing(all_landmarks, state)
        contributing = self._listing(all_contributing, state)
        res.groups = {LANDMARK_KEY: landmarks, CONTRIBUTING_KEY: contributing}
        res.display_ids = landmarks + contributing
        state.navigation_ids = res.display_ids
        logger.debug(
            "router.landmarks landmarks=%d contributing=%d follow=%s",
            len(landmarks),
            len(contributing),
            bounds is not None,
        )

    def _districts_list(self, state: AppState, res: Resolution) -> None:
        self._reset_highlight(state)
        bounds = state.follow_bounds
        by_source: Dict[str, list] = {}
        for district in self.districts.values():
            if bounds is not None:
                dbounds = district.bounds
                if dbounds is None or not dbounds.intersects(bounds):
                    continue
            by_source.setdefault(district.source or "other", []).append(district.name)
        res.region_names = {src: tuple(sorted(names)) for src, names in sorted(by_source.items())}
        state.layer_ids = frozenset(self.index.all_member_ids())
        res.show_all_regions = True

    def _surveyed(self, ids: Iterable[str]) -> frozenset:
        return frozenset(self.composer.select(self.composer.predicate(Dimension.SURVEYED), ids=ids))

    def _survey_root(self, state: AppState, res: Resolution) -> None:
        self._reset_highlight(state)
        state.layer_ids = frozenset(self.composer.subset(Dimension.SURVEYED))
        visible = self.composer.restrict(self.composer.subset(Dimension.SURVEYED), state.follow_bounds)
        res.groups = {
            dim.value: tuple(self.composer.groups(dim, visible))
            for dim in (Dimension.COLOR, Dimension.DECADE, Dimension.ARCHITECT, Dimension.STYLE)
        }

    def _survey_dimension(
        self, route: SurveyDimensionRoute, state: AppState, res: Resolution
    ) -> None:
        self._reset_highlight(state)
        dim = route.dimension.dimension
        visible = self.composer.restrict(self.composer.all_ids(), state.follow_bounds)
        groups = self.composer.groups(dim, visible)
        state.highlight_targets = {origin_key(dim, value): ids for value, ids in groups.items()}
        state.layer_ids = frozenset(self.composer.subset(Dimension.SURVEYED))
        res.groups = groups

    def _survey_value(self, route: SurveyValueRoute, state: AppState, res: Resolution) -> None:
        dim = route.dimension.dimension
        full = self.composer.subset(dim, route.value)
        key = origin_key(dim, route.value)
        target = state.highlight_targets.get(key) or full
        self.composer.set_highlight(state.highlight, key, target)
        state.layer_ids = self._surveyed(full)
        res.display_ids = self._listing(full, state)
        state.navigation_ids = res.display_ids

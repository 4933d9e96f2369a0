"""Typed navigation routes and their token form.

Token grammar::

    home
    property/<id>
    district/<name>
    search/<query>
    landmarks
    districts
    survey[/<dimension>[/<value>]]      dimension: color|decade|architect|style

Names, queries and values are percent-encoded the way a browser's
``encodeURIComponent`` does it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union
from urllib.parse import quote, unquote
import logging

from .filters import Dimension

__all__ = [
    "SurveyDimension",
    "HomeRoute",
    "PropertyRoute",
    "DistrictRoute",
    "SearchRoute",
    "LandmarksRoute",
    "DistrictsListRoute",
    "SurveyRoute",
    "SurveyDimensionRoute",
    "SurveyValueRoute",
    "Route",
    "HOME",
    "parse_route",
    "parse_route_strict",
    "serialize_route",
    "is_list_route",
]

logger = logging.getLogger(__name__)

_SAFE = "!~*'()"


class SurveyDimension(Enum):
    COLOR = "color"
    DECADE = "decade"
    ARCHITECT = "architect"
    STYLE = "style"

    @property
    def dimension(self) -> Dimension:
        return Dimension(self.value)


@dataclass(frozen=True)
class HomeRoute:
    pass


@dataclass(frozen=True)
class PropertyRoute:
    id: str


@dataclass(frozen=True)
class DistrictRoute:
    name: str


@dataclass(frozen=True)
class SearchRoute:
    query: str


@dataclass(frozen=True)
class LandmarksRoute:
    pass


@dataclass(frozen=True)
class DistrictsListRoute:
    pass


@dataclass(frozen=True)
class SurveyRoute:
    pass


@dataclass(frozen=True)
class SurveyDimensionRoute:
    dimension: SurveyDimension


@dataclass(frozen=True)
class SurveyValueRoute:
    dimension: SurveyDimension
    value: str


Route = Union[
    HomeRoute,
    PropertyRoute,
    DistrictRoute,
    SearchRoute,
    LandmarksRoute,
    DistrictsListRoute,
    SurveyRoute,
    SurveyDimensionRoute,
    SurveyValueRoute,
]

HOME = HomeRoute()


def _encode(value: str) -> str:
    return quote(value, safe=_SAFE)


def _strip_token(token: str) -> str:
    token = token.strip()
    if token.startswith("#"):
        token = token[1:]
    if token.endswith("/"):
        token = token[:-1]
    return token


def parse_route_strict(token: str) -> Route:
    """Parse ``token`` into a route, raising ``ValueError`` when it is not one."""

    if not isinstance(token, str):
        raise ValueError(f"Route token must be a string, got {type(token).__name__}")
    body = _strip_token(token)
    if body in ("", "home"):
        return HOME
    if body == "landmarks":
        return LandmarksRoute()
    if body == "districts":
        return DistrictsListRoute()
    if body == "survey":
        return SurveyRoute()

    head, sep, rest = body.partition("/")
    if not sep or not rest:
        raise ValueError(f"Unrecognised route token: {token!r}")

    if head == "property":
        return PropertyRoute(unquote(rest))
    if head == "district":
        return DistrictRoute(unquote(rest))
    if head == "search":
        return SearchRoute(unquote(rest))
    if head == "survey":
        dim_token, sep, value = rest.partition("/")
        try:
            dim = SurveyDimension(dim_token)
        except ValueError:
            raise ValueError(f"Unknown survey dimension in {token!r}") from None
        if not sep:
            return SurveyDimensionRoute(dim)
        if not value or "/" in value:
            raise ValueError(f"Malformed survey value in {token!r}")
        return SurveyValueRoute(dim, unquote(value))
    raise ValueError(f"Unrecognised route token: {token!r}")


def parse_route(token: str) -> Route:
    """Lenient parse: anything unrecognised becomes :data:`HOME`."""

    try:
        return parse_route_strict(token)
    except ValueError as exc:
        logger.info("routes.fallback_home token=%r reason=%s", token, exc)
        return HOME


def serialize_route(route: Route) -> str:
    if isinstance(route, HomeRoute):
        return "home"
    if isinstance(route, PropertyRoute):
        return f"property/{_encode(route.id)}"
    if isinstance(route, DistrictRoute):
        return f"district/{_encode(route.name)}"
    if isinstance(route, SearchRoute):
        return f"search/{_encode(route.query)}"
    if isinstance(route, LandmarksRoute):
        return "landmarks"
    if isinstance(route, DistrictsListRoute):
        return "districts"
    if isinstance(route, SurveyRoute):
        return "survey"
    if isinstance(route, SurveyDimensionRoute):
        return f"survey/{route.dimension.value}"
    if isinstance(route, SurveyValueRoute):
        return f"survey/{route.dimension.value}/{_encode(route.value)}"
    raise TypeError(f"Not a route: {route!r}")


def is_list_route(route: Route) -> bool:
    return not isinstance(route, PropertyRoute)

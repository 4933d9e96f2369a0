import pytest

from ridgesurvey.filters import Dimension
from ridgesurvey.history import HistoryStack
from ridgesurvey.routes import (
    HOME,
    DistrictRoute,
    DistrictsListRoute,
    HomeRoute,
    LandmarksRoute,
    PropertyRoute,
    SearchRoute,
    SurveyDimension,
    SurveyDimensionRoute,
    SurveyRoute,
    SurveyValueRoute,
    is_list_route,
    parse_route,
    parse_route_strict,
    serialize_route,
)


@pytest.mark.parametrize(
    "token",
    [
        "home",
        "property/42",
        "district/Elm%20Park",
        "district/Beverly%2FMorgan%20Park%20Railroad%20Station",
        "search/108th%20St.",
        "landmarks",
        "districts",
        "survey",
        "survey/architect",
        "survey/color/Red",
        "survey/color/Yellow%2FGreen",
        "survey/decade/1870s%20or%20earlier",
    ],
)
def test_token_round_trip(token):
    assert serialize_route(parse_route(token)) == token


@pytest.mark.parametrize(
    "route",
    [
        HOME,
        PropertyRoute("42"),
        DistrictRoute("Ridge Historic District"),
        SearchRoute("100 Main St. #2"),
        LandmarksRoute(),
        DistrictsListRoute(),
        SurveyRoute(),
        SurveyDimensionRoute(SurveyDimension.STYLE),
        SurveyValueRoute(SurveyDimension.ARCHITECT, "Smith, John & Co."),
    ],
)
def test_route_round_trip(route):
    assert parse_route(serialize_route(route)) == route


def test_parse_accepts_hash_prefix_and_trailing_slash():
    assert parse_route("#district/Elm%20Park") == DistrictRoute("Elm Park")
    assert parse_route("#districts/") == DistrictsListRoute()
    assert parse_route("#") == HOME
    assert parse_route("") == HOME
    assert parse_route("survey/color") == SurveyDimensionRoute(SurveyDimension.COLOR)


@pytest.mark.parametrize(
    "token",
    ["garbage/token", "survey/colour", "survey/color/a/b", "property/", "district", "LANDMARKS"],
)
def test_unrecognised_tokens_fall_back_home(token):
    assert parse_route(token) == HOME
    with pytest.raises(ValueError):
        parse_route_strict(token)


def test_survey_dimension_maps_to_filter_dimension():
    assert SurveyDimension.DECADE.dimension is Dimension.DECADE
    assert SurveyDimension.STYLE.dimension is Dimension.STYLE


def test_is_list_route():
    assert is_list_route(LandmarksRoute())
    assert is_list_route(HOME)
    assert not is_list_route(PropertyRoute("1"))


def test_serialize_rejects_non_routes():
    with pytest.raises(TypeError):
        serialize_route("home")


def test_history_cap_evicts_oldest_first():
    history = HistoryStack()
    for i in range(301):
        history.push(PropertyRoute(str(i)))
    assert len(history) == 300
    assert list(history)[0] == PropertyRoute("1")
    assert history.top == PropertyRoute("300")


def test_history_skips_repeat_of_top():
    history = HistoryStack(cap=5)
    assert history.push(LandmarksRoute()) is True
    assert history.push(LandmarksRoute()) is False
    assert history.push(HOME) is True
    assert history.push(LandmarksRoute()) is True
    assert len(history) == 3


def test_history_lookups():
    history = HistoryStack(
        routes=[
            HOME,
            DistrictRoute("Elm Park"),
            HOME,
            PropertyRoute("42"),
            PropertyRoute("43"),
        ]
    )
    assert history.previous == PropertyRoute("42")
    assert history.last_non_property() == HomeRoute()
    assert history.last_list_route() == DistrictRoute("Elm Park")

    copied = history.copy()
    copied.push(LandmarksRoute())
    assert len(copied) == len(history) + 1


def test_history_rejects_zero_cap():
    with pytest.raises(ValueError):
        HistoryStack(cap=0)

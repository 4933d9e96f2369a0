import copy

import pytest

from ridgesurvey.engine import SurveyEngine
from ridgesurvey.scheduler import ManualScheduler


def square(lng, lat, half=0.0002):
    return {
        "type": "Polygon",
        "coordinates": [
            [
                [lng - half, lat - half],
                [lng + half, lat - half],
                [lng + half, lat + half],
                [lng - half, lat + half],
                [lng - half, lat - half],
            ]
        ],
    }


def box(west, south, east, north):
    return {
        "type": "Polygon",
        "coordinates": [
            [[west, south], [east, south], [east, north], [west, north], [west, south]]
        ],
    }


def feature(props, geometry):
    return {"type": "Feature", "properties": props, "geometry": geometry}


def fc(*features):
    return {"type": "FeatureCollection", "features": list(features)}


_BUILDINGS = fc(
    feature(
        {
            "BLDG_ID": 42,
            "F_ADD1": "100",
            "ST_NAME1": "MAIN",
            "ST_TYPE1": "ST",
            "CHRS_Address": "100 Main St",
            "CHRS_Color": "Red",
            "CHRS_Built_Date": "1894",
            "CHRS_Architect": "Smith, John",
            "CHRS_Building Style": "Queen Anne",
            "individual_landmark": "Y",
        },
        square(-87.695, 41.71),
    ),
    feature(
        {
            "BLDG_ID": 43.0,
            "F_ADD1": "102",
            "ST_NAME1": "MAIN",
            "ST_TYPE1": "ST",
            "CHRS_Address": "102 Main St",
            "CHRS_Color": "Orange",
            "CHRS_Built_Date": "c. 1925",
            "CHRS_Architect": "Adams",
            "CHRS_Building Style": "Bungalow",
            "contributing_ridge_historic_district": "YES",
        },
        square(-87.692, 41.705),
    ),
    feature(
        {
            "BLDG_ID": "44",
            "F_ADD1": "100",
            "ST_NAME1": "MAIN",
            "ST_TYPE1": "AVE",
            "CHRS_Address": "100 Main Ave",
            "CHRS_Color": "Red",
            "CHRS_Built_Date": "1910",
            "CHRS_Architect": "de Wolf",
            "CHRS_Building Style": "Queen Anne",
        },
        square(-87.685, 41.71),
    ),
    feature(
        {
            "BLDG_ID": 45,
            "F_ADD1": "10",
            "PRE_DIR1": "W",
            "ST_NAME1": "108TH",
            "ST_TYPE1": "ST",
            "CHRS_Color": "Green",
            "CHRS_Built_Date": "unknown",
            "contributing_ridge_historic_district": " y ",
        },
        square(-87.67, 41.71),
    ),
    feature(
        {
            "BLDG_ID": 46,
            "F_ADD1": "9",
            "ST_NAME1": "LONGWOOD",
            "ST_TYPE1": "DR",
            "CHRS_Address": "9 Longwood Dr",
            "CHRS_Color": "Blue",
            "CHRS_Built_Date": "1945",
            "Centroid_X": -87.645,
            "Centroid_Y": 41.705,
        },
        square(-87.6449, 41.7051),
    ),
    feature({"BLDG_ID": 47, "address": "500 OAK PL"}, None),
    feature(
        {"BLDG_ID": 48, "F_ADD1": "7", "ST_NAME1": "ELM", "ST_TYPE1": "CT"},
        {"type": "Point", "coordinates": [-87.60, 41.80]},
    ),
)

# Elm Park and Ridge overlap between -87.69 and -87.68; building 44 sits there.
_NATIONAL = fc(
    feature({"NAME": "Elm Park"}, box(-87.70, 41.70, -87.68, 41.72)),
    feature({"NAME": "Ridge Historic District"}, box(-87.69, 41.70, -87.66, 41.72)),
)

_CHICAGO = fc(
    feature({"name": "Longwood Drive"}, box(-87.65, 41.70, -87.64, 41.71)),
)


@pytest.fixture
def collections():
    return copy.deepcopy((_BUILDINGS, _NATIONAL, _CHICAGO))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def engine(collections, scheduler):
    buildings, national, chicago = collections
    return SurveyEngine(scheduler=scheduler).load(
        buildings, national, chicago, sources=["national", "chicago"]
    )

import pytest

from ridgesurvey.geometry import Bounds
from ridgesurvey.query import Query, unwrap_query


def test_landmarks_within_district(engine):
    q = engine >> ("landmarks",) >> ("in_district", "Elm Park")
    assert q.ids() == ["42", "43"]


def test_district_glob_expands_to_sorted_members(engine):
    q = engine >> ("district", "Ridge*") >> ("members",) >> ("sorted",)
    assert q.ids() == ["45", "44"]


def test_survey_and_filter_chain(engine):
    q = engine >> ("survey", "decade") >> ("where", lambda b: b.color == "Red")
    assert q.ids() == ["42", "44"]
    assert (engine >> "landmarks" >> ("survey", "color", "Orange")).ids() == ["43"]


def test_within_accepts_a_district_query(engine):
    elm = engine >> ("district", "elm park")
    assert elm.ids() == ["Elm Park"]
    assert unwrap_query(elm).name == "Elm Park"
    q = engine >> "landmarks" >> ("within", elm)
    assert q.ids() == ["42", "43"]


def test_take_map_distinct_and_sort(engine):
    everything = lambda b: True  # noqa: E731
    assert len(engine >> everything >> ("head", 2)) == 2
    assert len(engine >> everything >> ("take",)) == 5
    assert (engine >> "landmarks" >> ("select", lambda b: b.id)) == ["42", "43", "45"]

    styled = engine >> (lambda b: b.style is not None) >> ("distinct", lambda b: b.style)
    assert styled.ids() == ["42", "43"]

    newest_first = engine >> "landmarks" >> ("sort", lambda b: b.id, True)
    assert newest_first.ids() == ["45", "43", "42"]


def test_in_view(engine):
    view = Bounds(41.70, -87.70, 41.72, -87.688)
    assert (engine >> (lambda b: True) >> ("in_view", view)).ids() == ["42", "43"]
    with pytest.raises(ValueError):
        engine >> (lambda b: True) >> ("in_view", (41.70, -87.70, 41.72, -87.688))


def test_attribute_passthrough(engine):
    q = engine >> ("building", "42")
    assert q.color == "Red"
    assert q.decade == "1890s"
    assert bool(q)

    empty = engine >> ("building", "missing")
    assert not empty
    with pytest.raises(AttributeError):
        empty.color


def test_bad_operations_raise(engine):
    with pytest.raises(ValueError):
        engine >> "landmarks" >> ("explode",)
    with pytest.raises(ValueError):
        engine >> "landmarks" >> ("survey", "colour", "Red")
    with pytest.raises(ValueError):
        engine >> "landmarks" >> ("in_district",)
    with pytest.raises(ValueError):
        engine >> "landmarks" >> 3


def test_to_df_orders_renames_and_filters_columns(engine):
    q = engine >> "landmarks"
    df = q.to_df(column_order=["address", "id"], rename={"id": "bldg"})
    assert list(df.columns)[:2] == ["address", "bldg"]
    assert df["bldg"].tolist() == ["42", "43", "45"]

    narrow = q.to_df(columns=["id", "color", "not_a_column"])
    assert list(narrow.columns) == ["id", "color"]


def test_to_dicts_include_meta(engine):
    rows = (engine >> ("building", "46")).to_dicts(include_meta=True)
    assert rows[0]["id"] == "46"
    assert rows[0]["address"] == "9 LONGWOOD DR"


def test_query_over_plain_items():
    q = Query([3, 1, 2], engine=None) >> ("sort", lambda v: v)
    assert q.to_list() == [1, 2, 3]
    assert q.first() == 1

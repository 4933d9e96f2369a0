import pytest

from ridgesurvey.entities import Building
from ridgesurvey.search import (
    AddressIndex,
    SearchStatus,
    edit_distance,
    normalize_address,
    rank,
    score,
    search,
)


@pytest.mark.parametrize(
    "text",
    [
        "108th St.",
        "10 W 108TH STREET",
        "  9 longwood   drive ",
        "1st Ave",
        "Western Avenue",
        "N. Hoyne Blvd",
        "",
        "...",
        "22ND PL",
    ],
)
def test_normalize_is_idempotent(text):
    once = normalize_address(text)
    assert normalize_address(once) == once


def test_normalize_examples():
    assert normalize_address("108th St.") == normalize_address("108 ST") == "108 ST"
    assert normalize_address("10 West 108th Street") == "10 W 108 ST"
    assert normalize_address("9 Longwood Drive") == "9 LONGWOOD DR"
    assert normalize_address(None) == ""


def test_normalize_respects_word_boundaries():
    assert normalize_address("Western Avenue") == "WESTERN AVE"
    assert normalize_address("Eastwood Court") == "EASTWOOD CT"
    assert normalize_address("1st Place") == "1 PL"


def test_edit_distance():
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("same", "same") == 0


def test_score_rules():
    assert score("100 MAIN", "100 MAIN ST") == -1
    assert score("MAIN", "100 MAIN ST") == 0
    assert score("102 MAIN", "100 MAIN ST") == 1
    assert score("ABCDEFGHIJ", "ZZZZZZZZZZZZ") is None
    assert score("ABCDEFGHI", "ZZZZZZZZZZZZ") == 9
    assert score("ABC", "XYZ", max_distance=3) is None


def test_ranking_example():
    candidates = [("a", "100 MAIN ST"), ("b", "102 MAIN ST"), ("c", "100 MAIN AVE")]
    ranked = rank("100 Main", candidates)
    assert [cid for cid, _ in ranked] == ["a", "c", "b"]
    assert [s for _, s in ranked] == [-1, -1, 1]


def test_rank_limit_keeps_best():
    candidates = [(str(i), f"{i} MAIN ST") for i in range(100, 120)]
    ranked = rank("105 MAIN", candidates, limit=5)
    assert len(ranked) == 5
    assert ranked[0] == ("105", -1)


def _buildings():
    return [
        Building(id="42", house_number="100", street_name="MAIN", street_type="ST"),
        Building(id="43", house_number="102", street_name="MAIN", street_type="ST"),
        Building(id="44", house_number="100", street_name="MAIN", street_type="AVE"),
        Building(id="45", house_number="10", pre_dir="W", street_name="108TH", street_type="ST"),
    ]


def test_search_distinguishes_insufficient_input_from_no_results():
    items = _buildings()
    short = search("ab", items)
    assert short.status is SearchStatus.INSUFFICIENT_INPUT
    assert not short.ok and short.ids == ()

    dots = search("...", items)
    assert dots.status is SearchStatus.INSUFFICIENT_INPUT

    nothing = search("zzzzzzzzzzzzzzzzzzzz", items)
    assert nothing.status is SearchStatus.OK
    assert nothing.ids == ()


def test_search_ranks_buildings_by_display_address():
    outcome = search("100 Main", _buildings())
    assert outcome.ok
    assert outcome.query == "100 MAIN"
    assert list(outcome.ids[:3]) == ["42", "44", "43"]
    assert outcome.scores[:3] == (-1, -1, 1)


def test_search_matches_ordinal_street_numbers():
    outcome = search("10 W 108th Street", _buildings())
    assert outcome.ids[0] == "45"


def test_address_index_respects_limits():
    index = AddressIndex(_buildings())
    assert len(index) == 4
    assert len(index.search("100 Main", limit=2)) == 2
    assert index.search("ma", min_length=2).ok
    assert not index.search("m", min_length=2).ok

import pytest

from trailhub.core.errors import ValidationError
from trailhub.core.models import Trail
from trailhub.state.search import visible

from conftest import TRAIL_ROWS

CATALOG = [Trail.from_record(r) for r in TRAIL_ROWS]


def names(trails):
    return [t.name for t in trails]


def test_fuji_query_returns_only_fuji():
    catalog = [
        Trail(id="1", name="Fuji Yoshida", country="Japan", difficulty="beginner"),
        Trail(id="2", name="Jeju Olle", country="Korea", difficulty="intermediate"),
    ]
    assert names(visible(catalog, "fuji", "all", "all")) == ["Fuji Yoshida"]


def test_empty_filters_return_full_catalog_in_order():
    assert visible(CATALOG, "", "all", "all") == CATALOG


def test_query_matches_country_and_region_case_insensitively():
    assert names(visible(CATALOG, "NEPAL")) == ["Annapurna Base Camp"]
    assert names(visible(CATALOG, "jeju")) == ["Jeju Olle"]
    assert names(visible(CATALOG, "yamanashi")) == ["Fuji Yoshida"]


def test_query_is_stripped():
    assert names(visible(CATALOG, "  olle  ")) == ["Jeju Olle"]


def test_difficulty_and_country_filters_combine():
    assert names(visible(CATALOG, "", "advanced", "all")) == ["Annapurna Base Camp"]
    assert names(visible(CATALOG, "", "all", "Korea")) == ["Jeju Olle"]
    assert visible(CATALOG, "", "advanced", "Korea") == []


def test_difficulty_filter_accepts_korean_label():
    assert names(visible(CATALOG, "", "초급", "all")) == ["Fuji Yoshida"]


def test_unknown_difficulty_filter_is_rejected():
    with pytest.raises(ValidationError):
        visible(CATALOG, "", "extreme", "all")


def test_every_result_satisfies_all_predicates():
    for query in ["", "a", "o", "camp"]:
        for difficulty in ["all", "beginner", "intermediate", "advanced"]:
            for country in ["all", "Japan", "Korea", "Nepal"]:
                result = visible(CATALOG, query, difficulty, country)
                expected = [
                    t for t in CATALOG
                    if (not query or any(query in h.lower() for h in (t.name, t.country, t.region)))
                    and (difficulty == "all" or t.difficulty.value == difficulty)
                    and (country == "all" or t.country == country)
                ]
                assert result == expected

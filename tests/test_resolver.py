"""Tests for stop resolution from a stop number and/or a location."""

import asyncio

import pytest

from conftest import location_record
from emtbus.directory import StopDirectory
from emtbus.errors import EmptyQueryError, EmtApiError
from emtbus.models import Position, Stop
from emtbus.resolver import StopResolver, has_location, usable_query

MADRID = Position(40.0, -3.7)


@pytest.fixture
def directory(client, normalizer):
    directory = StopDirectory(client, normalizer, stagger=0)
    for stop_id in ("1234", "1235", "4230"):
        directory.upsert(Stop(stop_id, f"Cached {stop_id}", ["27 ida"]))
    return directory


@pytest.fixture
def resolver(directory, catalog, normalizer, client):
    return StopResolver(directory, catalog, normalizer, client, max_results=6, search_radius=200)


def resolve(resolver, query, location=None, exact=False):
    return asyncio.run(resolver.resolve(query, location, exact))


@pytest.mark.parametrize("query,expected", [("123", "123"), (" 42 ", "42"), ("", ""), ("abc", ""), ("-5", ""), ("1.5", "")])
def test_usable_query(query, expected):
    assert usable_query(query) == expected


@pytest.mark.parametrize("location,expected", [
    (None, False), (Position(0, 0), False), (Position(0, -3.7), True), (Position(40.4, 0), True),
])
def test_has_location(location, expected):
    assert has_location(location) is expected


def test_prefix_match_in_insertion_order(resolver, client):
    assert [s.id for s in resolve(resolver, "123")] == ["1234", "1235"]
    assert client.calls == []


def test_prefix_match_is_capped(resolver, directory):
    for n in range(20):
        directory.upsert(Stop(f"9{n:02d}", "x"))
    resolver.max_results = 3
    assert [s.id for s in resolve(resolver, "9")] == ["900", "901", "902"]


def test_exact_match(resolver):
    assert [s.id for s in resolve(resolver, "1234", exact=True)] == ["1234"]


def test_results_are_copies(resolver, directory):
    stop = resolve(resolver, "4230")[0]
    stop.arrivals.append("mutated")
    assert directory.get("4230").arrivals == []
    assert stop is not directory.get("4230")


def test_text_match_beats_location(resolver, client):
    client.near = [location_record("2443")]
    assert [s.id for s in resolve(resolver, "123", MADRID)] == ["1234", "1235"]
    assert not [c for c in client.calls if c[0] == "near"]


def test_no_text_match_falls_back_to_location(resolver, client):
    client.near = [location_record("2443"), location_record("2444")]
    assert [s.id for s in resolve(resolver, "777", MADRID)] == ["2443", "2444"]


def test_empty_query_uses_location(resolver, client):
    client.near = [location_record(str(n)) for n in range(10)]
    stops = resolve(resolver, "", MADRID)
    assert [s.id for s in stops] == ["0", "1", "2", "3", "4", "5"]
    assert client.calls == [("near", MADRID, 200)]


def test_invalid_text_is_treated_as_empty(resolver, client):
    client.near = [location_record("2443")]
    assert [s.id for s in resolve(resolver, "plaza", MADRID)] == ["2443"]


def test_location_failure_gives_no_results(resolver, client):
    client.near = EmtApiError("GetStopsFromXY: 500")
    assert resolve(resolver, "", MADRID) == []


def test_location_results_keep_upstream_order_and_skip_bad_records(resolver, client):
    client.near = [location_record("9"), {"weird": True}, location_record("3")]
    assert [s.id for s in resolve(resolver, "", MADRID)] == ["9", "3"]


@pytest.mark.parametrize("query", ["", "   ", "abc"])
def test_nothing_to_search_with(resolver, query):
    with pytest.raises(EmptyQueryError):
        resolve(resolver, query)
    with pytest.raises(EmptyQueryError):
        resolve(resolver, query, Position(0, 0))


def test_catalog_stands_in_for_cold_directory(resolver, directory):
    directory._stops.clear()
    stops = resolve(resolver, "123")
    assert [s.id for s in stops] == ["1234", "1235"]
    assert stops[0].lines == ["27 ida", "1 vuelta"]


def test_catalog_exact_skips_broken_rows(resolver, directory):
    directory._stops.clear()
    assert resolve(resolver, "99", exact=True) == []
    assert [s.id for s in resolve(resolver, "4230", exact=True)] == ["4230"]

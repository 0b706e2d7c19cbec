"""Tests for the EMT API client against a mocked transport."""

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from emtbus.emt_client import EmtClient, as_list
from emtbus.errors import EmtApiError
from emtbus.models import Position

BASE = "https://emt.test/emt-proxy-server/last"


def make_client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmtClient("app", "secret", base_url=BASE, client=http)


def form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def run(coro):
    return asyncio.run(coro)


@pytest.mark.parametrize("value,expected", [(None, []), ({"a": 1}, [{"a": 1}]), ([1, 2], [1, 2])])
def test_as_list(value, expected):
    assert as_list(value) == expected


def test_search_stops_near_sends_credentials_and_radius():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["form"] = form(request)
        return httpx.Response(200, json={"resultCode": 0, "stop": {"stopId": "2443", "name": "X"}})

    stops = run(make_client(handler).search_stops_near(Position(40.4, -3.7), 200))
    assert stops == [{"stopId": "2443", "name": "X"}]
    assert seen["url"] == f"{BASE}/geo/GetStopsFromXY.php"
    assert seen["form"] == {
        "idClient": "app", "passKey": "secret",
        "latitude": "40.4", "longitude": "-3.7", "Radius": "200",
    }


def test_incoming_buses():
    def handler(request):
        assert form(request)["idStop"] == "2441"
        return httpx.Response(200, json={"arrives": [{"lineId": "47", "busTimeLeft": 0}]})

    assert run(make_client(handler).get_incoming_buses("2441")) == [{"lineId": "47", "busTimeLeft": 0}]


def test_node_page_joins_ids():
    def handler(request):
        assert request.url.path.endswith("/bus/GetNodesLines.php")
        assert form(request)["Nodes"] == "1|2|3"
        return httpx.Response(200, json={"resultCode": 0, "resultValues": [{"node": 1}]})

    assert run(make_client(handler).get_node_page(range(1, 4))) == [{"node": 1}]


def test_stops_of_line():
    def handler(request):
        params = form(request)
        assert (params["line"], params["direction"]) == ("27", "1")
        return httpx.Response(200, json={"resultCode": 0, "stop": []})

    assert run(make_client(handler).get_stops_of_line("27", "1")) == []


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(200, text="<html>not json</html>"),
    httpx.Response(200, json=[1, 2]),
    httpx.Response(200, json={"resultCode": 3, "resultDescription": "Invalid credentials"}),
    httpx.Response(200, json={"ReturnCode": "1", "Description": "Stop not found"}),
])
def test_failures_raise_api_error(response):
    with pytest.raises(EmtApiError):
        run(make_client(lambda request: response).get_incoming_buses("1"))


def test_network_error_raises_api_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(EmtApiError):
        run(make_client(handler).get_incoming_buses("1"))


def test_payload_without_result_code_is_accepted():
    response = httpx.Response(200, content=json.dumps({"arrives": []}).encode())
    assert run(make_client(lambda request: response).get_incoming_buses("1")) == []

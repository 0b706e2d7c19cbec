"""Pytest fixtures: a small reference catalog and an in-memory EMT API."""

from __future__ import annotations

import pytest

from emtbus.catalog import ReferenceCatalog
from emtbus.errors import EmtApiError
from emtbus.normalizer import StopNormalizer

LINES_XML = """<?xml version="1.0" encoding="utf-8"?>
<TABLA>
  <DocumentElement>
    <REG><GroupNumber>1</GroupNumber><Line>001</Line><Label>1</Label>
      <NameA>PLAZA CRISTO REY</NameA><NameB>PROSPERIDAD</NameB></REG>
    <REG><GroupNumber>1</GroupNumber><Line>027</Line><Label>27</Label>
      <NameA>EMBAJADORES</NameA><NameB>PLAZA CASTILLA</NameB></REG>
    <REG><GroupNumber>1</GroupNumber><Line>070</Line><Label>70</Label>
      <NameA>PLAZA DE CASTILLA</NameA><NameB>ALSACIA</NameB></REG>
    <REG><GroupNumber>5</GroupNumber><Line>516</Line><Label>N16</Label>
      <NameA>CIBELES</NameA><NameB>MORATALAZ</NameB></REG>
  </DocumentElement>
</TABLA>
"""

NODES_XML = """<?xml version="1.0" encoding="utf-8"?>
<TABLA>
  <DocumentElement>
    <REG><Node>4230</Node><PosxNode>447148,3</PosxNode><PosyNode>4474608</PosyNode>
      <Name>HNOS.GARCIA NOBLEJAS-PZA.DE ALSACIA</Name><Lines>70/1</Lines></REG>
    <REG><Node>1234</Node><PosxNode>441054</PosxNode><PosyNode>4475101</PosyNode>
      <Name>CASTELLANA-EMILIO CASTELAR</Name><Lines>27/1 1/2</Lines></REG>
    <REG><Node>1235</Node><PosxNode>441060</PosxNode><PosyNode>4475200</PosyNode>
      <Name>CASTELLANA-GLORIETA EMILIO CASTELAR</Name><Lines>27/2</Lines></REG>
    <REG><Node>77</Node><PosxNode></PosxNode><PosyNode></PosyNode>
      <Name>SIN COORDENADAS</Name><Lines>27/2</Lines></REG>
    <REG><Node>99</Node><PosxNode>441000</PosxNode><PosyNode>4475000</PosyNode>
      <Name>LINEA DESCONOCIDA</Name><Lines>999/1</Lines></REG>
  </DocumentElement>
</TABLA>
"""


class FakeEmtClient:
    """Stands in for EmtClient; records every call it receives."""

    def __init__(self) -> None:
        self.near: list[dict] | Exception = []
        self.arrivals: dict[str, list[dict] | Exception] = {}
        self.node_records: list[dict] = []
        self.page_failures = 0
        self.line_stops: dict[tuple[str, str], list[dict] | Exception] = {}
        self.calls: list[tuple] = []

    async def search_stops_near(self, location, radius):
        self.calls.append(("near", location, radius))
        if isinstance(self.near, Exception):
            raise self.near
        return list(self.near)

    async def get_incoming_buses(self, stop_id):
        self.calls.append(("arrivals", stop_id))
        value = self.arrivals.get(stop_id, [])
        if isinstance(value, Exception):
            raise value
        return value

    async def get_node_page(self, stop_ids):
        ids = list(stop_ids)
        self.calls.append(("page", ids[0], ids[-1]))
        if self.page_failures > 0:
            self.page_failures -= 1
            raise EmtApiError("GetNodesLines: timed out")
        return [r for r in self.node_records if "node" not in r or int(r["node"]) in ids]

    async def get_stops_of_line(self, line, direction):
        self.calls.append(("line", line, direction))
        value = self.line_stops.get((line, direction), [])
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def catalog() -> ReferenceCatalog:
    return ReferenceCatalog.from_xml(NODES_XML, LINES_XML)


@pytest.fixture
def client() -> FakeEmtClient:
    return FakeEmtClient()


@pytest.fixture
def normalizer(catalog, client) -> StopNormalizer:
    return StopNormalizer(catalog, client)


def node_record(node: int, lines=("27/1",), name: str | None = "PARADA") -> dict:
    record = {"node": node, "lines": list(lines), "latitude": 40.42, "longitude": -3.69}
    if name is not None:
        record["name"] = name
    return record


def location_record(stop_id: str, lines=(("27", "A"),), name: str = "PARADA") -> dict:
    return {
        "stopId": stop_id,
        "name": name,
        "postalAddress": "Av. de Abrantes, 106",
        "latitude": 40.377653538528,
        "longitude": -3.7324823992585,
        "line": [{"line": label, "direction": d} for label, d in lines],
    }


def arrival_record(line: str, destination: str, seconds: int) -> dict:
    return {
        "stopId": 2441, "lineId": line, "isHead": "False",
        "destination": destination, "busId": "8753",
        "busTimeLeft": seconds, "busDistance": 2831,
        "longitude": -3.70019, "latitude": 40.38759, "busPositionType": 1,
    }

"""Turn any raw EMT stop record into a canonical Stop.

Three shapes reach us:

- catalog rows from NodesLines.xml  ({"Node", "Name", "Lines", "PosxNode", ...})
- GetStopsFromXY results            ({"stopId", "name", "line": [...], "latitude", ...})
- GetNodesLines results             ({"node", "name", "lines": [...], "latitude", ...})

`classify` tags a record once; `StopNormalizer.normalize` dispatches on that
tag.  The two line-direction conventions differ on purpose: catalog data
uses "1" for the outbound trip, the location API uses "B".
"""

from __future__ import annotations

import logging
from typing import Any

from emtbus.catalog import ReferenceCatalog
from emtbus.emt_client import EmtClient, as_list
from emtbus.errors import (
    EmtApiError,
    MalformedStopError,
    PositionUnavailableError,
    UnknownLineError,
)
from emtbus.geo import parse_coordinate, utm_to_position
from emtbus.models import Position, RawStop, Stop, StopSource

logger = logging.getLogger(__name__)

OUTBOUND = "ida"
INBOUND = "vuelta"


def classify(raw: dict[str, Any]) -> RawStop:
    if not isinstance(raw, dict):
        raise MalformedStopError(f"Bad raw stop: {raw!r}")
    if "Node" in raw:
        return RawStop(StopSource.CATALOG_ROW, raw)
    if "stopId" in raw:
        return RawStop(StopSource.LOCATION_SEARCH, raw)
    if "node" in raw:
        return RawStop(StopSource.NODE_PAGE, raw)
    raise MalformedStopError(f"Bad raw stop: {sorted(raw)}")


def default_name(stop_id: str) -> str:
    return f"Stop {stop_id}"


def catalog_direction(token: str) -> str:
    return OUTBOUND if token == "1" else INBOUND


def api_direction(token: str) -> str:
    return OUTBOUND if token == "B" else INBOUND


def _line_tokens(value: Any) -> list[tuple[str, str]]:
    """Split "27/1 34/2" (or ["27/1", "34/2"]) into (code, direction) pairs."""
    if isinstance(value, str):
        tokens = value.split()
    else:
        tokens = [str(t) for t in as_list(value)]
    pairs = []
    for token in tokens:
        code, _, direction = token.strip().partition("/")
        if code:
            pairs.append((code, direction))
    return pairs


def _lat_lon(raw: dict[str, Any]) -> Position | None:
    try:
        lat = float(raw["latitude"])
        lon = float(raw["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    if lat == 0 and lon == 0:
        return None
    return Position(lat, lon)


class StopNormalizer:
    def __init__(self, catalog: ReferenceCatalog, client: EmtClient) -> None:
        self.catalog = catalog
        self.client = client

    async def normalize(self, raw: RawStop) -> Stop:
        if raw.source is StopSource.CATALOG_ROW:
            return await self._from_catalog_row(raw.data)
        if raw.source is StopSource.LOCATION_SEARCH:
            return self._from_location_search(raw.data)
        if raw.source is StopSource.NODE_PAGE:
            return self._from_node_page(raw.data)
        raise MalformedStopError(f"Unknown stop source {raw.source!r}")

    def _label(self, code: str, direction: str) -> str | None:
        line = self.catalog.lookup_line(code)
        if line is None:
            return None
        return f"{line.label} {catalog_direction(direction)}"

    # ── NodesLines.xml ──

    async def _from_catalog_row(self, raw: dict[str, Any]) -> Stop:
        stop_id = str(raw["Node"]).strip()
        pairs = _line_tokens(raw.get("Lines", ""))
        lines = []
        for code, direction in pairs:
            label = self._label(code, direction)
            if label is None:
                raise UnknownLineError(code)
            lines.append(label)
        position = await self._catalog_position(stop_id, raw, pairs)
        return Stop(
            id=stop_id,
            name=raw.get("Name") or default_name(stop_id),
            lines=lines,
            position=position,
        )

    async def _catalog_position(
        self, stop_id: str, raw: dict[str, Any], pairs: list[tuple[str, str]],
    ) -> Position:
        try:
            return utm_to_position(
                parse_coordinate(raw["PosxNode"]),
                parse_coordinate(raw["PosyNode"]),
            )
        except (KeyError, AttributeError, ValueError):
            pass

        # No usable projected coordinates: ask the API for the stops of the
        # first line serving this stop and pick ours out of the list.
        if not pairs:
            raise PositionUnavailableError(f"Stop {stop_id} has no coordinates and no lines")
        code, direction = pairs[0]
        try:
            stops = await self.client.get_stops_of_line(code, direction)
        except EmtApiError as e:
            raise PositionUnavailableError(f"Stop {stop_id}: {e}") from e
        for s in stops:
            if str(s.get("stopId")) == stop_id:
                position = _lat_lon(s)
                if position is not None:
                    return position
        raise PositionUnavailableError(f"Stop {stop_id} not found on line {code}/{direction}")

    # ── GetStopsFromXY ──

    def _from_location_search(self, raw: dict[str, Any]) -> Stop:
        stop_id = str(raw["stopId"]).strip()
        lines = []
        for line in as_list(raw.get("line")):
            label = str(line.get("line", "")).strip() if isinstance(line, dict) else ""
            if label:
                lines.append(f"{label} {api_direction(str(line.get('direction', '')))}")
        return Stop(
            id=stop_id,
            name=raw.get("name") or default_name(stop_id),
            lines=lines,
            position=_lat_lon(raw),
        )

    # ── GetNodesLines ──

    def _from_node_page(self, raw: dict[str, Any]) -> Stop:
        stop_id = str(raw["node"]).strip()
        lines = []
        for code, direction in _line_tokens(raw.get("lines")):
            label = self._label(code, direction)
            if label is None:
                logger.debug("Stop %s: skipping unknown line %s", stop_id, code)
                continue
            lines.append(label)
        return Stop(
            id=stop_id,
            name=raw.get("name") or default_name(stop_id),
            lines=lines,
            position=_lat_lon(raw),
        )

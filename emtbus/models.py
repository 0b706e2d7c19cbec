"""Data types flowing through the resolve → fetch → render pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Union


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Line:
    """A row of the reference line table (Lines.xml)."""

    code: str
    label: str
    name_a: str = ""
    name_b: str = ""


@dataclass
class Arrival:
    line_id: str
    destination: str
    bus_time_left: int
    bus_distance: int | None = None
    time: str = ""


@dataclass
class Stop:
    id: str
    name: str
    lines: list[str] = field(default_factory=list)
    position: Position | None = None
    arrivals: list[Arrival] = field(default_factory=list)

    def copy(self) -> Stop:
        """Detached copy for a single request; cache entries are never mutated."""
        return replace(self, lines=list(self.lines), arrivals=[])


# ────────────────────────────────────────────────────────────────────────────
# Raw stop shapes
#
# The EMT data reaches us in three incompatible shapes.  They are tagged once
# when they enter the system so the normalizer never inspects field names again.
# ────────────────────────────────────────────────────────────────────────────

class StopSource(enum.Enum):
    CATALOG_ROW = "catalog_row"          # NodesLines.xml record
    LOCATION_SEARCH = "location_search"  # GetStopsFromXY result
    NODE_PAGE = "node_page"              # GetNodesLines result


@dataclass(frozen=True)
class RawStop:
    source: StopSource
    data: dict[str, Any]


# ────────────────────────────────────────────────────────────────────────────
# Per-stop fetch outcome
# ────────────────────────────────────────────────────────────────────────────

@dataclass
class StopArrivals:
    stop: Stop


@dataclass
class ArrivalsFailed:
    stop_id: str
    reason: str


ArrivalResult = Union[StopArrivals, ArrivalsFailed]


@dataclass(frozen=True)
class RenderedStop:
    """Transport-neutral inline result for one stop."""

    id: str
    title: str
    body: str
    description: str
    thumbnail_url: str
    refresh_stop_id: str

"""UTM → latitude/longitude conversion for the EMT reference dataset.

NodesLines.xml stores stop positions as UTM zone 30N easting/northing on the
ED50 datum.  We shift them onto ETRS89 with a fixed local offset (good to a
few metres across Madrid) and then run the standard inverse transverse
Mercator series on the GRS80 ellipsoid.
"""

from __future__ import annotations

import math

from emtbus.models import Position

UTM_ZONE = 30
UTM_SCALE = 0.9996
UTM_FALSE_EASTING = 500_000.0

GRS80_A = 6_378_137.0
GRS80_F = 1 / 298.257222101

# ED50 → ETRS89 shift in UTM metres, valid around Madrid.
ED50_EASTING_OFFSET = -110.0
ED50_NORTHING_OFFSET = -208.0


def parse_coordinate(value: str) -> float:
    """Parse a dataset coordinate, which may use a comma as decimal mark."""
    return float(value.strip().replace(",", "."))


def utm_to_position(
    easting: float, northing: float,
    zone: int = UTM_ZONE, ed50: bool = True,
) -> Position:
    """Convert northern-hemisphere UTM coordinates to WGS84-compatible degrees."""
    if ed50:
        easting += ED50_EASTING_OFFSET
        northing += ED50_NORTHING_OFFSET

    a = GRS80_A
    e2 = GRS80_F * (2 - GRS80_F)
    ep2 = e2 / (1 - e2)
    e1 = (1 - math.sqrt(1 - e2)) / (1 + math.sqrt(1 - e2))

    x = easting - UTM_FALSE_EASTING
    m = northing / UTM_SCALE
    mu = m / (a * (1 - e2 / 4 - 3 * e2 ** 2 / 64 - 5 * e2 ** 3 / 256))

    phi1 = (
        mu
        + (3 * e1 / 2 - 27 * e1 ** 3 / 32) * math.sin(2 * mu)
        + (21 * e1 ** 2 / 16 - 55 * e1 ** 4 / 32) * math.sin(4 * mu)
        + (151 * e1 ** 3 / 96) * math.sin(6 * mu)
        + (1097 * e1 ** 4 / 512) * math.sin(8 * mu)
    )

    sin1, cos1, tan1 = math.sin(phi1), math.cos(phi1), math.tan(phi1)
    n1 = a / math.sqrt(1 - e2 * sin1 ** 2)
    t1 = tan1 ** 2
    c1 = ep2 * cos1 ** 2
    r1 = a * (1 - e2) / (1 - e2 * sin1 ** 2) ** 1.5
    d = x / (n1 * UTM_SCALE)

    lat = phi1 - (n1 * tan1 / r1) * (
        d ** 2 / 2
        - (5 + 3 * t1 + 10 * c1 - 4 * c1 ** 2 - 9 * ep2) * d ** 4 / 24
        + (61 + 90 * t1 + 298 * c1 + 45 * t1 ** 2 - 252 * ep2 - 3 * c1 ** 2) * d ** 6 / 720
    )
    lon = (
        d
        - (1 + 2 * t1 + c1) * d ** 3 / 6
        + (5 - 2 * c1 + 28 * t1 - 3 * c1 ** 2 + 8 * ep2 + 24 * t1 ** 2) * d ** 5 / 120
    ) / cos1

    central_meridian = math.radians((zone - 1) * 6 - 180 + 3)
    return Position(
        latitude=round(math.degrees(lat), 7),
        longitude=round(math.degrees(central_meridian + lon), 7),
    )

"""Live arrival estimations for a stop."""

from __future__ import annotations

import logging
from typing import Any

from emtbus.emt_client import EmtClient
from emtbus.errors import EmtApiError
from emtbus.models import Arrival, ArrivalResult, ArrivalsFailed, Stop, StopArrivals

logger = logging.getLogger(__name__)

# busTimeLeft value the API uses for "no estimate / more than 20 min".
UNKNOWN_TIME_LEFT = 999999

TIME_ARRIVING = ">>"
TIME_OVER_20_MIN = "+20"


def format_time_left(seconds: int) -> str:
    """'>>' when the bus is at the stop, '+20' when unknown, else whole minutes."""
    if seconds == 0:
        return TIME_ARRIVING
    if seconds == UNKNOWN_TIME_LEFT:
        return TIME_OVER_20_MIN
    return str(seconds // 60)


def parse_arrival(raw: dict[str, Any]) -> Arrival:
    """Example record from GetArriveStop:

        {"stopId": 2441, "lineId": "47", "isHead": "False",
         "destination": "CARABANCHEL ALTO", "busId": "8753",
         "busTimeLeft": 693, "busDistance": 2831, ...}
    """
    seconds = int(raw["busTimeLeft"])
    distance = raw.get("busDistance")
    return Arrival(
        line_id=str(raw.get("lineId", "")).strip(),
        destination=str(raw.get("destination", "")).strip(),
        bus_time_left=seconds,
        bus_distance=int(distance) if distance is not None else None,
        time=format_time_left(seconds),
    )


class ArrivalFetcher:
    def __init__(self, client: EmtClient) -> None:
        self.client = client

    async def fetch(self, stop: Stop) -> ArrivalResult:
        """Attach arrivals to `stop`; failures come back as ArrivalsFailed."""
        try:
            raw = await self.client.get_incoming_buses(stop.id)
            arrivals = [parse_arrival(a) for a in raw]
        except EmtApiError as e:
            logger.warning("Arrivals for stop %s: %s", stop.id, e)
            return ArrivalsFailed(stop.id, str(e))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Arrivals for stop %s: bad payload (%s)", stop.id, e)
            return ArrivalsFailed(stop.id, f"bad payload: {e}")
        stop.arrivals = arrivals
        return StopArrivals(stop)

"""EMT Madrid OpenBus API client.

Every endpoint is a form POST carrying the idClient/passKey credentials and
answering JSON.  Failures of any kind (network, HTTP status, invalid JSON,
non-zero result code) surface as EmtApiError so callers decide whether to
retry, skip or mark the stop as failed.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from emtbus.errors import EmtApiError
from emtbus.models import Position

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openbus.emtmadrid.es:9443/emt-proxy-server/last"


def as_list(value: Any) -> list:
    """The API returns a bare object instead of a one-element list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class EmtClient:
    def __init__(
        self, app_id: str, passkey: str,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10,
    ) -> None:
        self._credentials = {"idClient": app_id, "passKey": passkey}
        self._base = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, path: str, **params: Any) -> dict[str, Any]:
        url = f"{self._base}/{path}"
        try:
            r = await self._client.post(url, data={**self._credentials, **params})
            r.raise_for_status()
            payload = r.json()
        except httpx.HTTPError as e:
            raise EmtApiError(f"{path}: {e}") from e
        except ValueError as e:
            raise EmtApiError(f"{path}: invalid JSON ({e})") from e

        if not isinstance(payload, dict):
            raise EmtApiError(f"{path}: unexpected payload {type(payload).__name__}")
        code = payload.get("resultCode", payload.get("ReturnCode"))
        if code not in (None, 0, "0"):
            desc = payload.get("resultDescription") or payload.get("Description") or ""
            raise EmtApiError(f"{path}: result code {code} {desc}".rstrip())
        return payload

    async def search_stops_near(self, location: Position, radius: int) -> list[dict[str, Any]]:
        """Stops within `radius` metres, in the order the API ranks them."""
        payload = await self._call(
            "geo/GetStopsFromXY.php",
            latitude=location.latitude,
            longitude=location.longitude,
            Radius=radius,
        )
        return as_list(payload.get("stop"))

    async def get_incoming_buses(self, stop_id: str) -> list[dict[str, Any]]:
        payload = await self._call("geo/GetArriveStop.php", idStop=stop_id)
        return as_list(payload.get("arrives"))

    async def get_node_page(self, stop_ids: Iterable[int | str]) -> list[dict[str, Any]]:
        """Catalog records (node, name, lines, coordinates) for a batch of stop ids."""
        nodes = "|".join(str(i) for i in stop_ids)
        payload = await self._call("bus/GetNodesLines.php", Nodes=nodes)
        return as_list(payload.get("resultValues"))

    async def get_stops_of_line(self, line: str, direction: str) -> list[dict[str, Any]]:
        payload = await self._call("geo/GetStopsLine.php", line=line, direction=direction)
        return as_list(payload.get("stop"))

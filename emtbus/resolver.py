"""Query resolution: stop number and/or location → candidate stops.

A numeric query is matched against the stop directory (exact id or id
prefix) and wins over any location.  With no text match the shared
location is searched around; with no location either, the static reference
catalog stands in for a directory that has not finished warming up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from emtbus.catalog import ReferenceCatalog
from emtbus.directory import StopDirectory
from emtbus.emt_client import EmtClient
from emtbus.errors import EmtApiError, EmptyQueryError, StopNormalizationError
from emtbus.models import Position, RawStop, Stop
from emtbus.normalizer import StopNormalizer, classify

logger = logging.getLogger(__name__)


def usable_query(query: str | None) -> str:
    """The query when it is a stop number, otherwise ''."""
    query = (query or "").strip()
    return query if query.isdigit() else ""


def has_location(location: Position | None) -> bool:
    return location is not None and not (location.latitude == 0 and location.longitude == 0)


class StopResolver:
    def __init__(
        self,
        directory: StopDirectory,
        catalog: ReferenceCatalog,
        normalizer: StopNormalizer,
        client: EmtClient,
        max_results: int = 6,
        search_radius: int = 200,
    ) -> None:
        self.directory = directory
        self.catalog = catalog
        self.normalizer = normalizer
        self.client = client
        self.max_results = max_results
        self.search_radius = search_radius

    async def resolve(
        self, query: str, location: Position | None = None, exact: bool = False,
    ) -> list[Stop]:
        text = usable_query(query)
        located = has_location(location)
        logger.debug("Resolve query=%r location=%s exact=%s", text, location if located else None, exact)

        if not text and not located:
            raise EmptyQueryError(f"No stop number and no location in {query!r}")

        if text:
            found = self._from_directory(text, exact)
            if found:
                return [s.copy() for s in found]

        if located:
            return await self._from_location(location)

        return await self._from_catalog(text, exact)

    def _from_directory(self, text: str, exact: bool) -> list[Stop]:
        if exact:
            stop = self.directory.find_exact(text)
            return [stop] if stop else []
        return self.directory.find_by_prefix(text, self.max_results)

    async def _from_location(self, location: Position) -> list[Stop]:
        try:
            raw_stops = await self.client.search_stops_near(location, self.search_radius)
        except EmtApiError as e:
            logger.warning("Location search at %s failed: %s", location, e)
            return []
        return await self._build(raw_stops[: self.max_results])

    async def _from_catalog(self, text: str, exact: bool) -> list[Stop]:
        rows = self.catalog.find_rows(text, exact=exact, limit=self.max_results)
        return await self._build(rows)

    async def _build(self, raw_stops: list[dict[str, Any]]) -> list[Stop]:
        built = await asyncio.gather(*(self._build_one(raw) for raw in raw_stops))
        return [stop for stop in built if stop is not None]

    async def _build_one(self, raw: dict[str, Any]) -> Stop | None:
        try:
            tagged: RawStop = classify(raw)
            return await self.normalizer.normalize(tagged)
        except (StopNormalizationError, KeyError) as e:
            logger.warning("Skipping stop %r: %s", raw, e)
            return None

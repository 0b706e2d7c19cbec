"""Request orchestration: resolve → fetch arrivals → render.

One bad stop never takes the others down: every per-stop fetch settles to a
StopArrivals or an ArrivalsFailed, and failed stops are simply dropped from
the answer.
"""

from __future__ import annotations

import asyncio
import logging

from emtbus.arrivals import ArrivalFetcher
from emtbus.errors import (
    AmbiguousStopError,
    ArrivalsUnavailableError,
    EmptyQueryError,
    StopNotFoundError,
)
from emtbus.models import ArrivalsFailed, Position, RenderedStop, StopArrivals
from emtbus.render import render_stop
from emtbus.resolver import StopResolver

logger = logging.getLogger(__name__)


class BusPipeline:
    def __init__(
        self, resolver: StopResolver, fetcher: ArrivalFetcher,
        max_column_width: int = 14, thumbnail_url: str = "",
    ) -> None:
        self.resolver = resolver
        self.fetcher = fetcher
        self.max_column_width = max_column_width
        self.thumbnail_url = thumbnail_url

    def _render(self, fetched: StopArrivals) -> RenderedStop:
        return render_stop(fetched.stop, self.max_column_width, self.thumbnail_url)

    async def handle_inline_query(
        self, query: str, location: Position | None = None,
    ) -> list[RenderedStop]:
        try:
            stops = await self.resolver.resolve(query, location)
        except EmptyQueryError as e:
            logger.info("Inline query %r: %s", query, e)
            return []

        results = await asyncio.gather(*(self.fetcher.fetch(s) for s in stops))
        fetched = [r for r in results if isinstance(r, StopArrivals)]
        dropped = len(results) - len(fetched)
        if dropped:
            logger.info("Inline query %r: dropped %d stop(s) without arrivals.", query, dropped)
        return [self._render(r) for r in fetched]

    async def handle_refresh(self, stop_id: str) -> RenderedStop:
        """Re-render one stop.  Raises a RefreshError when that is not possible."""
        try:
            stops = await self.resolver.resolve(stop_id, None, exact=True)
        except EmptyQueryError as e:
            raise StopNotFoundError(f"Refresh for {stop_id!r}: {e}") from e
        if not stops:
            raise StopNotFoundError(f"Refresh for {stop_id}: stop not found")
        if len(stops) > 1:
            raise AmbiguousStopError(f"Refresh for {stop_id}: {len(stops)} matching stops")

        result = await self.fetcher.fetch(stops[0])
        if isinstance(result, ArrivalsFailed):
            raise ArrivalsUnavailableError(f"Refresh for {stop_id}: {result.reason}")
        return self._render(result)

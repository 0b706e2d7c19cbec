"""Stop directory: an in-memory map of stop id → Stop, warmed in the background.

On startup the whole stop-id space [1, max_id) is split into batches; each
batch asks GetNodesLines for its ids and stores the normalized stops.
Batches start staggered so the API never sees a burst, and a failed batch
is retried under a RetryPolicy.  The directory is advisory: lookups never
wait for warm-up to finish.

Only the warm-up task writes; every write stores a complete Stop, so request
handlers sharing the event loop never see a half-built entry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from emtbus.emt_client import EmtClient
from emtbus.errors import EmtApiError, StopNormalizationError
from emtbus.models import Stop
from emtbus.normalizer import StopNormalizer, classify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Delay before each retry of a failed batch.

    `max_attempts=None` retries forever; `factor=1` gives a fixed delay.
    """

    initial_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 60.0
    max_attempts: int | None = 8

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.initial_delay * self.factor ** (attempt - 1), self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts


class StopDirectory:
    def __init__(
        self,
        client: EmtClient,
        normalizer: StopNormalizer,
        batch_size: int = 100,
        stagger: float = 2.0,
        max_id: int = 6000,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.normalizer = normalizer
        self.batch_size = batch_size
        self.stagger = stagger
        self.max_id = max_id
        self.retry = retry or RetryPolicy()
        self._stops: dict[str, Stop] = {}

    def __len__(self) -> int:
        return len(self._stops)

    def __contains__(self, stop_id: str) -> bool:
        return stop_id in self._stops

    # ── Lookups ──

    def get(self, stop_id: str) -> Stop | None:
        return self._stops.get(stop_id)

    find_exact = get

    def find_by_prefix(self, prefix: str, limit: int | None = None) -> list[Stop]:
        """Stops whose id starts with `prefix`, in insertion order."""
        out: list[Stop] = []
        for stop_id, stop in self._stops.items():
            if stop_id.startswith(prefix):
                out.append(stop)
                if limit is not None and len(out) >= limit:
                    break
        return out

    def upsert(self, stop: Stop) -> None:
        self._stops[stop.id] = stop

    # ── Warm-up ──

    def batches(self) -> list[range]:
        return [
            range(start, min(start + self.batch_size, self.max_id))
            for start in range(1, self.max_id, self.batch_size)
        ]

    async def populate(self) -> None:
        """Fetch every batch, batch i starting i * stagger seconds in."""
        batches = self.batches()
        logger.info("Warming stop directory: %d batches up to id %d.", len(batches), self.max_id)
        await asyncio.gather(*(
            self._run_batch(ids, delay=i * self.stagger)
            for i, ids in enumerate(batches)
        ))
        logger.info("Stop directory warm-up finished: %d stops.", len(self))

    async def _run_batch(self, ids: range, delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        attempt = 0
        while True:
            attempt += 1
            try:
                await self.load_batch(ids)
                return
            except EmtApiError as e:
                if not self.retry.should_retry(attempt):
                    logger.error(
                        "Batch %d-%d abandoned after %d attempts: %s",
                        ids.start, ids.stop - 1, attempt, e,
                    )
                    return
                wait = self.retry.delay_for(attempt)
                logger.warning(
                    "Batch %d-%d failed (%s), retrying in %.1fs",
                    ids.start, ids.stop - 1, e, wait,
                )
                await asyncio.sleep(wait)

    async def load_batch(self, ids: range) -> int:
        """Fetch, normalize and store one batch; returns the number stored."""
        records = await self.client.get_node_page(ids)
        stored = 0
        for raw in records:
            try:
                stop = await self.normalizer.normalize(classify(raw))
            except (StopNormalizationError, KeyError) as e:
                logger.warning("Skipping catalog record %r: %s", raw, e)
                continue
            self.upsert(stop)
            stored += 1
        logger.debug("Batch %d-%d: %d stops.", ids.start, ids.stop - 1, stored)
        return stored

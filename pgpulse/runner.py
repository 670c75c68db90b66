"""Periodic driver invoking the collector once per tick."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from .collector import CollectionError, PostgresCollector
from .models import Snapshot

LOG = logging.getLogger(__name__)

SnapshotSink = Callable[[Snapshot], None]


class CollectionLoop:
    """Calls :meth:`PostgresCollector.collect` every ``interval`` seconds.

    A failed cycle is logged and skipped; the next tick simply tries again.
    After the sink has seen a snapshot, charts retired during that cycle are
    purged from the collector's registry.
    """

    def __init__(
        self,
        collector: PostgresCollector,
        sink: SnapshotSink,
        *,
        interval: float | None = None,
    ) -> None:
        self._collector = collector
        self._sink = sink
        self._interval = interval if interval is not None else collector.config.update_every
        self._stopped = asyncio.Event()
        self.failures = 0

    def stop(self) -> None:
        self._stopped.set()

    async def tick(self) -> Snapshot | None:
        """Run one cycle; returns ``None`` when no metrics were produced."""

        try:
            snapshot = await self._collector.collect()
        except CollectionError as exc:
            self.failures += 1
            LOG.warning(
                "Collection cycle failed: %s",
                exc,
                extra={"step": exc.step.value, "error": str(exc.cause)},
            )
            return None
        self._sink(snapshot)
        purged = self._collector.purge_retired()
        if purged:
            LOG.info("Purged retired charts", extra={"charts": [chart.id for chart in purged]})
        return snapshot

    async def run(self, *, iterations: int | None = None) -> None:
        """Tick until stopped (or ``iterations`` cycles ran), then close the session."""

        count = 0
        try:
            while not self._stopped.is_set():
                started = time.monotonic()
                await self.tick()
                count += 1
                if iterations is not None and count >= iterations:
                    break
                delay = max(self._interval - (time.monotonic() - started), 0.0)
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    continue
        finally:
            await self._collector.close()


__all__ = ["CollectionLoop", "SnapshotSink"]

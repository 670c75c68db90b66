"""Keeps the published per-database series in step with the registry."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .charts import DATABASE_CHART_TEMPLATES, ChartTemplate

LOG = logging.getLogger(__name__)


class SeriesPublisher(Protocol):
    """Layer that owns how series are presented to consumers."""

    def declare_series(self, template: ChartTemplate, database: str) -> object: ...

    def retract_series(self, database: str) -> object: ...


class MetricSurface:
    """Materializes and retires the per-database series set.

    Both operations only touch metadata; they never run queries.
    """

    def __init__(
        self,
        publisher: SeriesPublisher,
        templates: Sequence[ChartTemplate] = DATABASE_CHART_TEMPLATES,
    ) -> None:
        self._publisher = publisher
        self._templates = tuple(templates)
        self._materialized: set[str] = set()

    @property
    def templates(self) -> tuple[ChartTemplate, ...]:
        return self._templates

    @property
    def databases(self) -> frozenset[str]:
        return frozenset(self._materialized)

    def is_materialized(self, database: str) -> bool:
        return database in self._materialized

    def series_ids(self, database: str) -> tuple[str, ...]:
        """Every series name the templates produce for ``database``."""

        ids: list[str] = []
        for template in self._templates:
            ids.extend(template.series_ids(database))
        return tuple(ids)

    def materialize(self, database: str) -> None:
        if database in self._materialized:
            return
        for template in self._templates:
            self._publisher.declare_series(template, database)
        self._materialized.add(database)
        LOG.debug("Materialized database series", extra={"database": database})

    def retire(self, database: str) -> None:
        if database not in self._materialized:
            return
        self._publisher.retract_series(database)
        self._materialized.discard(database)
        LOG.debug("Retired database series", extra={"database": database})


__all__ = ["MetricSurface", "SeriesPublisher"]

"""Chart catalogue: server charts plus per-database chart templates."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

PRIORITY_BASE = 70000


class Algorithm(str, Enum):
    """How a consumer turns raw values into plotted points."""

    ABSOLUTE = "absolute"
    INCREMENTAL = "incremental"


class ChartType(str, Enum):
    LINE = "line"
    AREA = "area"
    STACKED = "stacked"


class LockMode(str, Enum):
    """Table-level lock modes reported per database."""

    ACCESS_SHARE = "AccessShareLock"
    ROW_SHARE = "RowShareLock"
    ROW_EXCLUSIVE = "RowExclusiveLock"
    SHARE_UPDATE_EXCLUSIVE = "ShareUpdateExclusiveLock"
    SHARE = "ShareLock"
    SHARE_ROW_EXCLUSIVE = "ShareRowExclusiveLock"
    EXCLUSIVE = "ExclusiveLock"
    ACCESS_EXCLUSIVE = "AccessExclusiveLock"

    @property
    def label(self) -> str:
        return _LOCK_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> LockMode | None:
        try:
            return cls(value)
        except ValueError:
            return None


_LOCK_LABELS: dict[LockMode, str] = {
    LockMode.ACCESS_SHARE: "access_share",
    LockMode.ROW_SHARE: "row_share",
    LockMode.ROW_EXCLUSIVE: "row_exclusive",
    LockMode.SHARE_UPDATE_EXCLUSIVE: "share_update",
    LockMode.SHARE: "share",
    LockMode.SHARE_ROW_EXCLUSIVE: "share_row_exclusive",
    LockMode.EXCLUSIVE: "exclusive",
    LockMode.ACCESS_EXCLUSIVE: "access_exclusive",
}


def database_series_id(database: str, metric: str) -> str:
    """Fully-qualified series name of a per-database metric."""

    return f"db_{database}_{metric}"


def lock_metric(mode: LockMode, granted: bool) -> str:
    return f"lock_mode_{mode.value}_{'held' if granted else 'awaited'}"


@dataclass(frozen=True, slots=True)
class Dim:
    id: str
    name: str
    algorithm: Algorithm = Algorithm.ABSOLUTE


@dataclass(slots=True)
class Chart:
    """A concrete chart as seen by the publishing layer."""

    id: str
    title: str
    units: str
    family: str
    context: str
    priority: int
    type: ChartType = ChartType.LINE
    dims: tuple[Dim, ...] = ()
    labels: dict[str, str] = field(default_factory=dict)
    obsolete: bool = False
    created: bool = False

    def mark_remove(self) -> None:
        self.obsolete = True

    def mark_not_created(self) -> None:
        self.created = False

    @property
    def series_ids(self) -> tuple[str, ...]:
        return tuple(dim.id for dim in self.dims)


@dataclass(frozen=True, slots=True)
class DimTemplate:
    metric: str
    name: str
    algorithm: Algorithm = Algorithm.ABSOLUTE

    def bind(self, database: str) -> Dim:
        return Dim(id=database_series_id(database, self.metric), name=self.name, algorithm=self.algorithm)


@dataclass(frozen=True, slots=True)
class ChartTemplate:
    """Per-database chart description; ``bind`` yields the concrete chart."""

    key: str
    title: str
    units: str
    family: str
    context: str
    priority: int
    type: ChartType = ChartType.LINE
    dims: tuple[DimTemplate, ...] = ()

    def chart_id(self, database: str) -> str:
        return database_series_id(database, self.key)

    def series_ids(self, database: str) -> tuple[str, ...]:
        return tuple(database_series_id(database, dim.metric) for dim in self.dims)

    def bind(self, database: str) -> Chart:
        return Chart(
            id=self.chart_id(database),
            title=self.title,
            units=self.units,
            family=self.family,
            context=self.context,
            priority=self.priority,
            type=self.type,
            dims=tuple(dim.bind(database) for dim in self.dims),
            labels={"database": database},
        )


def _prio(offset: int) -> int:
    return PRIORITY_BASE + offset


_INC = Algorithm.INCREMENTAL

SERVER_CHARTS: tuple[Chart, ...] = (
    Chart(
        id="connections_utilization",
        title="Connections utilization",
        units="percentage",
        family="connections",
        context="postgres.connections_utilization",
        priority=_prio(0),
        dims=(Dim("server_connections_utilization", "used"),),
    ),
    Chart(
        id="connections_usage",
        title="Connections usage",
        units="connections",
        family="connections",
        context="postgres.connections_usage",
        priority=_prio(1),
        type=ChartType.STACKED,
        dims=(
            Dim("server_connections_available", "available"),
            Dim("server_connections_used", "used"),
        ),
    ),
    Chart(
        id="checkpoints",
        title="Checkpoints",
        units="checkpoints/s",
        family="checkpointer",
        context="postgres.checkpoints",
        priority=_prio(2),
        type=ChartType.STACKED,
        dims=(
            Dim("checkpoints_timed", "scheduled", _INC),
            Dim("checkpoints_req", "requested", _INC),
        ),
    ),
    Chart(
        id="checkpoint_time",
        title="Checkpoint time",
        units="milliseconds",
        family="checkpointer",
        context="postgres.checkpoint_time",
        priority=_prio(3),
        dims=(
            Dim("checkpoint_write_time", "write", _INC),
            Dim("checkpoint_sync_time", "sync", _INC),
        ),
    ),
    Chart(
        id="bgwriter_buffers_alloc",
        title="Background writer buffers allocated",
        units="B/s",
        family="background writer",
        context="postgres.bgwriter_buffers_alloc",
        priority=_prio(4),
        dims=(Dim("buffers_alloc", "allocated", _INC),),
    ),
    Chart(
        id="bgwriter_buffers_written",
        title="Background writer buffers written",
        units="B/s",
        family="background writer",
        context="postgres.bgwriter_buffers_written",
        priority=_prio(5),
        type=ChartType.AREA,
        dims=(
            Dim("buffers_checkpoint", "checkpoint", _INC),
            Dim("buffers_backend", "backend", _INC),
            Dim("buffers_clean", "clean", _INC),
        ),
    ),
    Chart(
        id="bgwriter_maxwritten_clean",
        title="Background writer cleaning scan stops",
        units="events/s",
        family="background writer",
        context="postgres.bgwriter_maxwritten_clean",
        priority=_prio(6),
        dims=(Dim("maxwritten_clean", "maxwritten", _INC),),
    ),
    Chart(
        id="bgwriter_buffers_backend_fsync",
        title="Backend fsync",
        units="operations/s",
        family="background writer",
        context="postgres.bgwriter_buffers_backend_fsync",
        priority=_prio(7),
        dims=(Dim("buffers_backend_fsync", "fsync", _INC),),
    ),
)


def _lock_dims(granted: bool) -> tuple[DimTemplate, ...]:
    return tuple(DimTemplate(lock_metric(mode, granted), mode.label) for mode in LockMode)


DATABASE_CHART_TEMPLATES: tuple[ChartTemplate, ...] = (
    ChartTemplate(
        key="transactions",
        title="Database transactions",
        units="transactions/s",
        family="db transactions",
        context="postgres.db_transactions",
        priority=_prio(8),
        dims=(
            DimTemplate("xact_commit", "committed", _INC),
            DimTemplate("xact_rollback", "rollback", _INC),
        ),
    ),
    ChartTemplate(
        key="connections_utilization",
        title="Database connections utilization within limits",
        units="percentage",
        family="db connections",
        context="postgres.db_connections_utilization",
        priority=_prio(9),
        dims=(DimTemplate("numbackends_utilization", "used"),),
    ),
    ChartTemplate(
        key="connections",
        title="Database connections",
        units="connections",
        family="db connections",
        context="postgres.db_connections",
        priority=_prio(10),
        dims=(DimTemplate("numbackends", "connections"),),
    ),
    ChartTemplate(
        key="buffer_cache",
        title="Database buffer cache",
        units="blocks/s",
        family="db buffer cache",
        context="postgres.db_buffer_cache",
        priority=_prio(11),
        type=ChartType.AREA,
        dims=(
            DimTemplate("blks_hit", "hit", _INC),
            DimTemplate("blks_read", "miss", _INC),
        ),
    ),
    ChartTemplate(
        key="read_operations",
        title="Database read operations",
        units="rows/s",
        family="db operations",
        context="postgres.db_read_operations",
        priority=_prio(12),
        dims=(
            DimTemplate("tup_returned", "returned", _INC),
            DimTemplate("tup_fetched", "fetched", _INC),
        ),
    ),
    ChartTemplate(
        key="write_operations",
        title="Database write operations",
        units="rows/s",
        family="db operations",
        context="postgres.db_write_operations",
        priority=_prio(13),
        dims=(
            DimTemplate("tup_inserted", "inserted", _INC),
            DimTemplate("tup_deleted", "deleted", _INC),
            DimTemplate("tup_updated", "updated", _INC),
        ),
    ),
    ChartTemplate(
        key="conflicts",
        title="Database canceled queries",
        units="queries/s",
        family="db operations",
        context="postgres.db_conflicts",
        priority=_prio(14),
        dims=(DimTemplate("conflicts", "conflicts", _INC),),
    ),
    ChartTemplate(
        key="conflicts_stat",
        title="Database canceled queries by reason",
        units="queries/s",
        family="db operations",
        context="postgres.db_conflicts_stat",
        priority=_prio(15),
        dims=(
            DimTemplate("confl_tablespace", "tablespace", _INC),
            DimTemplate("confl_lock", "lock", _INC),
            DimTemplate("confl_snapshot", "snapshot", _INC),
            DimTemplate("confl_bufferpin", "bufferpin", _INC),
            DimTemplate("confl_deadlock", "deadlock", _INC),
        ),
    ),
    ChartTemplate(
        key="deadlocks",
        title="Database deadlocks",
        units="deadlocks/s",
        family="db deadlocks",
        context="postgres.db_deadlocks",
        priority=_prio(16),
        dims=(DimTemplate("deadlocks", "deadlocks", _INC),),
    ),
    ChartTemplate(
        key="locks_held",
        title="Database locks held",
        units="locks",
        family="db locks",
        context="postgres.db_locks_held",
        priority=_prio(17),
        type=ChartType.STACKED,
        dims=_lock_dims(granted=True),
    ),
    ChartTemplate(
        key="locks_awaited",
        title="Database locks awaited",
        units="locks",
        family="db locks",
        context="postgres.db_locks_awaited",
        priority=_prio(18),
        type=ChartType.STACKED,
        dims=_lock_dims(granted=False),
    ),
    ChartTemplate(
        key="temp_files",
        title="Database temporary files written to disk",
        units="files/s",
        family="db temp files",
        context="postgres.db_temp_files",
        priority=_prio(19),
        dims=(DimTemplate("temp_files", "written", _INC),),
    ),
    ChartTemplate(
        key="temp_files_data",
        title="Database temporary files data written to disk",
        units="B/s",
        family="db temp files",
        context="postgres.db_temp_files_data",
        priority=_prio(20),
        dims=(DimTemplate("temp_bytes", "written", _INC),),
    ),
    ChartTemplate(
        key="size",
        title="Database size",
        units="B",
        family="db size",
        context="postgres.db_size",
        priority=_prio(21),
        dims=(DimTemplate("size", "size"),),
    ),
)


class ChartRegistry:
    """In-process series publisher holding every chart the collector exposes.

    Retracted charts stay in place flagged ``obsolete`` until the consumer
    calls :meth:`purge`, so a reader never sees half of a database's charts.
    """

    def __init__(self, charts: tuple[Chart, ...] = SERVER_CHARTS) -> None:
        self._charts: dict[str, Chart] = {}
        for chart in charts:
            self._charts[chart.id] = replace(chart, labels=dict(chart.labels))

    def __contains__(self, chart_id: object) -> bool:
        return chart_id in self._charts

    def __len__(self) -> int:
        return len(self._charts)

    def get(self, chart_id: str) -> Chart | None:
        return self._charts.get(chart_id)

    def declare_series(self, template: ChartTemplate, database: str) -> Chart:
        chart_id = template.chart_id(database)
        existing = self._charts.get(chart_id)
        if existing is not None and not existing.obsolete:
            return existing
        chart = template.bind(database)
        self._charts[chart_id] = chart
        return chart

    def retract_series(self, database: str) -> list[Chart]:
        retired: list[Chart] = []
        for chart in self._charts.values():
            if chart.labels.get("database") == database and not chart.obsolete:
                chart.mark_remove()
                chart.mark_not_created()
                retired.append(chart)
        return retired

    def active(self) -> list[Chart]:
        """Published charts, ordered by priority."""

        charts = [chart for chart in self._charts.values() if not chart.obsolete]
        return sorted(charts, key=lambda chart: (chart.priority, chart.id))

    def obsolete(self) -> list[Chart]:
        return [chart for chart in self._charts.values() if chart.obsolete]

    def purge(self) -> list[Chart]:
        """Physically drop charts flagged for removal and return them."""

        removed = self.obsolete()
        for chart in removed:
            del self._charts[chart.id]
        return removed


__all__ = [
    "Algorithm",
    "Chart",
    "ChartRegistry",
    "ChartTemplate",
    "ChartType",
    "DATABASE_CHART_TEMPLATES",
    "Dim",
    "DimTemplate",
    "LockMode",
    "SERVER_CHARTS",
    "database_series_id",
    "lock_metric",
]

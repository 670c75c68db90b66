"""Slowly-changing server facts refreshed behind their own TTL windows."""

from __future__ import annotations

import logging

from .models import RefreshWindow
from .queries import query_server_version, query_settings_max_connections
from .query import QueryExecutionError, QueryExecutor

LOG = logging.getLogger(__name__)


class ServerMetadata:
    """Server version (probed once) and the max-connections setting."""

    def __init__(self, *, recheck_settings_every: float) -> None:
        self.server_version = 0
        self.max_connections = 0
        self.settings_window = RefreshWindow(interval=recheck_settings_every)

    async def probe_server_version(self, executor: QueryExecutor, *, timeout: float) -> int:
        """Query the server version number unless it is already known."""

        if self.server_version:
            return self.server_version
        value = await _query_scalar(executor, query_server_version(), timeout=timeout)
        self.server_version = _strict_int(value, "server version")
        LOG.debug("Detected server version", extra={"server_version": self.server_version})
        return self.server_version

    async def refresh_settings(self, executor: QueryExecutor, *, now: float, timeout: float) -> bool:
        """Re-read ``max_connections`` when the settings window elapsed.

        Returns ``True`` when a refresh happened. On failure the cached value
        and the window are left as they were.
        """

        if not self.settings_window.due(now):
            return False
        value = await _query_scalar(executor, query_settings_max_connections(), timeout=timeout)
        self.max_connections = _strict_int(value, "max connections")
        self.settings_window.mark(now)
        LOG.debug("Refreshed settings", extra={"max_connections": self.max_connections})
        return True

    def invalidate_settings(self) -> None:
        """Force the next cycle to re-read the settings."""

        self.settings_window.reset()


async def _query_scalar(executor: QueryExecutor, sql: str, *, timeout: float) -> object:
    result = await executor.execute(sql, timeout=timeout)
    if not result.rows or not result.rows[0]:
        raise QueryExecutionError("Query returned no rows")
    return result.rows[0][0]


def _strict_int(value: object, label: str) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise QueryExecutionError(f"Unexpected {label} value {value!r}") from exc


__all__ = ["ServerMetadata"]

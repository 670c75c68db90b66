"""Shared dataclasses used across the collector modules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import parse_qsl, urlencode

Snapshot = dict[str, int]

_KEYWORD_PASSWORD = re.compile(r"\s*\b\w*password\s*=\s*(?:'(?:\\.|[^'\\])*'|\S*)")


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    name: str
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None

    def describe(self) -> str:
        """Human readable target without credentials."""

        if self.dsn:
            return redact_dsn(self.dsn)
        host = self.host or "localhost"
        port = f":{self.port}" if self.port is not None else ""
        database = f"/{self.database}" if self.database else ""
        return f"{host}{port}{database}"


def redact_dsn(dsn: str) -> str:
    """Strip user info and password parameters from a URL or key/value DSN."""

    scheme, sep, rest = dsn.partition("://")
    if not sep:
        return _KEYWORD_PASSWORD.sub("", dsn).strip()
    target, _, query = rest.partition("?")
    target = target.rsplit("@", 1)[-1]
    params = [(key, value) for key, value in parse_qsl(query, keep_blank_values=True) if not key.endswith("password")]
    if params:
        return f"{scheme}://{target}?{urlencode(params)}"
    return f"{scheme}://{target}"


@dataclass(frozen=True, slots=True)
class Entity:
    """A database discovered on the monitored server."""

    name: str
    discovered_at: datetime


@dataclass(slots=True)
class RefreshWindow:
    """TTL gate deciding when a class of metadata must be re-queried."""

    interval: float
    last_refresh_at: float | None = None

    def due(self, now: float) -> bool:
        if self.last_refresh_at is None:
            return True
        return now - self.last_refresh_at > self.interval

    def mark(self, now: float) -> None:
        self.last_refresh_at = now

    def reset(self) -> None:
        self.last_refresh_at = None


__all__ = ["ConnectionProfile", "Entity", "RefreshWindow", "Snapshot", "redact_dsn"]

"""Opening the persistent asyncpg session used by the collector."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from .models import ConnectionProfile

LOG = logging.getLogger(__name__)

_PING_QUERY = "SELECT 1"


class ConnectionBackendError(RuntimeError):
    """Raised when the server cannot be reached or the session was lost."""


def connect_kwargs(profile: ConnectionProfile, *, timeout: float) -> dict[str, object]:
    """Translate a profile into keyword arguments for ``asyncpg.connect``."""

    kwargs: dict[str, object] = {}
    if profile.dsn:
        kwargs["dsn"] = profile.dsn
    else:
        kwargs["host"] = profile.host or "localhost"
        if profile.port is not None:
            kwargs["port"] = profile.port
        if profile.user:
            kwargs["user"] = profile.user
        if profile.password:
            kwargs["password"] = profile.password
        if profile.database:
            kwargs["database"] = profile.database
    kwargs.setdefault("timeout", timeout)
    return kwargs


async def open_connection(profile: ConnectionProfile, *, timeout: float) -> Any:
    """Connect to the profile and verify the server answers within ``timeout``."""

    target = profile.describe()
    try:
        conn = await asyncpg.connect(**connect_kwargs(profile, timeout=timeout))
    except Exception as exc:
        raise ConnectionBackendError(f"Failed to connect to '{target}': {exc}") from exc
    try:
        await conn.fetchval(_PING_QUERY, timeout=timeout)
    except Exception as exc:
        await close_quietly(conn)
        raise ConnectionBackendError(f"Failed to ping '{target}': {exc}") from exc
    LOG.debug("Opened connection", extra={"target": target})
    return conn


async def close_quietly(conn: Any) -> None:
    try:
        await conn.close()
    except Exception:  # pragma: no cover - best effort cleanup
        LOG.debug("Ignoring error while closing connection", exc_info=True)


__all__ = ["ConnectionBackendError", "close_quietly", "connect_kwargs", "open_connection"]

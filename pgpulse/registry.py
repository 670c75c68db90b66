"""Registry of databases currently present on the monitored server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Protocol

from .models import Entity

LOG = logging.getLogger(__name__)


class InventoryListener(Protocol):
    """Receives databases appearing on or disappearing from the server."""

    def materialize(self, database: str) -> None: ...

    def retire(self, database: str) -> None: ...


@dataclass(frozen=True, slots=True)
class InventoryDelta:
    """Result of reconciling a fresh database listing."""

    added: frozenset[str]
    removed: frozenset[str]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class EntityRegistry:
    """Tracks known databases and reports additions and removals.

    Names are compared exactly; no case folding or other normalization is
    applied.
    """

    def __init__(self, listener: InventoryListener | None = None) -> None:
        self._listener = listener
        self._entities: dict[str, Entity] = {}

    @property
    def names(self) -> tuple[str, ...]:
        """Registered database names in sorted order."""

        return tuple(sorted(self._entities))

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def get(self, name: str) -> Entity | None:
        return self._entities.get(name)

    def reconcile(self, fresh_names: Iterable[str], *, now: datetime | None = None) -> InventoryDelta:
        """Replace the known set with ``fresh_names`` and notify the listener."""

        fresh = frozenset(fresh_names)
        current = frozenset(self._entities)
        delta = InventoryDelta(added=fresh - current, removed=current - fresh)
        discovered_at = now or datetime.now(tz=timezone.utc)

        for name in sorted(delta.added):
            self._entities[name] = Entity(name=name, discovered_at=discovered_at)
            LOG.info("Discovered database", extra={"database": name})
            if self._listener is not None:
                self._listener.materialize(name)

        for name in sorted(delta.removed):
            del self._entities[name]
            LOG.info("Database is gone", extra={"database": name})
            if self._listener is not None:
                self._listener.retire(name)

        return delta


__all__ = ["EntityRegistry", "InventoryDelta", "InventoryListener"]

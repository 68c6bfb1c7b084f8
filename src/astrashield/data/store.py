"""Object store interface and an in-memory implementation.

The store owns persisted objects and conjunctions. The pipeline only sees
snapshots and writes back through bulk upserts. Records use the persisted
schema (plain dicts), so a document database can sit behind the same
protocol.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Protocol

from astrashield.core.screening import Conjunction, canonical_pair
from astrashield.core.tle import SpaceObject
from astrashield.utils.errors import StoreError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """Persistence collaborator used by the engine.

    Implementations should raise StoreError, but the engine treats any
    exception from a conjunction write as a failed write.
    """

    def list_objects(self, limit: int | None = None) -> list[SpaceObject]: ...

    def find_by_id(self, catalog_id: int) -> SpaceObject | None: ...

    def bulk_upsert_objects(self, objects: list[SpaceObject]) -> int: ...

    def bulk_upsert_conjunctions(self, conjunctions: list[Conjunction]) -> int: ...

    def upsert_conjunction(self, conjunction: Conjunction) -> None: ...

    def list_conjunctions(self, since: datetime | None = None) -> list[Conjunction]: ...


class InMemoryObjectStore:
    """Thread-safe store keeping persisted-schema records in dicts.

    Objects are keyed by catalog id and conjunctions by canonical pair.
    Upserts overwrite in place, so insertion order is preserved for keys
    that already exist.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._objects: dict[int, dict[str, Any]] = {}
        self._conjunctions: dict[tuple[int, int], dict[str, Any]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def list_objects(self, limit: int | None = None) -> list[SpaceObject]:
        with self._lock:
            records = list(self._objects.values())
        if limit is not None:
            records = records[:limit]
        return [SpaceObject.from_record(r) for r in records]

    def find_by_id(self, catalog_id: int) -> SpaceObject | None:
        with self._lock:
            record = self._objects.get(catalog_id)
        return SpaceObject.from_record(record) if record else None

    def bulk_upsert_objects(self, objects: list[SpaceObject]) -> int:
        records = [obj.to_record() for obj in objects]
        with self._lock:
            for record in records:
                self._objects[record["catalog_id"]] = record
        logger.debug("Upserted %d objects", len(records))
        return len(records)

    def _write_conjunction(self, conjunction: Conjunction) -> None:
        low, high = canonical_pair(conjunction.cat_low, conjunction.cat_high)
        self._conjunctions[(low, high)] = conjunction.to_record()

    def bulk_upsert_conjunctions(self, conjunctions: list[Conjunction]) -> int:
        with self._lock:
            for conjunction in conjunctions:
                self._write_conjunction(conjunction)
        return len(conjunctions)

    def upsert_conjunction(self, conjunction: Conjunction) -> None:
        with self._lock:
            self._write_conjunction(conjunction)

    def list_conjunctions(self, since: datetime | None = None) -> list[Conjunction]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._conjunctions.values()]
        if since is not None:
            records = [r for r in records if r["created_at"] is not None and r["created_at"] >= since]
        try:
            return [Conjunction.from_record(r) for r in records]
        except (KeyError, ValueError) as e:
            raise StoreError(f"Corrupt conjunction record: {e}") from e

"""Process-local table store backing the repositories when SUPABASE_DISABLED=1."""
from __future__ import annotations

import copy
import threading
import uuid
from collections import defaultdict
from typing import Any

# tables keyed by uuid strings; every other table gets incrementing integer ids
_UUID_TABLES = frozenset({"spare_parts", "spare_part_images"})


def _matches(row: dict, filters: dict[str, Any]) -> bool:
    return all(row.get(col) == value for col, value in filters.items())


class MemoryStore:
    def __init__(self) -> None:
        self._tables: dict[str, dict[Any, dict]] = defaultdict(dict)
        self._sequences: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def insert(self, table: str, row: dict) -> dict:
        with self._lock:
            row = dict(row)
            if row.get("id") is None:
                if table in _UUID_TABLES:
                    row["id"] = str(uuid.uuid4())
                else:
                    self._sequences[table] += 1
                    row["id"] = self._sequences[table]
            elif isinstance(row["id"], int):
                self._sequences[table] = max(self._sequences[table], row["id"])
            self._tables[table][row["id"]] = row
            return copy.deepcopy(row)

    def get(self, table: str, row_id: Any) -> dict | None:
        with self._lock:
            row = self._tables[table].get(row_id)
            return copy.deepcopy(row) if row is not None else None

    def select(self, table: str, **filters: Any) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._tables[table].values() if _matches(r, filters)]

    def update(self, table: str, values: dict, **filters: Any) -> int:
        with self._lock:
            count = 0
            for row in self._tables[table].values():
                if _matches(row, filters):
                    row.update(values)
                    count += 1
            return count

    def delete(self, table: str, **filters: Any) -> int:
        with self._lock:
            doomed = [k for k, r in self._tables[table].items() if _matches(r, filters)]
            for k in doomed:
                del self._tables[table][k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self._sequences.clear()


_MEMORY_STORE = MemoryStore()


def get_memory_store() -> MemoryStore:
    return _MEMORY_STORE

"""
In-memory row table used in place of the hosted backend in fixture mode.
Rows are pydantic records keyed by id; insertion order is preserved.
"""
from typing import Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class MemoryTable(Generic[T]):
    def __init__(self, rows: Iterable[T] = ()):
        self._rows: Dict[str, T] = {}
        for row in rows:
            self.put(row)

    def all(self) -> List[T]:
        return list(self._rows.values())

    def get(self, row_id: str) -> Optional[T]:
        return self._rows.get(row_id)

    def put(self, row: T) -> T:
        self._rows[row.id] = row
        return row

    def remove(self, row_id: str) -> bool:
        return self._rows.pop(row_id, None) is not None

    def __len__(self) -> int:
        return len(self._rows)

"""In-process record store used by default and in tests."""

import copy
from typing import Any, Dict, List, Optional

from clauseguard.storage.base import TABLE_COLUMNS, RecordStore, Row
from clauseguard.utils.errors import PersistenceError, RecordNotFoundError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dict-backed store. Rows are copied on the way in and out."""

    def __init__(self) -> None:
        super().__init__()
        self._tables: Dict[str, Dict[str, Row]] = {table: {} for table in TABLE_COLUMNS}

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    async def insert(self, table: str, row: Row) -> Row:
        self._check_columns(table, row)
        record_id = row.get("id")
        if not record_id:
            raise PersistenceError("Row has no id", {"table": table})
        rows = self._tables[table]
        if record_id in rows:
            raise PersistenceError(f"Duplicate id '{record_id}'", {"table": table, "record_id": record_id})

        rows[record_id] = copy.deepcopy(row)
        return copy.deepcopy(rows[record_id])

    async def update(self, table: str, record_id: str, changes: Row) -> Row:
        self._check_columns(table, changes)
        rows = self._tables[table]
        if record_id not in rows:
            raise RecordNotFoundError(table, record_id)

        rows[record_id].update(copy.deepcopy(changes))
        return copy.deepcopy(rows[record_id])

    async def get(self, table: str, record_id: str) -> Optional[Row]:
        self._check_table(table)
        row = self._tables[table].get(record_id)
        return copy.deepcopy(row) if row is not None else None

    async def select_by(self, table: str, column: str, value: Any, newest_first: bool = True) -> List[Row]:
        self._check_columns(table, [column])
        matches = [row for row in self._tables[table].values() if row.get(column) == value]
        matches.sort(key=lambda row: str(row.get("created_at", "")), reverse=newest_first)
        return copy.deepcopy(matches)

    async def count(self, table: str, filters: Optional[Row] = None) -> int:
        filters = filters or {}
        self._check_columns(table, filters)
        return sum(
            1
            for row in self._tables[table].values()
            if all(row.get(column) == value for column, value in filters.items())
        )

    async def delete(self, table: str, filters: Row) -> int:
        self._check_filters(table, filters)
        rows = self._tables[table]
        doomed = [
            record_id
            for record_id, row in rows.items()
            if all(row.get(column) == value for column, value in filters.items())
        ]
        for record_id in doomed:
            del rows[record_id]
        return len(doomed)

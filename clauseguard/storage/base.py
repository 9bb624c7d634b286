"""
Abstract base interface for record stores.

A record store is a minimal relational contract over three tables,
``contracts``, ``analysis_results`` and ``chat_messages``: insert, update by
id, get by id, select by a column value, count and delete with equality
filters. Rows are plain dicts keyed by column name.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from clauseguard.utils.errors import PersistenceError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

CONTRACTS = "contracts"
ANALYSIS_RESULTS = "analysis_results"
CHAT_MESSAGES = "chat_messages"

TABLE_COLUMNS: Dict[str, tuple] = {
    CONTRACTS: (
        "id",
        "user_id",
        "title",
        "file_name",
        "file_size",
        "mime_type",
        "storage_path",
        "extracted_text",
        "word_count",
        "page_count",
        "status",
        "current_analysis_id",
        "error_message",
        "created_at",
        "updated_at",
    ),
    ANALYSIS_RESULTS: (
        "id",
        "contract_id",
        "user_id",
        "schema_version",
        "analysis",
        "legacy",
        "risk_score",
        "created_at",
        "updated_at",
    ),
    CHAT_MESSAGES: (
        "id",
        "contract_id",
        "user_id",
        "message",
        "response",
        "created_at",
        "updated_at",
    ),
}

Row = Dict[str, Any]


class RecordStore(ABC):
    """
    Abstract base class for record store implementations.

    Implementations: in-memory (default and tests) and PostgreSQL.
    """

    def __init__(self) -> None:
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """
        Open connections and create tables if needed.

        Raises:
            PersistenceError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """
        Insert one row.

        Returns:
            The stored row
        """
        pass

    @abstractmethod
    async def update(self, table: str, record_id: str, changes: Row) -> Row:
        """
        Update columns of the row with the given id.

        Returns:
            The updated row

        Raises:
            RecordNotFoundError: If no row has that id
        """
        pass

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Optional[Row]:
        """Fetch a row by id, or None."""
        pass

    @abstractmethod
    async def select_by(self, table: str, column: str, value: Any, newest_first: bool = True) -> List[Row]:
        """All rows whose column equals value, ordered by created_at."""
        pass

    @abstractmethod
    async def count(self, table: str, filters: Optional[Row] = None) -> int:
        """Number of rows matching every equality filter."""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Row) -> int:
        """
        Delete rows matching every equality filter.

        Returns:
            Number of rows deleted

        Raises:
            PersistenceError: If no filter is given
        """
        pass

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def __aenter__(self) -> "RecordStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @staticmethod
    def _check_table(table: str) -> tuple:
        try:
            return TABLE_COLUMNS[table]
        except KeyError:
            raise PersistenceError(f"Unknown table '{table}'", {"table": table})

    @classmethod
    def _check_columns(cls, table: str, columns) -> None:
        allowed = cls._check_table(table)
        unknown = [c for c in columns if c not in allowed]
        if unknown:
            raise PersistenceError(
                f"Unknown column(s) for '{table}': {', '.join(unknown)}",
                {"table": table, "columns": unknown},
            )

    @classmethod
    def _check_filters(cls, table: str, filters: Row) -> None:
        if not filters:
            raise PersistenceError(f"Refusing to delete from '{table}' without filters", {"table": table})
        cls._check_columns(table, filters)

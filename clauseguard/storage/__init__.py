"""
Persistence for contracts, analyses and uploaded files.
"""

from typing import Optional

from clauseguard.config import Settings, get_settings
from clauseguard.storage.base import ANALYSIS_RESULTS, CHAT_MESSAGES, CONTRACTS, RecordStore
from clauseguard.storage.memory import InMemoryRecordStore
from clauseguard.storage.object_store import LocalObjectStore, ObjectStore
from clauseguard.storage.repository import ContractRepository


def create_record_store(settings: Optional[Settings] = None) -> RecordStore:
    """Postgres when DATABASE_URL is set, in-memory otherwise."""
    settings = settings or get_settings()
    if settings.database_url:
        from clauseguard.storage.postgres import PostgresRecordStore

        return PostgresRecordStore(settings.database_url)
    return InMemoryRecordStore()


__all__ = [
    "ANALYSIS_RESULTS",
    "CHAT_MESSAGES",
    "CONTRACTS",
    "ContractRepository",
    "InMemoryRecordStore",
    "LocalObjectStore",
    "ObjectStore",
    "RecordStore",
    "create_record_store",
]

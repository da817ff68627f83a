"""Adapters for external dependencies.

Provides abstraction layers for:
- Database access (SQL-agnostic)
- File storage (filesystem/cloud-agnostic, optionally encrypted)
"""

from documents.adapters.database_adapter import DatabaseAdapter
from documents.adapters.sqlite_adapter import SQLiteAdapter
from documents.adapters.encryption import KeyRing
from documents.adapters.storage_adapter import StorageAdapter
from documents.adapters.filesystem_storage_adapter import FilesystemStorageAdapter

__all__ = [
    "DatabaseAdapter",
    "SQLiteAdapter",
    "KeyRing",
    "StorageAdapter",
    "FilesystemStorageAdapter",
]

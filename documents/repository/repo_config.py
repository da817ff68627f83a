"""Repository configuration."""

from __future__ import annotations
from dataclasses import dataclass


@dataclass
class RepoConfig:
    """Configuration for documents repository."""

    db_path: str
    """Path to SQLite database file (":memory:" for tests)"""

    id_prefix: str = "LTR"
    """Prefix for document IDs (e.g., "LTR" → "LTR-2026-0001")"""

    id_pattern: str = "{YYYY}-{seq:04d}"
    """Pattern for ID generation (supports {YYYY}, {seq:04d})"""

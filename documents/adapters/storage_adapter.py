"""Storage adapter abstraction.

Defines the interface for binary content: uploaded base documents,
signature/stamp images and burned artifacts. Allows switching between
local filesystem, S3, Azure Blob, etc.
"""

from __future__ import annotations
from abc import ABC, abstractmethod


class StorageAdapter(ABC):
    """Abstract storage adapter for document content."""

    @abstractmethod
    def store(self, data: bytes, *, suffix: str = "") -> str:
        """
        Persist bytes.

        Args:
            data: Content to store
            suffix: Optional file extension hint (e.g. ".pdf")

        Returns:
            Reference usable with fetch/delete/exists
        """
        raise NotImplementedError

    @abstractmethod
    def fetch(self, ref: str) -> bytes:
        """
        Read stored bytes.

        Raises:
            FileNotFoundError: if the reference is unknown
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, ref: str) -> bool:
        """Remove stored bytes; returns False when nothing was stored."""
        raise NotImplementedError

    @abstractmethod
    def exists(self, ref: str) -> bool:
        """Check if a reference resolves to stored content."""
        raise NotImplementedError

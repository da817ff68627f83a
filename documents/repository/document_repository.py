"""Document repository protocol (interface).

Defines the contract for document data access without implementation details.
"""

from __future__ import annotations
from typing import Protocol, List, Optional

from documents.models.document_models import ActionLogEntry, DocumentRecord


class DocumentRepository(Protocol):
    """Protocol for document data access."""

    # ===== Identity =====

    def next_id(self) -> str:
        """Allocate the next document id (e.g. "LTR-2026-0007")."""
        ...

    # ===== Query Operations =====

    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        """
        Load the full aggregate: steps, placements and log included.

        Args:
            doc_id: Document ID

        Returns:
            DocumentRecord or None
        """
        ...

    def exists(self, doc_id: str) -> bool:
        """Check if document exists."""
        ...

    def list_awaiting(self, user_id: str) -> List[DocumentRecord]:
        """Non-trashed documents whose next actor is ``user_id``."""
        ...

    def list_rejected(self, author_id: str) -> List[DocumentRecord]:
        """Non-trashed REJECTED documents authored by ``author_id``."""
        ...

    def list_trash(self, author_id: str) -> List[DocumentRecord]:
        """Trashed documents authored by ``author_id``."""
        ...

    def history(self, doc_id: str) -> List[ActionLogEntry]:
        """Action log of a document, oldest first."""
        ...

    # ===== Persistence =====

    def add(self, doc: DocumentRecord) -> DocumentRecord:
        """
        Insert a new aggregate.

        Returns:
            The record with ``version`` set to 1
        """
        ...

    def save(self, doc: DocumentRecord, *, expected_version: int) -> DocumentRecord:
        """
        Write the aggregate in one transaction.

        Raises:
            ConflictError: stored version differs from ``expected_version``
            DocumentNotFoundError: document does not exist
        """
        ...

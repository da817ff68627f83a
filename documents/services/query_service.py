"""Read-only queries for the documents feature.

Inbox, rejected-by-me, history and the public verification record. No
locking: every call reads the last committed state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from documents.enum.document_status import WorkflowStatus
from documents.exceptions.errors import DocumentNotFoundError
from documents.models.document_models import ActionLogEntry, DocumentRecord
from documents.repository.document_repository import DocumentRepository


@dataclass(frozen=True)
class PublicRecord:
    """What a QR verification page may show about an approved document."""
    doc_id: str
    title: str
    artifact_ref: str
    approved_at: Optional[datetime]


class DocumentQueryService:
    def __init__(self, repository: DocumentRepository):
        """
        Args:
            repository: Document repository
        """
        self._repo = repository

    def awaiting_action(self, user_id: str) -> List[DocumentRecord]:
        """Documents whose next actor is ``user_id``."""
        return self._repo.list_awaiting(user_id)

    def rejected_authored(self, user_id: str) -> List[DocumentRecord]:
        """Rejected documents ``user_id`` wrote."""
        return self._repo.list_rejected(user_id)

    def list_trash(self, author_id: str) -> List[DocumentRecord]:
        return self._repo.list_trash(author_id)

    def history(self, doc_id: str) -> List[ActionLogEntry]:
        if not self._repo.exists(doc_id):
            raise DocumentNotFoundError(f"Document {doc_id!r} not found.")
        return self._repo.history(doc_id)

    def public_record(self, doc_id: str) -> Optional[PublicRecord]:
        """Verification data; None unless the document is approved."""
        doc = self._repo.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(f"Document {doc_id!r} not found.")
        if doc.status != WorkflowStatus.APPROVED or not doc.artifact_ref or doc.is_trashed:
            return None
        return PublicRecord(doc.doc_id, doc.title, doc.artifact_ref, doc.approved_at)

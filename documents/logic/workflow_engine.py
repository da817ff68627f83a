# documents/logic/workflow_engine.py
"""
Workflow rules & guards for the Documents feature.

- Stateless: pure routing/guard logic, no storage or locking here.
- The service calls these after every chain mutation to derive status and
  the next actor from the chain alone.
"""

from __future__ import annotations
from typing import Optional

from documents.enum.document_status import WorkflowStatus
from documents.exceptions.errors import AuthorizationError, InvalidState
from documents.logic.reviewer_chain import ReviewerChain
from documents.models.document_models import DocumentRecord


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and str(a).strip() == str(b).strip()


class WorkflowEngine:
    """Stateless rules engine; the service persists resulting changes."""

    def __init__(self, *, rejected_routes_to_author: bool = False) -> None:
        self.rejected_routes_to_author = rejected_routes_to_author

    # ----------------- Derived state ----------------------------------------
    def next_actor(self, doc: DocumentRecord, chain: ReviewerChain) -> Optional[str]:
        """Who must act next; a pure function of status and chain."""
        if doc.status in (WorkflowStatus.DRAFT, WorkflowStatus.APPROVED):
            return None
        if doc.status == WorkflowStatus.REJECTED:
            return doc.author_id if self.rejected_routes_to_author else None
        step = chain.current_pending()
        return step.user_id if step else None

    @staticmethod
    def status_after_submit(chain: ReviewerChain) -> WorkflowStatus:
        """Reviewers first when the round has any, else straight to the approver."""
        return WorkflowStatus.PENDING_REVIEW if chain.has_reviewers() else WorkflowStatus.PENDING_APPROVAL

    @staticmethod
    def status_after_review(chain: ReviewerChain) -> WorkflowStatus:
        step = chain.current_pending()
        if step is None or chain.is_final(step):
            return WorkflowStatus.PENDING_APPROVAL
        return WorkflowStatus.PENDING_REVIEW

    # ----------------- Guards ------------------------------------------------
    @staticmethod
    def require_status(doc: DocumentRecord, *allowed: WorkflowStatus) -> None:
        if doc.status not in allowed:
            names = ", ".join(s.value for s in allowed)
            raise InvalidState(f"{doc.doc_id} is {doc.status.value}; expected {names}")

    @staticmethod
    def require_author(doc: DocumentRecord, actor_id: str) -> None:
        if not _same(doc.author_id, actor_id):
            raise AuthorizationError(f"{actor_id!r} is not the author of {doc.doc_id}")

    @staticmethod
    def require_next_actor(doc: DocumentRecord, actor_id: str) -> None:
        if not _same(doc.next_actor_id, actor_id):
            raise AuthorizationError(f"{actor_id!r} is not the next actor on {doc.doc_id}")

    @staticmethod
    def require_participant(doc: DocumentRecord, actor_id: str) -> None:
        if not any(_same(p, actor_id) for p in doc.participants):
            raise AuthorizationError(f"{actor_id!r} takes no part in {doc.doc_id}")

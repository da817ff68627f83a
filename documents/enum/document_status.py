"""Workflow status enumeration."""
from __future__ import annotations

from enum import Enum


class WorkflowStatus(str, Enum):
    """Coarse lifecycle stage of a document under approval."""

    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_pending(self) -> bool:
        return self in (WorkflowStatus.PENDING_REVIEW, WorkflowStatus.PENDING_APPROVAL)


class ReviewerStatus(str, Enum):
    """Outcome of a single reviewer step."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"
    REASSIGNED = "REASSIGNED"

    @property
    def is_final(self) -> bool:
        return self is not ReviewerStatus.PENDING


class ContentKind(str, Enum):
    """Shape of the base content a document carries."""

    PAGINATED = "paginated"
    CONTINUOUS = "continuous"

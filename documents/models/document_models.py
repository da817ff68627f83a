"""
Document domain models for the Documents feature.

Keeps the data layer independent from UI and storage details.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from documents.enum.document_action import ActionType
from documents.enum.document_status import ContentKind, ReviewerStatus, WorkflowStatus
from signature.models.signature_placement import Placement


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ReviewerStep:
    """One ordered slot of the approval chain.

    Steps are values: resolving a step yields a new instance, and a step
    whose status is final is never replaced again.
    """
    user_id: str
    sequence_order: int
    status: ReviewerStatus = ReviewerStatus.PENDING
    round: int = 1
    acted_at: Optional[datetime] = None
    reassigned_from: Optional[str] = None
    step_id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ActionLogEntry:
    doc_id: str
    actor_id: str
    action: ActionType
    comment: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    ts_utc: datetime = field(default_factory=utcnow)
    entry_id: str = field(default_factory=new_id)


@dataclass
class DocumentRecord:
    doc_id: str
    title: str
    author_id: str
    content_kind: ContentKind
    status: WorkflowStatus = WorkflowStatus.DRAFT

    # base content: a stored binary reference (paginated) or a body (continuous)
    content_ref: Optional[str] = None
    body: Optional[str] = None

    placements: List[Placement] = field(default_factory=list)
    steps: List[ReviewerStep] = field(default_factory=list)
    log: List[ActionLogEntry] = field(default_factory=list)
    next_actor_id: Optional[str] = None

    artifact_ref: Optional[str] = None
    approved_at: Optional[datetime] = None
    trashed_at: Optional[datetime] = None
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_paginated(self) -> bool:
        return self.content_kind == ContentKind.PAGINATED

    @property
    def is_trashed(self) -> bool:
        return self.trashed_at is not None

    @property
    def participants(self) -> set:
        """Author plus everyone ever assigned a step."""
        return {self.author_id} | {s.user_id for s in self.steps}

# documents/logic/workflow_service.py
"""
Orchestrates document lifecycle transitions.

Every transition runs under the per-document lock, checks status, then the
actor, then the input, and only then mutates. Each transition appends
exactly one ActionLogEntry and recomputes the next actor before the
aggregate is saved with an optimistic version check.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from documents.adapters.storage_adapter import StorageAdapter
from documents.enum.document_action import ActionType
from documents.enum.document_status import ContentKind, ReviewerStatus, WorkflowStatus
from documents.exceptions.errors import (
    CompositionError,
    DocumentNotFoundError,
    InvalidState,
    OperationCancelledError,
    ValidationError,
)
from documents.logic.document_locks import DocumentLocks
from documents.logic.reviewer_chain import ReviewerChain
from documents.logic.template_renderer import render_template
from documents.logic.workflow_engine import WorkflowEngine
from documents.models.document_models import ActionLogEntry, DocumentRecord, ReviewerStep, utcnow
from documents.repository.document_repository import DocumentRepository
from signature.exceptions.errors import CompositionError as SignatureCompositionError
from signature.exceptions.errors import PlacementValidationError
from signature.logic.pdf_signer import (
    BurnedItem,
    CompositionWarning,
    DocumentCompositor,
    MarkerReservation,
    OverlayItem,
)
from signature.models.geometry import PageSize
from signature.models.signature_enums import PlacementKind
from signature.models.signature_placement import Placement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    document: DocumentRecord
    entry: Optional[ActionLogEntry] = None
    warnings: Tuple[CompositionWarning, ...] = ()
    reserved: Tuple[MarkerReservation, ...] = ()
    burned: Tuple[BurnedItem, ...] = ()

    @property
    def status(self) -> WorkflowStatus:
        return self.document.status

    @property
    def next_actor_id(self) -> Optional[str]:
        return self.document.next_actor_id


def _require_text(value: Optional[str], what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} is required.")
    return value.strip()


def _clean_id(value: Optional[str], what: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{what} is required.")
    return str(value).strip()


class WorkflowService:
    """
    Document approval workflow.

    Collaborators:
        repository  persists the aggregate (DocumentRepository)
        storage     base content, images and artifacts (StorageAdapter)
        compositor  burns placements into the final artifact
    """

    def __init__(
        self,
        *,
        repository: DocumentRepository,
        storage: StorageAdapter,
        compositor: DocumentCompositor,
        max_reviewers: int = 5,
        final_approver_order: int = 999,
        rejected_routes_to_author: bool = False,
        require_qr_marker: bool = False,
        locks: Optional[DocumentLocks] = None,
    ) -> None:
        self._repo = repository
        self._storage = storage
        self._compositor = compositor
        self._max_reviewers = int(max_reviewers)
        self._final_order = int(final_approver_order)
        self._require_qr = bool(require_qr_marker)
        self._engine = WorkflowEngine(rejected_routes_to_author=rejected_routes_to_author)
        self._locks = locks or DocumentLocks()

    @classmethod
    def from_config(cls, cfg, *, repository, storage, compositor, locks=None) -> "WorkflowService":
        """Build from a ``WorkflowConfig`` section."""
        return cls(
            repository=repository,
            storage=storage,
            compositor=compositor,
            max_reviewers=cfg.max_reviewers,
            final_approver_order=cfg.final_approver_order,
            rejected_routes_to_author=cfg.rejected_routes_to_author,
            require_qr_marker=cfg.require_qr_marker,
            locks=locks,
        )

    # ---- helpers ------------------------------------------------------------

    def chain_of(self, doc: DocumentRecord) -> ReviewerChain:
        return ReviewerChain.restore(doc.steps, max_reviewers=self._max_reviewers, final_order=self._final_order)

    def _get(self, doc_id: str) -> DocumentRecord:
        doc = self._repo.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(f"Document {doc_id!r} not found.")
        return doc

    @contextmanager
    def _mutating(self, doc_id: str, *, allow_trashed: bool = False) -> Iterator[DocumentRecord]:
        with self._locks.hold(doc_id):
            doc = self._get(doc_id)
            if doc.is_trashed and not allow_trashed:
                raise InvalidState(f"{doc_id} is in the trash.")
            yield doc

    def _commit(
        self,
        doc: DocumentRecord,
        chain: ReviewerChain,
        *,
        action: Optional[ActionType] = None,
        actor_id: Optional[str] = None,
        comment: Optional[str] = None,
        details: Optional[Dict[str, object]] = None,
    ) -> TransitionResult:
        expected = doc.version
        doc.steps = list(chain.steps)
        doc.next_actor_id = self._engine.next_actor(doc, chain)
        entry = None
        if action is not None:
            entry = ActionLogEntry(doc_id=doc.doc_id, actor_id=actor_id or "", action=action,
                                   comment=comment, details=dict(details or {}))
            doc.log.append(entry)
        self._repo.save(doc, expected_version=expected)
        if entry is not None:
            logger.info("%s %s by %s -> %s (next: %s)", doc.doc_id, action.value, actor_id,
                        doc.status.value, doc.next_actor_id)
        return TransitionResult(document=doc, entry=entry)

    def _validate_placements(self, doc: DocumentRecord, placements: Sequence[Placement]) -> List[Placement]:
        checked: List[Placement] = []
        for p in placements:
            if not isinstance(p, Placement):
                raise ValidationError(f"Not a placement: {p!r}")
            try:
                checked.append(p.validate(paginated=doc.is_paginated))
            except PlacementValidationError as ex:
                raise ValidationError(str(ex)) from ex
        return checked

    @staticmethod
    def _replace_content(doc: DocumentRecord, content_ref: Optional[str], body: Optional[str]) -> bool:
        """Swap the base content; returns False when nothing new was given."""
        if content_ref is None and body is None:
            return False
        if doc.is_paginated:
            if body is not None or not (content_ref and content_ref.strip()):
                raise ValidationError("Paginated documents take a content reference.")
            doc.content_ref = content_ref.strip()
        else:
            if content_ref is not None or body is None:
                raise ValidationError("Continuous documents take a body.")
            doc.body = body
        doc.placements = []
        return True

    # ---- creation & setup -------------------------------------------------------

    def create_document(
        self,
        author_id: str,
        title: str,
        *,
        content_kind: ContentKind,
        content_ref: Optional[str] = None,
        body: Optional[str] = None,
        template_values: Optional[Mapping[str, object]] = None,
    ) -> DocumentRecord:
        """Create a DRAFT; a continuous body is rendered as a ``#name#`` template."""
        author_id = _clean_id(author_id, "Author")
        title = _require_text(title, "Title")
        kind = ContentKind(content_kind)
        if kind == ContentKind.PAGINATED:
            if not (content_ref and content_ref.strip()) or body is not None:
                raise ValidationError("Paginated documents take a content reference.")
            if not self._storage.exists(content_ref.strip()):
                raise ValidationError(f"Unknown content reference {content_ref!r}.")
        elif content_ref is not None or body is None:
            raise ValidationError("Continuous documents take a body.")

        doc = DocumentRecord(
            doc_id=self._repo.next_id(),
            title=title,
            author_id=author_id,
            content_kind=kind,
            content_ref=content_ref.strip() if content_ref else None,
            body=render_template(body, template_values) if body is not None else None,
        )
        self._repo.add(doc)
        logger.info("Created %s (%s) for %s", doc.doc_id, kind.value, author_id)
        return doc

    def configure_chain(
        self,
        doc_id: str,
        actor_id: str,
        reviewer_ids: Sequence[str],
        approver_id: str,
    ) -> DocumentRecord:
        """Set reviewers (orders 1..n) and the mandatory final approver."""
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.DRAFT)
            self._engine.require_author(doc, actor_id)

            approver = _clean_id(approver_id, "Final approver")
            reviewers = [_clean_id(r, "Reviewer") for r in (reviewer_ids or [])]
            if len(set(reviewers)) != len(reviewers):
                raise ValidationError("Reviewers must be distinct.")
            if doc.author_id in reviewers or approver == doc.author_id:
                raise ValidationError("The author cannot review or approve their own document.")
            if approver in reviewers:
                raise ValidationError("The final approver cannot also be a reviewer.")

            chain = ReviewerChain(max_reviewers=self._max_reviewers, final_order=self._final_order)
            for order, user_id in enumerate(reviewers, start=1):
                chain.insert(ReviewerStep(user_id=user_id, sequence_order=order))
            chain.insert(ReviewerStep(user_id=approver, sequence_order=self._final_order))
            return self._commit(doc, chain).document

    # ---- transitions ------------------------------------------------------------

    def submit(self, doc_id: str, actor_id: str) -> TransitionResult:
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.DRAFT)
            self._engine.require_author(doc, actor_id)
            chain = self.chain_of(doc)
            if chain.final_approver() is None:
                raise ValidationError("Configure the reviewer chain and final approver before submitting.")

            doc.status = self._engine.status_after_submit(chain)
            return self._commit(doc, chain, action=ActionType.SUBMIT, actor_id=actor_id)

    def approve_review(self, doc_id: str, actor_id: str, comment: str) -> TransitionResult:
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.PENDING_REVIEW)
            self._engine.require_next_actor(doc, actor_id)
            comment = _require_text(comment, "Comment")

            chain = self.chain_of(doc)
            step = chain.current_pending()
            chain.mark_resolved(step.step_id, ReviewerStatus.APPROVED)
            doc.status = self._engine.status_after_review(chain)
            return self._commit(doc, chain, action=ActionType.APPROVE_REVIEW, actor_id=actor_id,
                                comment=comment, details={"sequence_order": step.sequence_order})

    def _reject(self, doc_id: str, actor_id: str, reason: str, *,
                stage: WorkflowStatus, action: ActionType) -> TransitionResult:
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, stage)
            self._engine.require_next_actor(doc, actor_id)
            reason = _require_text(reason, "Reason")

            chain = self.chain_of(doc)
            step = chain.current_pending()
            chain.mark_resolved(step.step_id, ReviewerStatus.REJECTED)
            doc.status = WorkflowStatus.REJECTED
            return self._commit(doc, chain, action=action, actor_id=actor_id, comment=reason,
                                details={"sequence_order": step.sequence_order})

    def reject_review(self, doc_id: str, actor_id: str, reason: str) -> TransitionResult:
        return self._reject(doc_id, actor_id, reason,
                            stage=WorkflowStatus.PENDING_REVIEW, action=ActionType.REJECT_REVIEW)

    def final_reject(self, doc_id: str, actor_id: str, reason: str) -> TransitionResult:
        return self._reject(doc_id, actor_id, reason,
                            stage=WorkflowStatus.PENDING_APPROVAL, action=ActionType.FINAL_REJECT)

    def reassign(self, doc_id: str, actor_id: str, new_actor_id: str, reason: str) -> TransitionResult:
        """Hand the current review step to someone else (reviews only)."""
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.PENDING_REVIEW)
            self._engine.require_next_actor(doc, actor_id)
            reason = _require_text(reason, "Reason")
            new_actor_id = _clean_id(new_actor_id, "New reviewer")

            chain = self.chain_of(doc)
            if new_actor_id == doc.author_id:
                raise ValidationError("A review cannot be reassigned to the author.")
            # earlier holders of a reassigned step count as present
            if new_actor_id in {s.user_id for s in chain.round_steps()}:
                raise ValidationError(f"{new_actor_id!r} is already part of the reviewer chain.")

            step = chain.current_pending()
            chain.reassign(step.step_id, new_actor_id)
            return self._commit(doc, chain, action=ActionType.REASSIGN_REVIEW, actor_id=actor_id,
                                comment=reason,
                                details={"from": actor_id, "to": new_actor_id,
                                         "sequence_order": step.sequence_order})

    def final_approve(
        self,
        doc_id: str,
        actor_id: str,
        comment: str,
        placements: Optional[Sequence[Placement]] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransitionResult:
        """
        Burn placements into the base content and approve.

        ``placements=None`` burns the staged placements. The artifact is
        stored and the status flips to APPROVED in the same save; when the
        request is cancelled or the save fails, no artifact remains.
        """
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.PENDING_APPROVAL)
            self._engine.require_next_actor(doc, actor_id)
            comment = _require_text(comment, "Comment")
            items = self._validate_placements(doc, doc.placements if placements is None else placements)
            if self._require_qr and not any(p.kind == PlacementKind.QR_MARKER for p in items):
                raise ValidationError("A QR marker placement is required for final approval.")

            result = self._compose(doc, items)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("%s final approval cancelled before commit", doc.doc_id)
                raise OperationCancelledError(f"Final approval of {doc.doc_id} was cancelled.")

            suffix = ".pdf" if doc.is_paginated else ".html"
            artifact_ref = self._storage.store(result.content, suffix=suffix)
            try:
                chain = self.chain_of(doc)
                step = chain.current_pending()
                chain.mark_resolved(step.step_id, ReviewerStatus.APPROVED)
                doc.status = WorkflowStatus.APPROVED
                doc.artifact_ref = artifact_ref
                doc.approved_at = utcnow()
                doc.placements = list(items)
                out = self._commit(
                    doc, chain, action=ActionType.FINAL_APPROVE, actor_id=actor_id, comment=comment,
                    details={
                        "artifact_ref": artifact_ref,
                        "placements": len(items),
                        "warnings": [w.to_dict() for w in result.warnings],
                        "reserved_markers": [m.to_dict() for m in result.reserved],
                    },
                )
            except BaseException:
                self._storage.delete(artifact_ref)
                raise

            for w in result.warnings:
                logger.warning("%s placement %s skipped: %s", doc.doc_id, w.placement_id, w.message)
            return TransitionResult(document=out.document, entry=out.entry,
                                    warnings=tuple(result.warnings), reserved=tuple(result.reserved),
                                    burned=tuple(result.burned))

    def _compose(self, doc: DocumentRecord, items: Sequence[Placement]):
        try:
            if doc.is_paginated:
                try:
                    base = self._storage.fetch(doc.content_ref or "")
                except FileNotFoundError as ex:
                    raise CompositionError(f"Base content of {doc.doc_id} is missing.") from ex
                return self._compositor.burn_to_pdf(base, items)
            return self._compositor.burn_to_html(doc.body or "", items)
        except SignatureCompositionError as ex:
            raise CompositionError(str(ex)) from ex

    def resubmit(
        self,
        doc_id: str,
        actor_id: str,
        comment: str,
        new_content_ref: Optional[str] = None,
        *,
        new_body: Optional[str] = None,
    ) -> TransitionResult:
        """Start a new review round; new content clears stale placements."""
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.REJECTED)
            self._engine.require_author(doc, actor_id)
            comment = _require_text(comment, "Comment")
            if new_content_ref is not None and not self._storage.exists(new_content_ref.strip()):
                raise ValidationError(f"Unknown content reference {new_content_ref!r}.")
            replaced = self._replace_content(doc, new_content_ref, new_body)

            chain = self.chain_of(doc)
            chain.open_round()
            doc.status = self._engine.status_after_submit(chain)
            return self._commit(doc, chain, action=ActionType.RESUBMIT, actor_id=actor_id, comment=comment,
                                details={"round": chain.current_round, "content_replaced": replaced})

    def add_comment(self, doc_id: str, actor_id: str, text: str) -> TransitionResult:
        with self._mutating(doc_id) as doc:
            if doc.status == WorkflowStatus.DRAFT:
                raise InvalidState(f"{doc_id} is still a draft.")
            self._engine.require_participant(doc, actor_id)
            text = _require_text(text, "Comment")
            return self._commit(doc, self.chain_of(doc), action=ActionType.COMMENT,
                                actor_id=actor_id, comment=text)

    def upload_revision(
        self,
        doc_id: str,
        actor_id: str,
        *,
        content_ref: Optional[str] = None,
        body: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> TransitionResult:
        """Replace the base content while the author holds the document."""
        with self._mutating(doc_id) as doc:
            self._engine.require_status(doc, WorkflowStatus.DRAFT, WorkflowStatus.REJECTED)
            self._engine.require_author(doc, actor_id)
            if content_ref is not None and not self._storage.exists(content_ref.strip()):
                raise ValidationError(f"Unknown content reference {content_ref!r}.")
            if not self._replace_content(doc, content_ref, body):
                raise ValidationError("New content is required.")
            note = comment.strip() if isinstance(comment, str) and comment.strip() else None
            return self._commit(doc, self.chain_of(doc), action=ActionType.UPLOAD_REVISION,
                                actor_id=actor_id, comment=note,
                                details={"content_ref": doc.content_ref} if doc.is_paginated else {})

    # ---- placements ---------------------------------------------------------------

    def stage_placements(self, doc_id: str, actor_id: str, placements: Sequence[Placement]) -> DocumentRecord:
        """Persist in-progress placements for preview; not a transition."""
        with self._mutating(doc_id) as doc:
            if doc.status == WorkflowStatus.PENDING_APPROVAL:
                self._engine.require_next_actor(doc, actor_id)
            elif doc.status in (WorkflowStatus.DRAFT, WorkflowStatus.REJECTED):
                self._engine.require_author(doc, actor_id)
            else:
                raise InvalidState(f"Placements of {doc_id} cannot change while {doc.status.value}.")
            doc.placements = self._validate_placements(doc, placements)
            return self._commit(doc, self.chain_of(doc)).document

    def page_sizes(self, doc_id: str) -> List[PageSize]:
        """Native page sizes of a paginated document's base content."""
        doc = self._get(doc_id)
        if not doc.is_paginated:
            raise ValidationError(f"{doc_id} has continuous content; its size comes from the viewer.")
        try:
            return self._compositor.page_sizes(self._storage.fetch(doc.content_ref or ""))
        except FileNotFoundError as ex:
            raise CompositionError(f"Base content of {doc_id} is missing.") from ex
        except SignatureCompositionError as ex:
            raise CompositionError(str(ex)) from ex

    def preview_overlay(
        self,
        doc_id: str,
        scale: float,
        page_sizes: Optional[Sequence[PageSize]] = None,
    ) -> List[OverlayItem]:
        """Overlay rectangles for the staged placements at ``scale``."""
        doc = self._get(doc_id)
        if page_sizes is None:
            page_sizes = self.page_sizes(doc_id)
        try:
            return self._compositor.render_overlay(doc.placements, page_sizes, scale)
        except PlacementValidationError as ex:
            raise ValidationError(str(ex)) from ex

    # ---- trash --------------------------------------------------------------------

    def move_to_trash(self, doc_id: str, actor_id: str) -> DocumentRecord:
        with self._mutating(doc_id) as doc:
            self._engine.require_author(doc, actor_id)
            if doc.status.is_pending:
                raise InvalidState(f"{doc_id} is in review and cannot be trashed.")
            doc.trashed_at = utcnow()
            return self._commit(doc, self.chain_of(doc)).document

    def restore_from_trash(self, doc_id: str, actor_id: str) -> DocumentRecord:
        with self._mutating(doc_id, allow_trashed=True) as doc:
            self._engine.require_author(doc, actor_id)
            if not doc.is_trashed:
                raise InvalidState(f"{doc_id} is not in the trash.")
            doc.trashed_at = None
            return self._commit(doc, self.chain_of(doc)).document

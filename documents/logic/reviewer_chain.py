"""
documents/logic/reviewer_chain.py
=================================

Ordered, invariant-enforcing container for the reviewer steps of one
document.

A chain is made of rounds. The first round is created when the chain is
configured; each resubmission opens a new round. Within a round every
sequence order is held by exactly one active (non-REASSIGNED) step, and
the reserved final-approver order appears at most once. History is
append-only: resolving a step swaps in a resolved copy of a PENDING step,
reassignment appends a new step.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from documents.enum.document_status import ReviewerStatus
from documents.exceptions.errors import InvalidState, ValidationError
from documents.models.document_models import ReviewerStep, utcnow

DEFAULT_MAX_REVIEWERS = 5
FINAL_APPROVER_ORDER = 999


class ReviewerChain:
    def __init__(
        self,
        steps: Iterable[ReviewerStep] = (),
        *,
        max_reviewers: int = DEFAULT_MAX_REVIEWERS,
        final_order: int = FINAL_APPROVER_ORDER,
    ) -> None:
        self.max_reviewers = int(max_reviewers)
        self.final_order = int(final_order)
        self._steps: List[ReviewerStep] = []
        for step in steps:
            self.insert(step)

    @classmethod
    def restore(
        cls,
        steps: Iterable[ReviewerStep],
        *,
        max_reviewers: int = DEFAULT_MAX_REVIEWERS,
        final_order: int = FINAL_APPROVER_ORDER,
    ) -> "ReviewerChain":
        """Rebuild a saved chain as it was configured.

        Saved steps are not re-checked against the current limits. The
        reserved order is taken from the saved final approver, which is
        always the highest order of a configured chain.
        """
        saved = list(steps)
        if saved:
            final_order = max(s.sequence_order for s in saved)
        chain = cls(max_reviewers=max_reviewers, final_order=final_order)
        chain._steps = saved
        return chain

    # ------------------------------------------------------------------ #
    #  Views                                                             #
    # ------------------------------------------------------------------ #
    @property
    def steps(self) -> Tuple[ReviewerStep, ...]:
        return tuple(self._steps)

    @property
    def current_round(self) -> int:
        return max((s.round for s in self._steps), default=0)

    def __len__(self) -> int:
        return len(self._steps)

    def round_steps(self, round_no: Optional[int] = None) -> List[ReviewerStep]:
        r = self.current_round if round_no is None else round_no
        return [s for s in self._steps if s.round == r]

    def active_steps(self, round_no: Optional[int] = None) -> List[ReviewerStep]:
        """Steps of a round that still count, ordered by sequence order."""
        active = [s for s in self.round_steps(round_no) if s.status != ReviewerStatus.REASSIGNED]
        return sorted(active, key=lambda s: s.sequence_order)

    def is_final(self, step: ReviewerStep) -> bool:
        return step.sequence_order == self.final_order

    def final_approver(self, round_no: Optional[int] = None) -> Optional[ReviewerStep]:
        for s in self.active_steps(round_no):
            if self.is_final(s):
                return s
        return None

    def has_reviewers(self, round_no: Optional[int] = None) -> bool:
        return any(not self.is_final(s) for s in self.active_steps(round_no))

    def current_pending(self) -> Optional[ReviewerStep]:
        """Lowest-order PENDING step of the current round, or None."""
        for s in self.active_steps():
            if s.status == ReviewerStatus.PENDING:
                return s
        return None

    def get(self, step_id: str) -> ReviewerStep:
        for s in self._steps:
            if s.step_id == step_id:
                return s
        raise ValidationError(f"Unknown reviewer step {step_id!r}")

    def active_user_ids(self, round_no: Optional[int] = None) -> List[str]:
        return [s.user_id for s in self.active_steps(round_no)]

    # ------------------------------------------------------------------ #
    #  Mutation                                                          #
    # ------------------------------------------------------------------ #
    def insert(self, step: ReviewerStep) -> ReviewerStep:
        return self._insert(step, enforce_limit=True)

    def _insert(self, step: ReviewerStep, *, enforce_limit: bool) -> ReviewerStep:
        if not isinstance(step.sequence_order, int) or step.sequence_order <= 0:
            raise ValidationError(f"Sequence order must be a positive integer, got {step.sequence_order!r}")
        if step.sequence_order > self.final_order:
            raise ValidationError(f"Sequence order {step.sequence_order} is above the final approver order")
        if not (step.user_id and str(step.user_id).strip()):
            raise ValidationError("Reviewer step needs an actor")
        if step.round < self.current_round:
            raise ValidationError(f"Round {step.round} is closed")

        if step.status != ReviewerStatus.REASSIGNED:
            active = self.active_steps(step.round)
            if any(s.sequence_order == step.sequence_order for s in active):
                raise ValidationError(f"Sequence order {step.sequence_order} is already taken in round {step.round}")
            if enforce_limit and not self.is_final(step):
                ordinary = sum(1 for s in active if not self.is_final(s))
                if ordinary + 1 > self.max_reviewers:
                    raise ValidationError(f"At most {self.max_reviewers} reviewers are allowed")

        self._steps.append(step)
        return step

    def _swap(self, old: ReviewerStep, new: ReviewerStep) -> ReviewerStep:
        idx = next(i for i, s in enumerate(self._steps) if s.step_id == old.step_id)
        self._steps[idx] = new
        return new

    def mark_resolved(self, step_id: str, outcome: ReviewerStatus) -> ReviewerStep:
        """Set the outcome of a PENDING step; final outcomes are immutable."""
        if outcome == ReviewerStatus.PENDING:
            raise ValidationError("Outcome must be a final status")
        step = self.get(step_id)
        if step.status != ReviewerStatus.PENDING:
            raise InvalidState(f"Reviewer step {step_id} is already {step.status.value}")
        return self._swap(step, replace(step, status=outcome, acted_at=utcnow()))

    def reassign(self, step_id: str, new_user_id: str) -> ReviewerStep:
        """Close a PENDING step as REASSIGNED and append its replacement."""
        old = self.mark_resolved(step_id, ReviewerStatus.REASSIGNED)
        # a replacement never grows the chain
        return self._insert(ReviewerStep(
            user_id=new_user_id,
            sequence_order=old.sequence_order,
            round=old.round,
            reassigned_from=old.user_id,
        ), enforce_limit=False)

    def open_round(self) -> List[ReviewerStep]:
        """Re-append the effective actor of each order as PENDING in a new round."""
        previous = self.active_steps()
        if not previous:
            raise ValidationError("Reviewer chain is not configured")
        next_round = self.current_round + 1
        return [
            self._insert(ReviewerStep(user_id=s.user_id, sequence_order=s.sequence_order, round=next_round),
                         enforce_limit=False)
            for s in previous
        ]

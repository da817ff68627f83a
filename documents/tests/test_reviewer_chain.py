"""Reviewer chain invariants."""
from __future__ import annotations

import pytest

from documents.enum.document_status import ReviewerStatus
from documents.exceptions.errors import InvalidState, ValidationError
from documents.logic.reviewer_chain import ReviewerChain
from documents.models.document_models import ReviewerStep


def _chain(*users: str, approver: str = "BOSS", **kwargs) -> ReviewerChain:
    chain = ReviewerChain(**kwargs)
    for order, user in enumerate(users, start=1):
        chain.insert(ReviewerStep(user_id=user, sequence_order=order))
    chain.insert(ReviewerStep(user_id=approver, sequence_order=chain.final_order))
    return chain


def test_current_pending_is_lowest_order() -> None:
    chain = ReviewerChain()
    chain.insert(ReviewerStep(user_id="late", sequence_order=7))
    chain.insert(ReviewerStep(user_id="early", sequence_order=2))
    assert chain.current_pending().user_id == "early"


def test_duplicate_order_is_rejected() -> None:
    chain = _chain("A")
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="Z", sequence_order=1))
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="Z", sequence_order=999))


def test_order_bounds() -> None:
    chain = ReviewerChain(final_order=999)
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="A", sequence_order=0))
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="A", sequence_order=1000))


def test_reviewer_limit_is_configurable() -> None:
    _chain("A", "B", "C", "D", "E")
    with pytest.raises(ValidationError):
        _chain("A", "B", "C", "D", "E", "F")
    with pytest.raises(ValidationError):
        _chain("A", "B", max_reviewers=1)


def test_resolved_steps_are_immutable() -> None:
    chain = _chain("A")
    step = chain.current_pending()
    resolved = chain.mark_resolved(step.step_id, ReviewerStatus.APPROVED)
    assert resolved.acted_at is not None
    assert step.status == ReviewerStatus.PENDING  # original value untouched
    with pytest.raises(InvalidState):
        chain.mark_resolved(step.step_id, ReviewerStatus.REJECTED)
    with pytest.raises(ValidationError):
        chain.mark_resolved(chain.current_pending().step_id, ReviewerStatus.PENDING)


def test_reassign_appends_at_same_order() -> None:
    chain = _chain("A", "B")
    first = chain.current_pending()
    new = chain.reassign(first.step_id, "X")

    assert (new.sequence_order, new.reassigned_from) == (1, "A")
    assert chain.get(first.step_id).status == ReviewerStatus.REASSIGNED
    assert chain.current_pending().user_id == "X"
    assert len(chain) == 4
    assert chain.active_user_ids() == ["X", "B", "BOSS"]


def test_open_round_reuses_effective_actors() -> None:
    chain = _chain("A", "B")
    chain.reassign(chain.current_pending().step_id, "X")
    chain.mark_resolved(chain.current_pending().step_id, ReviewerStatus.REJECTED)

    added = chain.open_round()

    assert chain.current_round == 2
    assert [s.user_id for s in added] == ["X", "B", "BOSS"]
    assert all(s.status == ReviewerStatus.PENDING for s in added)
    assert chain.current_pending().user_id == "X"
    # round one stays as it was
    assert [s.status for s in chain.active_steps(1)] == [
        ReviewerStatus.REJECTED, ReviewerStatus.PENDING, ReviewerStatus.PENDING,
    ]


def test_closed_round_accepts_no_steps() -> None:
    chain = _chain("A")
    chain.open_round()
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="late", sequence_order=5, round=1))


def test_has_reviewers_and_final_approver() -> None:
    only_boss = _chain()
    assert not only_boss.has_reviewers()
    assert only_boss.final_approver().user_id == "BOSS"
    assert ReviewerChain().final_approver() is None


def test_restore_keeps_saved_chain_under_new_limits() -> None:
    saved = _chain("A", "B", "C").steps

    chain = ReviewerChain.restore(saved, max_reviewers=1, final_order=100)

    assert chain.final_order == 999
    assert chain.final_approver().user_id == "BOSS"
    assert chain.reassign(chain.current_pending().step_id, "X").user_id == "X"
    assert [s.user_id for s in chain.open_round()] == ["X", "B", "C", "BOSS"]
    with pytest.raises(ValidationError):
        chain.insert(ReviewerStep(user_id="late", sequence_order=50, round=2))

"""documents/enum/document_action.py
================================

Action identifiers written to the append-only action log.

Services should use these ids instead of hardcoding strings.
"""
from __future__ import annotations

from enum import Enum


class ActionType(str, Enum):
    """Supported workflow actions."""

    SUBMIT = "SUBMIT"
    APPROVE_REVIEW = "APPROVE_REVIEW"
    REJECT_REVIEW = "REJECT_REVIEW"
    REASSIGN_REVIEW = "REASSIGN_REVIEW"

    FINAL_APPROVE = "FINAL_APPROVE"
    FINAL_REJECT = "FINAL_REJECT"

    RESUBMIT = "RESUBMIT"
    COMMENT = "COMMENT"
    UPLOAD_REVISION = "UPLOAD_REVISION"

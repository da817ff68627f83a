"""SQLite implementation of DocumentRepository.

Lightweight repository - persistence and simple queries only.
Business logic is in the logic/services layer.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from documents.adapters.database_adapter import DatabaseAdapter
from documents.adapters.sqlite_adapter import SQLiteAdapter
from documents.enum.document_action import ActionType
from documents.enum.document_status import ContentKind, ReviewerStatus, WorkflowStatus
from documents.exceptions.errors import ConflictError, DocumentNotFoundError
from documents.logic.id_generator import IdGenerator
from documents.models.document_models import ActionLogEntry, DocumentRecord, ReviewerStep, utcnow
from documents.repository.repo_config import RepoConfig
from signature.models.signature_enums import PlacementKind
from signature.models.signature_placement import Placement

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    doc_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    author_id TEXT NOT NULL,
    content_kind TEXT NOT NULL,
    status TEXT NOT NULL,
    content_ref TEXT,
    body TEXT,
    next_actor_id TEXT,
    artifact_ref TEXT,
    approved_at TEXT,
    trashed_at TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_documents_next_actor ON documents(next_actor_id);
CREATE INDEX IF NOT EXISTS ix_documents_author ON documents(author_id, status);

CREATE TABLE IF NOT EXISTS reviewer_steps (
    step_id TEXT PRIMARY KEY,
    doc_id TEXT NOT NULL REFERENCES documents(doc_id),
    position INTEGER NOT NULL,
    user_id TEXT NOT NULL,
    sequence_order INTEGER NOT NULL,
    status TEXT NOT NULL,
    round INTEGER NOT NULL DEFAULT 1,
    acted_at TEXT,
    reassigned_from TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS action_log (
    entry_id TEXT PRIMARY KEY,
    doc_id TEXT NOT NULL REFERENCES documents(doc_id),
    ts_utc TEXT NOT NULL,
    actor_id TEXT NOT NULL,
    action TEXT NOT NULL,
    comment TEXT,
    details TEXT
);

CREATE TRIGGER IF NOT EXISTS action_log_no_update BEFORE UPDATE ON action_log
BEGIN
    SELECT RAISE(ABORT, 'action_log is append-only');
END;

CREATE TRIGGER IF NOT EXISTS action_log_no_delete BEFORE DELETE ON action_log
BEGIN
    SELECT RAISE(ABORT, 'action_log is append-only');
END;

CREATE TABLE IF NOT EXISTS placements (
    placement_id TEXT NOT NULL,
    doc_id TEXT NOT NULL REFERENCES documents(doc_id),
    position INTEGER NOT NULL,
    kind TEXT NOT NULL,
    image_ref TEXT,
    page_index INTEGER,
    x_pct REAL NOT NULL,
    y_pct REAL NOT NULL,
    width_pct REAL NOT NULL,
    height_pct REAL NOT NULL,
    PRIMARY KEY (doc_id, placement_id)
);
"""


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteDocumentRepository:
    """SQLite backend for documents.

    The whole aggregate (document row, reviewer steps, placements, new log
    entries) is written in one transaction guarded by the ``version``
    column.
    """

    def __init__(self, config: RepoConfig, *, db_adapter: Optional[DatabaseAdapter] = None) -> None:
        """
        Args:
            config:  Repository configuration
            db_adapter:  Database adapter (default: SQLiteAdapter)
        """
        self._cfg = config
        self._db = db_adapter or SQLiteAdapter(config.db_path)
        self._ensure_schema()
        self._id_gen = IdGenerator(self._db, config.id_prefix, config.id_pattern)

    # =========================================================================
    # Schema Management
    # =========================================================================

    def _ensure_schema(self) -> None:
        """Create database schema if not exists."""
        self._db.executescript(_SCHEMA)

    def close(self) -> None:
        self._db.close()

    def next_id(self) -> str:
        return self._id_gen.next_id()

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _doc_row(doc: DocumentRecord) -> Dict[str, Any]:
        return {
            "title": doc.title,
            "author_id": doc.author_id,
            "content_kind": doc.content_kind.value,
            "status": doc.status.value,
            "content_ref": doc.content_ref,
            "body": doc.body,
            "next_actor_id": doc.next_actor_id,
            "artifact_ref": doc.artifact_ref,
            "approved_at": _ts(doc.approved_at),
            "trashed_at": _ts(doc.trashed_at),
            "updated_at": _ts(doc.updated_at),
        }

    @staticmethod
    def _step_from_row(row: Dict[str, Any]) -> ReviewerStep:
        return ReviewerStep(
            step_id=row["step_id"],
            user_id=row["user_id"],
            sequence_order=int(row["sequence_order"]),
            status=ReviewerStatus(row["status"]),
            round=int(row["round"]),
            acted_at=_parse_ts(row["acted_at"]),
            reassigned_from=row["reassigned_from"],
            created_at=_parse_ts(row["created_at"]) or utcnow(),
        )

    @staticmethod
    def _entry_from_row(row: Dict[str, Any]) -> ActionLogEntry:
        return ActionLogEntry(
            entry_id=row["entry_id"],
            doc_id=row["doc_id"],
            actor_id=row["actor_id"],
            action=ActionType(row["action"]),
            comment=row["comment"],
            details=json.loads(row["details"] or "{}"),
            ts_utc=_parse_ts(row["ts_utc"]) or utcnow(),
        )

    @staticmethod
    def _placement_from_row(row: Dict[str, Any]) -> Placement:
        return Placement(
            placement_id=row["placement_id"],
            kind=PlacementKind(row["kind"]),
            image_ref=row["image_ref"],
            page_index=row["page_index"],
            x_pct=float(row["x_pct"]),
            y_pct=float(row["y_pct"]),
            width_pct=float(row["width_pct"]),
            height_pct=float(row["height_pct"]),
        )

    def _load(self, row: Dict[str, Any]) -> DocumentRecord:
        doc_id = row["doc_id"]
        steps = [
            self._step_from_row(r)
            for r in self._db.fetchall(
                "SELECT * FROM reviewer_steps WHERE doc_id=? ORDER BY round, position", (doc_id,))
        ]
        placements = [
            self._placement_from_row(r)
            for r in self._db.fetchall(
                "SELECT * FROM placements WHERE doc_id=? ORDER BY position", (doc_id,))
        ]
        return DocumentRecord(
            doc_id=doc_id,
            title=row["title"],
            author_id=row["author_id"],
            content_kind=ContentKind(row["content_kind"]),
            status=WorkflowStatus(row["status"]),
            content_ref=row["content_ref"],
            body=row["body"],
            placements=placements,
            steps=steps,
            log=self.history(doc_id),
            next_actor_id=row["next_actor_id"],
            artifact_ref=row["artifact_ref"],
            approved_at=_parse_ts(row["approved_at"]),
            trashed_at=_parse_ts(row["trashed_at"]),
            version=int(row["version"]),
            created_at=_parse_ts(row["created_at"]) or utcnow(),
            updated_at=_parse_ts(row["updated_at"]) or utcnow(),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        with self._db.snapshot():
            row = self._db.fetchone("SELECT * FROM documents WHERE doc_id=?", (doc_id,))
            return self._load(row) if row else None

    def exists(self, doc_id: str) -> bool:
        return self._db.fetchone("SELECT 1 AS x FROM documents WHERE doc_id=?", (doc_id,)) is not None

    def _list(self, where: str, params: tuple) -> List[DocumentRecord]:
        with self._db.snapshot():
            rows = self._db.fetchall(f"SELECT * FROM documents WHERE {where} ORDER BY updated_at DESC, doc_id", params)
            return [self._load(r) for r in rows]

    def list_awaiting(self, user_id: str) -> List[DocumentRecord]:
        return self._list("next_actor_id=? AND trashed_at IS NULL", (user_id,))

    def list_rejected(self, author_id: str) -> List[DocumentRecord]:
        return self._list("author_id=? AND status=? AND trashed_at IS NULL",
                          (author_id, WorkflowStatus.REJECTED.value))

    def list_trash(self, author_id: str) -> List[DocumentRecord]:
        return self._list("author_id=? AND trashed_at IS NOT NULL", (author_id,))

    def history(self, doc_id: str) -> List[ActionLogEntry]:
        rows = self._db.fetchall("SELECT * FROM action_log WHERE doc_id=? ORDER BY ts_utc, rowid", (doc_id,))
        return [self._entry_from_row(r) for r in rows]

    # =========================================================================
    # Persistence
    # =========================================================================

    def _write_children(self, doc: DocumentRecord) -> None:
        # unresolved steps dropped from the aggregate (chain reconfigured in DRAFT)
        keep = [s.step_id for s in doc.steps]
        marks = ",".join("?" * len(keep))
        where = "doc_id=? AND status='PENDING'" + (f" AND step_id NOT IN ({marks})" if keep else "")
        self._db.delete("reviewer_steps", where, (doc.doc_id, *keep))

        for pos, step in enumerate(doc.steps):
            # resolved steps are never rewritten
            self._db.execute(
                """
                INSERT INTO reviewer_steps
                    (step_id, doc_id, position, user_id, sequence_order, status, round,
                     acted_at, reassigned_from, created_at)
                VALUES (?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(step_id) DO UPDATE SET
                    status=excluded.status, acted_at=excluded.acted_at
                WHERE reviewer_steps.status = 'PENDING'
                """,
                (step.step_id, doc.doc_id, pos, step.user_id, step.sequence_order, step.status.value,
                 step.round, _ts(step.acted_at), step.reassigned_from, _ts(step.created_at)),
            )

        self._db.delete("placements", "doc_id=?", (doc.doc_id,))
        for pos, p in enumerate(doc.placements):
            self._db.insert("placements", {
                "placement_id": p.placement_id,
                "doc_id": doc.doc_id,
                "position": pos,
                "kind": p.kind.value,
                "image_ref": p.image_ref,
                "page_index": p.page_index,
                "x_pct": p.x_pct,
                "y_pct": p.y_pct,
                "width_pct": p.width_pct,
                "height_pct": p.height_pct,
            })

        for entry in doc.log:
            self._db.execute(
                "INSERT OR IGNORE INTO action_log(entry_id, doc_id, ts_utc, actor_id, action, comment, details) "
                "VALUES (?,?,?,?,?,?,?)",
                (entry.entry_id, doc.doc_id, _ts(entry.ts_utc), entry.actor_id, entry.action.value,
                 entry.comment, json.dumps(entry.details or {}, ensure_ascii=False)),
            )

    def add(self, doc: DocumentRecord) -> DocumentRecord:
        with self._db.transaction():
            row = self._doc_row(doc)
            row.update({"doc_id": doc.doc_id, "version": 1, "created_at": _ts(doc.created_at)})
            self._db.insert("documents", row)
            self._write_children(doc)
        doc.version = 1
        logger.debug("Inserted %s", doc.doc_id)
        return doc

    def save(self, doc: DocumentRecord, *, expected_version: int) -> DocumentRecord:
        doc.updated_at = utcnow()
        with self._db.transaction():
            row = self._doc_row(doc)
            row["version"] = expected_version + 1
            changed = self._db.update("documents", row, "doc_id=? AND version=?", (doc.doc_id, expected_version))
            if changed == 0:
                if not self.exists(doc.doc_id):
                    raise DocumentNotFoundError(doc.doc_id)
                raise ConflictError(f"{doc.doc_id} was modified concurrently (expected version {expected_version})")
            self._write_children(doc)
        doc.version = expected_version + 1
        return doc

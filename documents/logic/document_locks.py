"""Per-document serialization of workflow transitions."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from documents.exceptions.errors import ConflictError


class DocumentLocks:
    """
    One non-blocking lock per document id.

    A second mutation of a document that is already being mutated fails
    at once with ConflictError; different documents never wait on each
    other. Entries are dropped when no holder remains.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    @contextmanager
    def hold(self, doc_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(doc_id, threading.Lock())
            self._holders[doc_id] = self._holders.get(doc_id, 0) + 1
        acquired = lock.acquire(blocking=False)
        try:
            if not acquired:
                raise ConflictError(f"{doc_id} is being modified by another request")
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._holders[doc_id] -= 1
                if self._holders[doc_id] == 0:
                    del self._holders[doc_id]
                    del self._locks[doc_id]

    def is_locked(self, doc_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(doc_id)
        return bool(lock and lock.locked())

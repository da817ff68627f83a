"""Shared fixtures for the documents feature tests."""
from __future__ import annotations

from typing import Callable, Sequence

import pytest

from documents.adapters.filesystem_storage_adapter import FilesystemStorageAdapter
from documents.enum.document_status import ContentKind
from documents.logic.document_locks import DocumentLocks
from documents.logic.workflow_service import WorkflowService
from documents.models.document_models import DocumentRecord
from documents.repository.repo_config import RepoConfig
from documents.repository.sqlite_document_repository import SQLiteDocumentRepository
from documents.services.query_service import DocumentQueryService
from signature.logic.image_loader import ImageLoader
from signature.logic.pdf_signer import DocumentCompositor
from signature.tests.sample_content import image_bytes, pdf_bytes

AUTHOR = "alice"


@pytest.fixture
def storage(tmp_path) -> FilesystemStorageAdapter:
    return FilesystemStorageAdapter(tmp_path / "blobs")


@pytest.fixture
def repository(tmp_path):
    repo = SQLiteDocumentRepository(RepoConfig(db_path=str(tmp_path / "letters.db")))
    yield repo
    repo.close()


@pytest.fixture
def locks() -> DocumentLocks:
    return DocumentLocks()


@pytest.fixture
def compositor(storage) -> DocumentCompositor:
    return DocumentCompositor(ImageLoader(storage.fetch, max_workers=2))


@pytest.fixture
def make_service(repository, storage, compositor, locks) -> Callable[..., WorkflowService]:
    def _make(**options) -> WorkflowService:
        return WorkflowService(repository=repository, storage=storage, compositor=compositor,
                               locks=locks, **options)
    return _make


@pytest.fixture
def service(make_service) -> WorkflowService:
    return make_service()


@pytest.fixture
def queries(repository) -> DocumentQueryService:
    return DocumentQueryService(repository)


@pytest.fixture
def base_pdf_ref(storage) -> str:
    return storage.store(pdf_bytes(), suffix=".pdf")


@pytest.fixture
def signature_ref(storage) -> str:
    return storage.store(image_bytes("PNG"), suffix=".png")


@pytest.fixture
def gif_ref(storage) -> str:
    return storage.store(image_bytes("GIF"), suffix=".gif")


@pytest.fixture
def letter(service, base_pdf_ref) -> Callable[..., DocumentRecord]:
    """A configured, not yet submitted paginated letter."""
    def _letter(reviewers: Sequence[str] = ("A", "B"), approver: str = "C") -> DocumentRecord:
        doc = service.create_document(AUTHOR, "Offer letter", content_kind=ContentKind.PAGINATED,
                                      content_ref=base_pdf_ref)
        return service.configure_chain(doc.doc_id, AUTHOR, list(reviewers), approver)
    return _letter


@pytest.fixture
def blob_count(tmp_path) -> Callable[[], int]:
    def _count() -> int:
        return sum(1 for p in (tmp_path / "blobs").rglob("*") if p.is_file())
    return _count

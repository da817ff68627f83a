# documents/bootstrap.py
"""
Wires the documents and signature features from configuration.

    services = build_services()
    services.workflow.submit("LTR-2026-0001", "alice")
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.config.config_service import ConfigService, get_config_service
from documents.adapters.encryption import KeyRing
from documents.adapters.filesystem_storage_adapter import FilesystemStorageAdapter
from documents.adapters.storage_adapter import StorageAdapter
from documents.logic.workflow_service import WorkflowService
from documents.repository.repo_config import RepoConfig
from documents.repository.sqlite_document_repository import SQLiteDocumentRepository
from documents.services.query_service import DocumentQueryService
from signature.logic.coordinate_engine import PlacementCoordinateEngine
from signature.logic.image_loader import ImageLoader
from signature.logic.pdf_signer import DocumentCompositor

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: SQLiteDocumentRepository
    storage: StorageAdapter
    placement: PlacementCoordinateEngine
    compositor: DocumentCompositor
    workflow: WorkflowService
    queries: DocumentQueryService

    def close(self) -> None:
        self.repository.close()


def build_services(
    config: Optional[ConfigService] = None,
    *,
    storage: Optional[StorageAdapter] = None,
) -> Services:
    """Build the service graph; images are fetched from the same storage."""
    cfg = config or get_config_service()

    if storage is None:
        storage = FilesystemStorageAdapter(cfg.storage.root, keyring=KeyRing(cfg.storage.key_list))
    repository = SQLiteDocumentRepository(RepoConfig(
        db_path=str(cfg.database.path),
        id_prefix=cfg.workflow.id_prefix,
        id_pattern=cfg.workflow.id_pattern,
    ))
    compositor = DocumentCompositor(ImageLoader(storage.fetch, max_workers=cfg.compositor.fetch_workers))
    workflow = WorkflowService.from_config(cfg.workflow, repository=repository, storage=storage,
                                           compositor=compositor)
    logger.debug("Services ready (db=%s)", cfg.database.path)
    return Services(
        repository=repository,
        storage=storage,
        placement=PlacementCoordinateEngine.from_config(cfg.placement),
        compositor=compositor,
        workflow=workflow,
        queries=DocumentQueryService(repository),
    )

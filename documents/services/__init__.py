"""Services layer for documents module.

Read-side services on top of the repository.
"""

from documents.services.query_service import DocumentQueryService, PublicRecord

__all__ = [
    "DocumentQueryService",
    "PublicRecord",
]

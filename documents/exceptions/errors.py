"""Documents feature exceptions."""
from __future__ import annotations


class DocumentsError(Exception):
    """Base exception for documents feature."""


class DocumentNotFoundError(DocumentsError, LookupError):
    """Raised when a document id is unknown."""


class InvalidState(DocumentsError):
    """Raised when a transition is attempted from the wrong status."""


class AuthorizationError(DocumentsError):
    """Raised when the actor is not the authorized next actor or author."""


class ValidationError(DocumentsError, ValueError):
    """Raised for missing comments/reasons, bad chains or malformed placements."""


class ConflictError(DocumentsError):
    """Raised when a concurrent mutation of the same document won the race."""


class CompositionError(DocumentsError):
    """Raised when the base document of a final approval cannot be parsed."""


class OperationCancelledError(DocumentsError):
    """Raised when a final approval was cancelled before its artifact was committed."""

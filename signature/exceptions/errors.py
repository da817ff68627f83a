"""Signature feature exceptions (placement + compositing)."""
from __future__ import annotations

from typing import Optional


class SignatureError(Exception):
    """Base exception for the signature feature."""


class PlacementValidationError(SignatureError, ValueError):
    """A placement or capture input violates the coordinate model."""


class CompositionError(SignatureError):
    """The base document cannot be parsed; fatal for the whole composition."""


class PlacementSkipped(SignatureError):
    """A single placement could not be burned; composition continues."""

    reason = "skipped"

    def __init__(self, message: str, *, placement_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.placement_id = placement_id


class UnsupportedFormatError(PlacementSkipped):
    """Image bytes decode, but not as PNG or JPEG."""

    reason = "unsupported_format"


class ImageFetchError(PlacementSkipped):
    """Image bytes could not be retrieved or decoded."""

    reason = "unreadable_image"

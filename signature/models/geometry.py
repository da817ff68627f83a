"""
Value types for the placement coordinate model.

Capture space: origin top-left, y grows downward, units are native
(unscaled) page units. PDF space: origin bottom-left, y grows upward.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class PageSize:
    """Native, unscaled size of one page or of a continuous surface."""
    width: float
    height: float

    def __post_init__(self) -> None:
        if not (self.width > 0 and self.height > 0):
            # imported lazily to keep geometry free of package cycles
            from ..exceptions.errors import PlacementValidationError
            raise PlacementValidationError(
                f"Page size must be positive, got {self.width}x{self.height}"
            )


@dataclass(frozen=True)
class NormalizedPoint:
    """A position as fractions of the native page size (capture space)."""
    x_pct: float
    y_pct: float


@dataclass(frozen=True)
class NormalizedRect:
    x_pct: float
    y_pct: float
    width_pct: float
    height_pct: float


@dataclass(frozen=True)
class PixelRect:
    """Screen rectangle, origin top-left."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2.0, self.y + self.height / 2.0)


@dataclass(frozen=True)
class PdfRect:
    """Absolute rectangle in PDF points, origin bottom-left."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ItemSize:
    """Native size of a placed item, in the same units as the page."""
    width: float
    height: float

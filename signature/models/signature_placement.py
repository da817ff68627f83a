from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from .geometry import NormalizedRect
from .signature_enums import PlacementKind
from ..exceptions.errors import PlacementValidationError

# Rounding slack for the "far edge stays on the page" check.
EDGE_EPSILON = 1e-9


@dataclass(frozen=True)
class Placement:
    """
    A signature, stamp or QR marker positioned on a document surface.

    Coordinates are fractions of the native (unscaled) page, origin top-left,
    y downward. ``page_index`` is set only for paginated content; continuous
    content treats the whole surface as page 0.
    """
    kind: PlacementKind
    x_pct: float
    y_pct: float
    width_pct: float
    height_pct: float
    image_ref: Optional[str] = None
    page_index: Optional[int] = None
    placement_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def rect(self) -> NormalizedRect:
        return NormalizedRect(self.x_pct, self.y_pct, self.width_pct, self.height_pct)

    @property
    def effective_page(self) -> int:
        return self.page_index if self.page_index is not None else 0

    def with_page(self, page_index: Optional[int]) -> "Placement":
        return replace(self, page_index=page_index)

    # ---------------------------------------------------------------- checks
    def validate(self, *, paginated: Optional[bool] = None) -> "Placement":
        """Raise PlacementValidationError unless the record is well formed.

        ``paginated`` (when known) also checks the page index is present for
        paginated content.
        """
        values = (self.x_pct, self.y_pct, self.width_pct, self.height_pct)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            raise PlacementValidationError(f"Placement {self.placement_id}: coordinates must be finite numbers")
        if self.width_pct <= 0 or self.height_pct <= 0:
            raise PlacementValidationError(f"Placement {self.placement_id}: size must be positive")
        if self.x_pct < 0 or self.y_pct < 0:
            raise PlacementValidationError(f"Placement {self.placement_id}: position must not be negative")
        if self.x_pct + self.width_pct > 1 + EDGE_EPSILON or self.y_pct + self.height_pct > 1 + EDGE_EPSILON:
            raise PlacementValidationError(f"Placement {self.placement_id}: item extends past the page edge")

        if self.kind.carries_image and not (self.image_ref and str(self.image_ref).strip()):
            raise PlacementValidationError(f"Placement {self.placement_id}: {self.kind.value} requires an image reference")
        if not self.kind.carries_image and self.image_ref:
            raise PlacementValidationError(f"Placement {self.placement_id}: QR markers carry no image")

        if self.page_index is not None and self.page_index < 0:
            raise PlacementValidationError(f"Placement {self.placement_id}: page index must not be negative")
        if paginated is True and self.page_index is None:
            raise PlacementValidationError(f"Placement {self.placement_id}: paginated content needs a page index")
        if paginated is False and self.page_index not in (None, 0):
            raise PlacementValidationError(f"Placement {self.placement_id}: continuous content has a single page")
        return self

    # ---------------------------------------------------------- (de)serialise
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.placement_id,
            "kind": self.kind.value,
            "image_ref": self.image_ref,
            "page_index": self.page_index,
            "x_pct": self.x_pct,
            "y_pct": self.y_pct,
            "width_pct": self.width_pct,
            "height_pct": self.height_pct,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Placement":
        try:
            kind = PlacementKind(str(data["kind"]).strip().lower())
            page = data.get("page_index")
            return cls(
                placement_id=str(data.get("id") or uuid.uuid4()),
                kind=kind,
                image_ref=data.get("image_ref") or None,
                page_index=int(page) if page is not None else None,
                x_pct=float(data["x_pct"]),
                y_pct=float(data["y_pct"]),
                width_pct=float(data["width_pct"]),
                height_pct=float(data["height_pct"]),
            )
        except (KeyError, TypeError, ValueError) as ex:
            raise PlacementValidationError(f"Malformed placement record: {ex}") from ex

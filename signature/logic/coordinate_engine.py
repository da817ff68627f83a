"""
signature/logic/coordinate_engine.py
====================================

Converts pointer interactions on a rendered page into zoom-independent
placement records and back into geometry for any render context.

Everything here is pure: no UI state, no IO. The "item being placed" is
held by the caller and passed in explicitly.
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from ..exceptions.errors import PlacementValidationError
from ..models.geometry import (
    ItemSize,
    NormalizedPoint,
    NormalizedRect,
    PageSize,
    PdfRect,
    PixelRect,
    Point,
)
from ..models.signature_enums import PlacementKind
from ..models.signature_placement import Placement

DEFAULT_ITEM_SIZES: Dict[PlacementKind, ItemSize] = {
    PlacementKind.SIGNATURE: ItemSize(100.0, 40.0),
    PlacementKind.STAMP: ItemSize(60.0, 60.0),
    PlacementKind.QR_MARKER: ItemSize(50.0, 50.0),
}


def _check_scale(scale: float) -> float:
    s = float(scale)
    if not s > 0:
        raise PlacementValidationError(f"Scale factor must be positive, got {scale}")
    return s


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


# --------------------------------------------------------------------------- #
#  Forward: pointer -> normalized                                              #
# --------------------------------------------------------------------------- #
def capture_point(click: Point, viewer_origin: Point, scale: float, native: PageSize) -> NormalizedPoint:
    """Normalize a raw pointer position.

    ``click`` and ``viewer_origin`` are in the same pixel space (e.g. client
    coordinates); ``viewer_origin`` is the rendered page's top-left corner.
    """
    s = _check_scale(scale)
    x_unscaled = (click.x - viewer_origin.x) / s
    y_unscaled = (click.y - viewer_origin.y) / s
    return NormalizedPoint(x_unscaled / native.width, y_unscaled / native.height)


def place_item_centered(
    click: NormalizedPoint,
    item: ItemSize,
    native: PageSize,
    *,
    tolerance: float = 0.1,
) -> NormalizedRect:
    """Center an item of native size ``item`` on ``click``.

    The click must lie within ``[-tolerance, 1 + tolerance]`` on both axes;
    the resulting rectangle is then clamped so its far edges stay on the page.
    """
    if not (-tolerance <= click.x_pct <= 1 + tolerance and -tolerance <= click.y_pct <= 1 + tolerance):
        raise PlacementValidationError(
            f"Placement position ({click.x_pct:.3f}, {click.y_pct:.3f}) is outside the page bounds"
        )
    if item.width <= 0 or item.height <= 0:
        raise PlacementValidationError(f"Item size must be positive, got {item.width}x{item.height}")

    width_pct = item.width / native.width
    height_pct = item.height / native.height
    if width_pct > 1 or height_pct > 1:
        raise PlacementValidationError("Item is larger than the page")

    raw_x = click.x_pct - width_pct / 2.0
    raw_y = click.y_pct - height_pct / 2.0
    return NormalizedRect(
        x_pct=_clamp(raw_x, 0.0, 1.0 - width_pct),
        y_pct=_clamp(raw_y, 0.0, 1.0 - height_pct),
        width_pct=width_pct,
        height_pct=height_pct,
    )


# --------------------------------------------------------------------------- #
#  Inverse: normalized -> render / PDF geometry                               #
# --------------------------------------------------------------------------- #
def to_render_rect(
    rect: NormalizedRect | Placement,
    native: PageSize,
    scale: float,
    origin: Point = Point(0.0, 0.0),
) -> PixelRect:
    """Pixel rectangle (top-left origin) for drawing at ``scale``.

    ``origin`` is the page's top-left in the target pixel space; it defaults
    to page-local coordinates.
    """
    s = _check_scale(scale)
    r = rect.rect if isinstance(rect, Placement) else rect
    return PixelRect(
        x=origin.x + r.x_pct * native.width * s,
        y=origin.y + r.y_pct * native.height * s,
        width=r.width_pct * native.width * s,
        height=r.height_pct * native.height * s,
    )


def to_pdf_rect(
    rect: NormalizedRect | Placement,
    page: PageSize,
    page_origin: Point = Point(0.0, 0.0),
) -> PdfRect:
    """Absolute rectangle in PDF points with the vertical axis flipped.

    ``page_origin`` is the lower-left corner of the page's media box.
    """
    r = rect.rect if isinstance(rect, Placement) else rect
    abs_y = r.y_pct * page.height
    abs_h = r.height_pct * page.height
    return PdfRect(
        x=page_origin.x + r.x_pct * page.width,
        y=page_origin.y + page.height - abs_y - abs_h,
        width=r.width_pct * page.width,
        height=abs_h,
    )


# --------------------------------------------------------------------------- #
#  Viewer helpers                                                              #
# --------------------------------------------------------------------------- #
def fit_to_viewport(native: PageSize, viewport: PageSize) -> Tuple[float, Point]:
    """Scale and top-left offset that fit and center a page in a viewport."""
    scale = min(viewport.width / native.width, viewport.height / native.height)
    offx = (viewport.width - native.width * scale) / 2.0
    offy = (viewport.height - native.height * scale) / 2.0
    return scale, Point(offx, offy)


class PlacementCoordinateEngine:
    """Configured facade over the coordinate functions."""

    def __init__(
        self,
        *,
        edge_tolerance: float = 0.1,
        item_sizes: Optional[Mapping[PlacementKind, ItemSize]] = None,
        zoom_step: float = 0.2,
        min_scale: float = 0.4,
        max_scale: float = 3.0,
    ) -> None:
        if min_scale <= 0 or max_scale < min_scale:
            raise PlacementValidationError(f"Invalid zoom range [{min_scale}, {max_scale}]")
        self.edge_tolerance = float(edge_tolerance)
        self.item_sizes: Dict[PlacementKind, ItemSize] = dict(DEFAULT_ITEM_SIZES)
        if item_sizes:
            self.item_sizes.update(item_sizes)
        self.zoom_step = float(zoom_step)
        self.min_scale = float(min_scale)
        self.max_scale = float(max_scale)

    @classmethod
    def from_config(cls, cfg) -> "PlacementCoordinateEngine":
        """Build from a ``PlacementConfig`` section."""
        return cls(
            edge_tolerance=cfg.edge_tolerance,
            item_sizes={
                PlacementKind.SIGNATURE: ItemSize(cfg.signature_width, cfg.signature_height),
                PlacementKind.STAMP: ItemSize(cfg.stamp_width, cfg.stamp_height),
                PlacementKind.QR_MARKER: ItemSize(cfg.qr_marker_width, cfg.qr_marker_height),
            },
            zoom_step=cfg.zoom_step,
            min_scale=cfg.min_scale,
            max_scale=cfg.max_scale,
        )

    # ---- placement -----------------------------------------------------
    def capture_point(self, click: Point, viewer_origin: Point, scale: float, native: PageSize) -> NormalizedPoint:
        return capture_point(click, viewer_origin, scale, native)

    def place_item_centered(self, click: NormalizedPoint, item: ItemSize, native: PageSize) -> NormalizedRect:
        return place_item_centered(click, item, native, tolerance=self.edge_tolerance)

    def place(
        self,
        kind: PlacementKind,
        click: Point,
        viewer_origin: Point,
        scale: float,
        native: PageSize,
        *,
        image_ref: Optional[str] = None,
        page_index: Optional[int] = None,
        item_size: Optional[ItemSize] = None,
    ) -> Placement:
        """Full pointer-to-placement path for one click."""
        point = self.capture_point(click, viewer_origin, scale, native)
        rect = self.place_item_centered(point, item_size or self.item_sizes[kind], native)
        placement = Placement(
            kind=kind,
            image_ref=image_ref if kind.carries_image else None,
            page_index=page_index,
            x_pct=rect.x_pct,
            y_pct=rect.y_pct,
            width_pct=rect.width_pct,
            height_pct=rect.height_pct,
        )
        return placement.validate()

    def to_render_rect(self, rect, native: PageSize, scale: float, origin: Point = Point(0.0, 0.0)) -> PixelRect:
        return to_render_rect(rect, native, scale, origin)

    def to_pdf_rect(self, rect, page: PageSize, page_origin: Point = Point(0.0, 0.0)) -> PdfRect:
        return to_pdf_rect(rect, page, page_origin)

    # ---- zoom ----------------------------------------------------------
    def clamp_scale(self, scale: float) -> float:
        return _clamp(float(scale), self.min_scale, self.max_scale)

    def zoom_in(self, scale: float) -> float:
        return self.clamp_scale(scale + self.zoom_step)

    def zoom_out(self, scale: float) -> float:
        return self.clamp_scale(scale - self.zoom_step)

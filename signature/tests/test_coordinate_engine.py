"""Coordinate model: capture, centring, inverse transforms, zoom."""
from __future__ import annotations

import math

import pytest

from signature.exceptions.errors import PlacementValidationError
from signature.logic.coordinate_engine import (
    PlacementCoordinateEngine,
    capture_point,
    fit_to_viewport,
    place_item_centered,
    to_pdf_rect,
    to_render_rect,
)
from signature.models.geometry import ItemSize, NormalizedPoint, NormalizedRect, PageSize, Point
from signature.models.signature_enums import PlacementKind
from signature.models.signature_placement import Placement

LETTER = PageSize(612.0, 792.0)
ORIGIN = Point(37.0, 120.0)


def _click(page_x: float, page_y: float, scale: float) -> Point:
    """Where a viewer at ``scale`` shows the native page point (page_x, page_y)."""
    return Point(ORIGIN.x + page_x * scale, ORIGIN.y + page_y * scale)


def test_capture_is_zoom_invariant() -> None:
    reference = capture_point(_click(200, 300, 1.0), ORIGIN, 1.0, LETTER)
    for scale in (0.4, 0.6, 1.0, 1.37, 2.2, 3.0):
        p = capture_point(_click(200, 300, scale), ORIGIN, scale, LETTER)
        assert math.isclose(p.x_pct, reference.x_pct, abs_tol=1e-12)
        assert math.isclose(p.y_pct, reference.y_pct, abs_tol=1e-12)
    assert math.isclose(reference.x_pct, 200 / 612)
    assert math.isclose(reference.y_pct, 300 / 792)


def test_capture_rejects_non_positive_scale() -> None:
    with pytest.raises(PlacementValidationError):
        capture_point(Point(10, 10), ORIGIN, 0, LETTER)


def test_capture_then_render_reproduces_click_at_same_scale() -> None:
    item = ItemSize(100, 40)
    for scale in (0.5, 1.0, 1.8):
        click = _click(300, 400, scale)
        rect = place_item_centered(capture_point(click, ORIGIN, scale, LETTER), item, LETTER)
        drawn = to_render_rect(rect, LETTER, scale, ORIGIN)
        assert abs(drawn.center.x - click.x) <= 1
        assert abs(drawn.center.y - click.y) <= 1
        assert math.isclose(drawn.width, item.width * scale)
        assert math.isclose(drawn.height, item.height * scale)


def test_placed_items_never_cross_far_edges() -> None:
    item = ItemSize(100, 40)
    steps = [i / 20 for i in range(-2, 23)]  # -0.1 .. 1.1
    for x in steps:
        for y in steps:
            r = place_item_centered(NormalizedPoint(x, y), item, LETTER, tolerance=0.1)
            assert r.x_pct >= 0 and r.y_pct >= 0
            assert r.x_pct + r.width_pct <= 1 + 1e-12
            assert r.y_pct + r.height_pct <= 1 + 1e-12


def test_click_far_outside_page_is_refused() -> None:
    with pytest.raises(PlacementValidationError):
        place_item_centered(NormalizedPoint(1.2, 0.5), ItemSize(10, 10), LETTER, tolerance=0.1)
    with pytest.raises(PlacementValidationError):
        place_item_centered(NormalizedPoint(0.5, -0.25), ItemSize(10, 10), LETTER, tolerance=0.1)


def test_item_larger_than_page_is_refused() -> None:
    with pytest.raises(PlacementValidationError):
        place_item_centered(NormalizedPoint(0.5, 0.5), ItemSize(700, 10), LETTER)


def test_pdf_rect_flips_vertical_axis() -> None:
    r = to_pdf_rect(NormalizedRect(0.1, 0.8, 0.15, 0.05), LETTER)
    assert math.isclose(r.x, 61.2)
    assert math.isclose(r.y, 792 * 0.15)
    assert math.isclose(r.width, 91.8)
    assert math.isclose(r.height, 39.6)


def test_pdf_rect_honours_media_box_origin() -> None:
    r = to_pdf_rect(NormalizedRect(0.0, 0.0, 0.5, 0.5), LETTER, Point(10, 20))
    assert math.isclose(r.x, 10)
    assert math.isclose(r.y, 20 + 396)


def test_fit_to_viewport_centres_page() -> None:
    scale, offset = fit_to_viewport(LETTER, PageSize(1224, 900))
    assert math.isclose(scale, 900 / 792)
    assert math.isclose(offset.y, 0, abs_tol=1e-9)
    assert math.isclose(offset.x, (1224 - 612 * scale) / 2)


def test_engine_place_builds_validated_placement() -> None:
    engine = PlacementCoordinateEngine()
    p = engine.place(PlacementKind.SIGNATURE, _click(306, 396, 1.5), ORIGIN, 1.5, LETTER,
                     image_ref="sig.png", page_index=0)
    assert p.kind == PlacementKind.SIGNATURE
    assert p.page_index == 0
    assert math.isclose(p.width_pct, 100 / 612)
    assert math.isclose(p.x_pct + p.width_pct / 2, 0.5)

    qr = engine.place(PlacementKind.QR_MARKER, _click(306, 396, 1.0), ORIGIN, 1.0, LETTER,
                      image_ref="ignored.png")
    assert qr.image_ref is None


def test_engine_place_without_image_for_signature_fails() -> None:
    engine = PlacementCoordinateEngine()
    with pytest.raises(PlacementValidationError):
        engine.place(PlacementKind.STAMP, _click(100, 100, 1.0), ORIGIN, 1.0, LETTER)


def test_zoom_steps_are_clamped() -> None:
    engine = PlacementCoordinateEngine(zoom_step=0.2, min_scale=0.4, max_scale=3.0)
    assert math.isclose(engine.zoom_in(1.0), 1.2)
    assert engine.zoom_in(2.9) == 3.0
    assert engine.zoom_out(0.5) == 0.4
    assert engine.clamp_scale(10) == 3.0


def test_engine_from_config_uses_item_sizes() -> None:
    from core.config.config_service import PlacementConfig

    engine = PlacementCoordinateEngine.from_config(PlacementConfig(signature_width=150, signature_height=50))
    assert engine.item_sizes[PlacementKind.SIGNATURE] == ItemSize(150, 50)
    assert engine.item_sizes[PlacementKind.STAMP] == ItemSize(60, 60)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(kind=PlacementKind.SIGNATURE, image_ref=None),
        dict(kind=PlacementKind.QR_MARKER, image_ref="x.png"),
        dict(kind=PlacementKind.STAMP, image_ref="s.jpg", width_pct=0.0),
        dict(kind=PlacementKind.STAMP, image_ref="s.jpg", x_pct=0.95),
        dict(kind=PlacementKind.STAMP, image_ref="s.jpg", y_pct=float("nan")),
        dict(kind=PlacementKind.STAMP, image_ref="s.jpg", page_index=-1),
    ],
)
def test_malformed_placements_are_rejected(kwargs) -> None:
    values = dict(x_pct=0.1, y_pct=0.1, width_pct=0.1, height_pct=0.1, page_index=0)
    values.update(kwargs)
    with pytest.raises(PlacementValidationError):
        Placement(**values).validate()


def test_page_index_depends_on_content_shape() -> None:
    p = Placement(kind=PlacementKind.SIGNATURE, image_ref="sig.png", x_pct=0.1, y_pct=0.1,
                  width_pct=0.1, height_pct=0.1)
    p.validate(paginated=False)
    with pytest.raises(PlacementValidationError):
        p.validate(paginated=True)
    with pytest.raises(PlacementValidationError):
        p.with_page(2).validate(paginated=False)


def test_placement_record_survives_dict_form() -> None:
    p = Placement(kind=PlacementKind.QR_MARKER, x_pct=0.7, y_pct=0.05, width_pct=0.08, height_pct=0.06,
                  page_index=1)
    assert Placement.from_dict(p.to_dict()) == p
    with pytest.raises(PlacementValidationError):
        Placement.from_dict({"kind": "hologram", "x_pct": 0, "y_pct": 0, "width_pct": 1, "height_pct": 1})

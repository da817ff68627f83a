"""Compositor: PDF burn, overlay preview and HTML burn."""
from __future__ import annotations

import math
from io import BytesIO

import pytest
from pypdf import PdfReader, PdfWriter

from signature.tests.sample_content import pdf_bytes
from signature.exceptions.errors import CompositionError
from signature.logic.coordinate_engine import to_pdf_rect
from signature.logic.image_loader import ImageLoader
from signature.logic.pdf_signer import QR_PLACEHOLDER_TEXT, DocumentCompositor
from signature.models.geometry import NormalizedRect, PageSize
from signature.models.signature_enums import PlacementKind
from signature.models.signature_placement import Placement


@pytest.fixture
def compositor(fetch) -> DocumentCompositor:
    return DocumentCompositor(ImageLoader(fetch, max_workers=2))


def _sig(ref: str = "sig.png", page: int = 0, **geom) -> Placement:
    values = dict(x_pct=0.1, y_pct=0.8, width_pct=0.15, height_pct=0.05)
    values.update(geom)
    return Placement(kind=PlacementKind.SIGNATURE, image_ref=ref, page_index=page, **values)


def _qr(page: int = 0) -> Placement:
    return Placement(kind=PlacementKind.QR_MARKER, page_index=page, x_pct=0.8, y_pct=0.05,
                     width_pct=0.1, height_pct=0.08)


def test_page_sizes_read_from_media_box(compositor) -> None:
    sizes = compositor.page_sizes(pdf_bytes([(612, 792), (842, 595)]))
    assert sizes == [PageSize(612, 792), PageSize(842, 595)]


def test_signature_bottom_edge_lands_at_fifteen_percent(compositor, letter_pdf) -> None:
    result = compositor.burn_to_pdf(letter_pdf, [_sig()])

    assert result.warnings == []
    assert len(result.burned) == 1
    rect = result.burned[0].rect
    assert math.isclose(rect.y, 792 * 0.15)
    assert math.isclose(rect.x, 612 * 0.1)
    assert math.isclose(rect.height, 792 * 0.05)

    reader = PdfReader(BytesIO(result.content))
    assert len(reader.pages) == 1
    assert len(reader.pages[0].images) >= 1


def test_stamp_as_jpeg_is_embedded(compositor, letter_pdf) -> None:
    stamp = Placement(kind=PlacementKind.STAMP, image_ref="stamp.jpg", page_index=0,
                      x_pct=0.6, y_pct=0.7, width_pct=0.1, height_pct=0.08)
    result = compositor.burn_to_pdf(letter_pdf, [stamp])
    assert [b.kind for b in result.burned] == [PlacementKind.STAMP]


def test_unsupported_format_is_skipped_with_warning(compositor, letter_pdf) -> None:
    result = compositor.burn_to_pdf(letter_pdf, [_sig("logo.gif"), _sig(y_pct=0.5)])

    assert [w.reason for w in result.warnings] == ["unsupported_format"]
    assert len(result.burned) == 1
    assert len(PdfReader(BytesIO(result.content)).pages) == 1


def test_unreadable_images_and_bad_pages_are_skipped(compositor, letter_pdf) -> None:
    placements = [_sig("missing.png"), _sig("empty.png"), _sig(page=3)]
    result = compositor.burn_to_pdf(letter_pdf, placements)

    reasons = sorted(w.reason for w in result.warnings)
    assert reasons == ["page_out_of_range", "unreadable_image", "unreadable_image"]
    assert {w.placement_id for w in result.warnings} == {p.placement_id for p in placements}
    assert result.burned == []
    assert len(PdfReader(BytesIO(result.content)).pages) == 1


def test_oversized_image_is_skipped_with_warning(compositor, letter_pdf) -> None:
    huge, ok = _sig("huge.png"), _sig(y_pct=0.5)
    result = compositor.burn_to_pdf(letter_pdf, [huge, ok])

    assert [(w.placement_id, w.reason) for w in result.warnings] == [(huge.placement_id, "unreadable_image")]
    assert [b.placement_id for b in result.burned] == [ok.placement_id]

    html_result = compositor.burn_to_html("<p>Hi</p>", [huge.with_page(None), ok.with_page(None)])
    assert [w.reason for w in html_result.warnings] == ["unreadable_image"]
    assert len(html_result.burned) == 1


def test_unparseable_base_is_fatal(compositor) -> None:
    with pytest.raises(CompositionError):
        compositor.burn_to_pdf(b"this is not a pdf", [_sig()])


def test_qr_markers_are_reserved_not_burned(compositor, letter_pdf) -> None:
    qr = _qr()
    result = compositor.burn_to_pdf(letter_pdf, [qr])

    assert result.burned == []
    assert len(result.reserved) == 1
    assert result.reserved[0].placement_id == qr.placement_id
    assert result.reserved[0].rect == to_pdf_rect(qr, PageSize(612, 792))
    assert result.reserved[0].to_dict()["unit"] == "pt"
    assert len(PdfReader(BytesIO(result.content)).pages[0].images) == 0


def test_qr_placeholder_drawn_on_request(compositor, letter_pdf) -> None:
    result = compositor.burn_to_pdf(letter_pdf, [_qr()], draw_qr_placeholders=True)
    text = PdfReader(BytesIO(result.content)).pages[0].extract_text()
    assert QR_PLACEHOLDER_TEXT in text
    assert len(result.reserved) == 1


def test_multi_page_placements_use_their_own_page(compositor) -> None:
    base = pdf_bytes([(612, 792), (842, 595)])
    result = compositor.burn_to_pdf(base, [_sig(page=1)])
    rect = result.burned[0].rect
    assert result.burned[0].page_index == 1
    assert math.isclose(rect.y, 595 * 0.15)
    assert math.isclose(rect.width, 842 * 0.15)


def test_shifted_media_box_offsets_burned_rect(compositor, letter_pdf) -> None:
    writer = PdfWriter()
    writer.append(PdfReader(BytesIO(letter_pdf)))
    page = writer.pages[0]
    page.mediabox.lower_left = (50, 100)
    page.mediabox.upper_right = (662, 892)
    buf = BytesIO()
    writer.write(buf)

    result = compositor.burn_to_pdf(buf.getvalue(), [_sig()])
    rect = result.burned[0].rect
    assert math.isclose(rect.x, 50 + 61.2)
    assert math.isclose(rect.y, 100 + 792 * 0.15)


def test_overlay_matches_burned_position(compositor, letter_pdf) -> None:
    placements = [_sig(), _sig(ref="stamp.jpg", x_pct=0.55, y_pct=0.1, width_pct=0.2, height_pct=0.1)]
    native = PageSize(612, 792)
    burned = {b.placement_id: b.rect for b in compositor.burn_to_pdf(letter_pdf, placements).burned}

    for scale in (0.4, 1.0, 2.5):
        for item in compositor.render_overlay(placements, [native], scale):
            pdf = burned[item.placement_id]
            # screen rect back to PDF points: undo zoom, flip y
            assert abs(item.rect.x / scale - pdf.x) < 1e-6
            assert abs(native.height - (item.rect.y + item.rect.height) / scale - pdf.y) < 1e-6
            assert abs(item.rect.width / scale - pdf.width) < 1e-6
            assert abs(item.rect.height / scale - pdf.height) < 1e-6


def test_overlay_skips_bad_pages_and_marks_qr(compositor) -> None:
    items = compositor.render_overlay([_sig(page=4), _qr()], [PageSize(612, 792)], 1.0)
    assert len(items) == 1
    assert items[0].kind == PlacementKind.QR_MARKER
    assert items[0].placeholder_text == QR_PLACEHOLDER_TEXT
    assert items[0].placeholder_rgba == (0, 150, 50, 0.7)
    assert items[0].image_ref is None


def test_html_burn_positions_by_percent(compositor) -> None:
    sig = Placement(kind=PlacementKind.SIGNATURE, image_ref="sig.png", x_pct=0.1, y_pct=0.8,
                    width_pct=0.15, height_pct=0.05)
    qr = Placement(kind=PlacementKind.QR_MARKER, x_pct=0.85, y_pct=0.02, width_pct=0.1, height_pct=0.05)
    stray = _sig(page=2)

    result = compositor.burn_to_html("<p>Dear colleague,</p>", [sig, qr, stray])
    html = result.content.decode("utf-8")

    assert result.media_type == "text/html"
    assert "<p>Dear colleague,</p>" in html
    assert "data:image/png;base64," in html
    assert "left:10.0000%;top:80.0000%;width:15.0000%;height:5.0000%" in html
    assert f'data-qr-marker="{qr.placement_id}"' in html
    assert [w.reason for w in result.warnings] == ["page_out_of_range"]
    assert [b.placement_id for b in result.burned] == [sig.placement_id]
    assert [r.placement_id for r in result.reserved] == [qr.placement_id]
    assert result.burned[0].rect == NormalizedRect(0.1, 0.8, 0.15, 0.05)
    assert result.reserved[0].to_dict() == {
        "placement_id": qr.placement_id, "page_index": 0, "unit": "fraction",
        "x": 0.85, "y": 0.02, "width": 0.1, "height": 0.05,
    }

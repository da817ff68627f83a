"""
signature/logic/pdf_signer.py
=============================

Document compositor: burns signature and stamp images into a base
document at the positions recorded by the coordinate engine, and renders
the same placements as an on-screen overlay.

Both paths go through ``coordinate_engine`` so the preview and the burned
artifact agree for identical inputs.
"""
from __future__ import annotations

import base64
import html
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .coordinate_engine import to_pdf_rect, to_render_rect
from .image_loader import ImageLoader, LoadedImage
from ..exceptions.errors import CompositionError, PlacementSkipped
from ..models.geometry import NormalizedRect, PageSize, PdfRect, PixelRect, Point
from ..models.signature_enums import PlacementKind
from ..models.signature_placement import Placement

logger = logging.getLogger(__name__)

QR_PLACEHOLDER_RGBA: Tuple[int, int, int, float] = (0, 150, 50, 0.7)
QR_PLACEHOLDER_TEXT = "QR"

# mediabox differences below this are treated as equal (points)
_SIZE_SLACK = 0.5


@dataclass(frozen=True)
class CompositionWarning:
    placement_id: str
    reason: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"placement_id": self.placement_id, "reason": self.reason, "message": self.message}


# PDF output reports points; HTML output reports page fractions
BurnRect = Union[PdfRect, NormalizedRect]


@dataclass(frozen=True)
class BurnedItem:
    placement_id: str
    kind: PlacementKind
    page_index: int
    rect: BurnRect


@dataclass(frozen=True)
class MarkerReservation:
    """A QR marker position handed on to downstream marker generation."""
    placement_id: str
    page_index: int
    rect: BurnRect

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {"placement_id": self.placement_id, "page_index": self.page_index}
        if isinstance(self.rect, NormalizedRect):
            out.update(unit="fraction", x=self.rect.x_pct, y=self.rect.y_pct,
                       width=self.rect.width_pct, height=self.rect.height_pct)
        else:
            out.update(unit="pt", x=self.rect.x, y=self.rect.y,
                       width=self.rect.width, height=self.rect.height)
        return out


@dataclass
class CompositionResult:
    content: bytes
    media_type: str
    burned: List[BurnedItem] = field(default_factory=list)
    reserved: List[MarkerReservation] = field(default_factory=list)
    warnings: List[CompositionWarning] = field(default_factory=list)


@dataclass(frozen=True)
class OverlayItem:
    """One rectangle of the live preview, in page-local pixels."""
    placement_id: str
    kind: PlacementKind
    page_index: int
    rect: PixelRect
    image_ref: Optional[str] = None
    placeholder_text: Optional[str] = None
    placeholder_rgba: Optional[Tuple[int, int, int, float]] = None


class DocumentCompositor:
    """Burns placements into paginated (PDF) or continuous (HTML) content."""

    def __init__(self, image_loader: ImageLoader) -> None:
        self._images = image_loader

    # ------------------------------------------------------------------ #
    #  Page geometry                                                     #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _open(base: bytes) -> PdfReader:
        try:
            reader = PdfReader(BytesIO(base))
            if reader.is_encrypted:
                reader.decrypt("")
            if len(reader.pages) == 0:
                raise CompositionError("Base document has no pages")
            return reader
        except CompositionError:
            raise
        except Exception as ex:
            raise CompositionError(f"Base document cannot be parsed: {ex}") from ex

    @staticmethod
    def _page_box(page) -> Tuple[PageSize, Point]:
        box = page.mediabox
        return PageSize(float(box.width), float(box.height)), Point(float(box.left), float(box.bottom))

    @classmethod
    def page_sizes(cls, base: bytes) -> List[PageSize]:
        """Native size of every page (PDF points), read once per document."""
        reader = cls._open(base)
        return [cls._page_box(p)[0] for p in reader.pages]

    # ------------------------------------------------------------------ #
    #  Live preview                                                      #
    # ------------------------------------------------------------------ #
    @staticmethod
    def render_overlay(
        placements: Sequence[Placement],
        page_sizes: Sequence[PageSize],
        scale: float,
    ) -> List[OverlayItem]:
        """Screen rectangles for ``placements`` at ``scale``; no side effects.

        Placements pointing at a page outside ``page_sizes`` are left out.
        """
        items: List[OverlayItem] = []
        for p in placements:
            idx = p.effective_page
            if not 0 <= idx < len(page_sizes):
                continue
            rect = to_render_rect(p, page_sizes[idx], scale)
            if p.kind == PlacementKind.QR_MARKER:
                items.append(OverlayItem(p.placement_id, p.kind, idx, rect,
                                         placeholder_text=QR_PLACEHOLDER_TEXT,
                                         placeholder_rgba=QR_PLACEHOLDER_RGBA))
            else:
                items.append(OverlayItem(p.placement_id, p.kind, idx, rect, image_ref=p.image_ref))
        return items

    # ------------------------------------------------------------------ #
    #  Paginated content                                                 #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _make_overlay(
        page_w: float,
        page_h: float,
        page_origin: Point,
        items: Sequence[Tuple[Placement, Optional[LoadedImage], PdfRect]],
        warnings: List[CompositionWarning],
    ) -> Tuple[bytes, List[Placement]]:
        """
        Builds one overlay page (same size as the target page) holding every
        image for that page. Returns the PDF bytes and the placements drawn.
        """
        buf = BytesIO()
        # overlay coordinates are relative to the mediabox corner
        c = canvas.Canvas(buf, pagesize=(page_w, page_h))
        drawn: List[Placement] = []
        for placement, image, rect in items:
            x, y = rect.x - page_origin.x, rect.y - page_origin.y
            try:
                if image is None:
                    r, g, b, a = QR_PLACEHOLDER_RGBA
                    c.saveState()
                    c.setFillColorRGB(r / 255.0, g / 255.0, b / 255.0, alpha=a)
                    c.rect(x, y, rect.width, rect.height, stroke=0, fill=1)
                    c.setFillColorRGB(1, 1, 1)
                    c.setFont("Helvetica-Bold", max(6.0, min(rect.width, rect.height) / 3.0))
                    c.drawCentredString(x + rect.width / 2.0, y + rect.height / 2.0 - 3, QR_PLACEHOLDER_TEXT)
                    c.restoreState()
                else:
                    c.drawImage(ImageReader(image.open()), x, y, width=rect.width, height=rect.height, mask="auto")
                drawn.append(placement)
            except Exception as ex:
                logger.warning("Skipping placement %s: embedding failed: %s", placement.placement_id, ex)
                warnings.append(CompositionWarning(placement.placement_id, "embed_failed", str(ex)))
        c.save()
        return buf.getvalue(), drawn

    def burn_to_pdf(
        self,
        base: bytes,
        placements: Sequence[Placement],
        page_sizes: Optional[Sequence[PageSize]] = None,
        *,
        draw_qr_placeholders: bool = False,
    ) -> CompositionResult:
        """
        Embeds SIGNATURE/STAMP images at their placements and returns the new
        PDF. QR markers are reserved, not drawn, unless ``draw_qr_placeholders``
        asks for a flat preview box. A failing placement is skipped and
        reported; only an unparseable base document raises.
        """
        reader = self._open(base)
        boxes = [self._page_box(p) for p in reader.pages]
        if page_sizes is not None:
            for idx, (given, (actual, _)) in enumerate(zip(page_sizes, boxes)):
                if abs(given.width - actual.width) > _SIZE_SLACK or abs(given.height - actual.height) > _SIZE_SLACK:
                    logger.warning("Page %d: supplied size %sx%s differs from media box %sx%s; using media box",
                                   idx, given.width, given.height, actual.width, actual.height)

        result = CompositionResult(content=b"", media_type="application/pdf")
        per_page: Dict[int, List[Tuple[Placement, Optional[LoadedImage], PdfRect]]] = defaultdict(list)

        valid: List[Placement] = []
        for p in placements:
            idx = p.effective_page
            if not 0 <= idx < len(boxes):
                msg = f"page {idx} is outside the document ({len(boxes)} pages)"
                logger.warning("Skipping placement %s: %s", p.placement_id, msg)
                result.warnings.append(CompositionWarning(p.placement_id, "page_out_of_range", msg))
                continue
            valid.append(p)

        images = self._images.load_many(p.image_ref for p in valid if p.kind.carries_image and p.image_ref)

        for p in valid:
            idx = p.effective_page
            size, origin = boxes[idx]
            rect = to_pdf_rect(p, size, origin)
            if p.kind == PlacementKind.QR_MARKER:
                result.reserved.append(MarkerReservation(p.placement_id, idx, rect))
                if draw_qr_placeholders:
                    per_page[idx].append((p, None, rect))
                continue
            loaded = images.get(p.image_ref or "")
            if not isinstance(loaded, LoadedImage):
                err = loaded if isinstance(loaded, PlacementSkipped) else PlacementSkipped("no image reference")
                logger.warning("Skipping placement %s: %s", p.placement_id, err)
                result.warnings.append(CompositionWarning(p.placement_id, err.reason, str(err)))
                continue
            per_page[idx].append((p, loaded, rect))

        writer = PdfWriter()
        for idx, page in enumerate(reader.pages):
            items = per_page.get(idx)
            if items:
                size, origin = boxes[idx]
                overlay_pdf, drawn = self._make_overlay(size.width, size.height, origin, items, result.warnings)
                if drawn:
                    overlay_page = PdfReader(BytesIO(overlay_pdf)).pages[0]
                    page.merge_translated_page(overlay_page, origin.x, origin.y)
                    for placement in drawn:
                        if placement.kind.carries_image:
                            rect = next(r for pl, _, r in items if pl is placement)
                            result.burned.append(BurnedItem(placement.placement_id, placement.kind, idx, rect))
            writer.add_page(page)

        out = BytesIO()
        writer.write(out)
        result.content = out.getvalue()
        logger.info("Burned %d placement(s), reserved %d marker(s), %d warning(s)",
                    len(result.burned), len(result.reserved), len(result.warnings))
        return result

    # ------------------------------------------------------------------ #
    #  Continuous content                                                #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _pct(v: float) -> str:
        return f"{v * 100:.4f}%"

    def _box_style(self, p: Placement) -> str:
        return (f"position:absolute;left:{self._pct(p.x_pct)};top:{self._pct(p.y_pct)};"
                f"width:{self._pct(p.width_pct)};height:{self._pct(p.height_pct)}")

    def burn_to_html(self, body: str, placements: Sequence[Placement]) -> CompositionResult:
        """
        Wraps a rendered rich-text body in a positioned container and lays the
        placements over it. Images are inlined as data URIs so the artifact is
        self-contained.
        """
        result = CompositionResult(content=b"", media_type="text/html")
        parts: List[str] = [f'<div class="letterflow-document" style="position:relative">', body or ""]

        usable: List[Placement] = []
        for p in placements:
            if p.effective_page != 0:
                msg = f"continuous content has no page {p.effective_page}"
                logger.warning("Skipping placement %s: %s", p.placement_id, msg)
                result.warnings.append(CompositionWarning(p.placement_id, "page_out_of_range", msg))
                continue
            usable.append(p)

        images = self._images.load_many(p.image_ref for p in usable if p.kind.carries_image and p.image_ref)
        for p in usable:
            style = self._box_style(p)
            if p.kind == PlacementKind.QR_MARKER:
                r, g, b, a = QR_PLACEHOLDER_RGBA
                parts.append(
                    f'<div data-qr-marker="{html.escape(p.placement_id)}" style="{style};'
                    f'background-color:rgba({r},{g},{b},{a});color:white;font-weight:bold;'
                    f'border:2px dashed white;display:flex;align-items:center;justify-content:center">'
                    f'{QR_PLACEHOLDER_TEXT}</div>'
                )
                result.reserved.append(MarkerReservation(
                    p.placement_id, 0, NormalizedRect(p.x_pct, p.y_pct, p.width_pct, p.height_pct)))
                continue
            loaded = images.get(p.image_ref or "")
            if not isinstance(loaded, LoadedImage):
                err = loaded if isinstance(loaded, PlacementSkipped) else PlacementSkipped("no image reference")
                logger.warning("Skipping placement %s: %s", p.placement_id, err)
                result.warnings.append(CompositionWarning(p.placement_id, err.reason, str(err)))
                continue
            mime = "image/png" if loaded.format.value == "PNG" else "image/jpeg"
            data_uri = f"data:{mime};base64,{base64.b64encode(loaded.data).decode('ascii')}"
            parts.append(
                f'<img src="{data_uri}" alt="{p.kind.value}" data-placement-id="{html.escape(p.placement_id)}" '
                f'style="{style}">'
            )
            result.burned.append(BurnedItem(p.placement_id, p.kind, 0,
                                            NormalizedRect(p.x_pct, p.y_pct, p.width_pct, p.height_pct)))
        parts.append("</div>")
        result.content = "".join(parts).encode("utf-8")
        return result

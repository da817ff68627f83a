# signature/models/signature_enums.py
from __future__ import annotations
from enum import Enum


class PlacementKind(str, Enum):
    """What a placement puts on the document surface."""
    SIGNATURE = "signature"
    STAMP = "stamp"
    QR_MARKER = "qr_marker"   # position reservation, resolved downstream

    @property
    def carries_image(self) -> bool:
        return self is not PlacementKind.QR_MARKER


class ImageFormat(str, Enum):
    """Raster formats the compositor can embed."""
    PNG = "PNG"
    JPEG = "JPEG"

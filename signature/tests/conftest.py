"""Shared fixtures for the signature feature tests."""
from __future__ import annotations

from typing import Dict

import pytest

from signature.tests.sample_content import image_bytes, oversized_png, pdf_bytes


@pytest.fixture
def png() -> bytes:
    return image_bytes("PNG")


@pytest.fixture
def jpeg() -> bytes:
    return image_bytes("JPEG")


@pytest.fixture
def gif() -> bytes:
    return image_bytes("GIF")


@pytest.fixture(scope="session")
def huge_png() -> bytes:
    return oversized_png()


@pytest.fixture
def letter_pdf() -> bytes:
    return pdf_bytes()


@pytest.fixture
def blobs(png, jpeg, gif, huge_png) -> Dict[str, bytes]:
    return {"sig.png": png, "stamp.jpg": jpeg, "logo.gif": gif, "empty.png": b"", "huge.png": huge_png}


@pytest.fixture
def fetch(blobs):
    def _fetch(ref: str) -> bytes:
        if ref not in blobs:
            raise FileNotFoundError(ref)
        return blobs[ref]
    return _fetch

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Dict, Iterable, Union

from PIL import Image

from ..exceptions.errors import ImageFetchError, PlacementSkipped, UnsupportedFormatError
from ..models.signature_enums import ImageFormat

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[str], bytes]


@dataclass(frozen=True)
class LoadedImage:
    """Decoded raster ready for embedding."""
    ref: str
    data: bytes
    format: ImageFormat
    width: int
    height: int

    def open(self) -> Image.Image:
        img = Image.open(BytesIO(self.data))
        # PNG keeps its alpha channel for the overlay mask
        return img.convert("RGBA") if self.format == ImageFormat.PNG else img.convert("RGB")


def sniff_image(ref: str, data: bytes) -> LoadedImage:
    """Detect the raster format from content, never from the file name."""
    if not data:
        raise ImageFetchError(f"Image {ref!r} is empty")
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = (img.format or "").upper()
            width, height = img.size
            # checked before decoding; Pillow only warns below twice its limit
            limit = Image.MAX_IMAGE_PIXELS
            if limit and width * height > limit:
                raise ImageFetchError(f"Image {ref!r} is too large ({width}x{height} pixels)")
            img.load()
    except ImageFetchError:
        raise
    except Exception as ex:
        raise ImageFetchError(f"Image {ref!r} cannot be decoded: {ex}") from ex
    try:
        image_format = ImageFormat(fmt)
    except ValueError:
        raise UnsupportedFormatError(f"Image {ref!r} is {fmt or 'unknown'}; only PNG and JPEG are supported") from None
    return LoadedImage(ref=ref, data=data, format=image_format, width=width, height=height)


class ImageLoader:
    """Fetches and sniffs placement images, several at a time."""

    def __init__(self, fetch: ImageFetcher, *, max_workers: int = 4) -> None:
        self._fetch = fetch
        self._max_workers = max(1, int(max_workers))

    def load(self, ref: str) -> LoadedImage:
        try:
            data = self._fetch(ref)
        except PlacementSkipped:
            raise
        except Exception as ex:
            raise ImageFetchError(f"Image {ref!r} could not be fetched: {ex}") from ex
        return sniff_image(ref, data)

    def load_many(self, refs: Iterable[str]) -> Dict[str, Union[LoadedImage, PlacementSkipped]]:
        """Load each distinct reference once; failures are returned, not raised."""
        unique = list(dict.fromkeys(refs))
        if not unique:
            return {}

        def _one(ref: str) -> Union[LoadedImage, PlacementSkipped]:
            try:
                return self.load(ref)
            except PlacementSkipped as ex:
                return ex

        workers = min(self._max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="image-fetch") as pool:
            results = list(pool.map(_one, unique))
        return dict(zip(unique, results))

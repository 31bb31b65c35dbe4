"""
Image helpers: output normalisation, inline previews and upload validation.

Pillow does the pixel work; everything CPU bound is pushed to a worker
thread so the event loop keeps polling other predictions.
"""

import asyncio
import base64
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import NormalizationFailed

OUTPUT_FORMAT = "PNG"
OUTPUT_EXTENSION = "png"
OUTPUT_MIME = "image/png"


def normalize_image(data: bytes, size: Tuple[int, int]) -> bytes:
    """
    Resize `data` to exactly `size` (width, height) and re-encode as PNG.

    Cover semantics: the image is scaled until both sides fill the target,
    then the excess is cropped around the centre. No letterboxing.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            fitted = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
            out = BytesIO()
            fitted.save(out, format=OUTPUT_FORMAT)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise NormalizationFailed(f"Could not normalize image to {size[0]}x{size[1]}: {e}") from e


async def normalize_image_async(data: bytes, size: Tuple[int, int]) -> bytes:
    return await asyncio.to_thread(normalize_image, data, size)


def to_data_url(data: bytes, mime: str = OUTPUT_MIME) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def validate_image(data: bytes) -> Tuple[int, int]:
    """Check that `data` is a decodable image, returning its (width, height)."""
    if not data:
        raise NormalizationFailed("Uploaded artwork is empty")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
            return img.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise NormalizationFailed(f"Uploaded artwork is not a valid image: {e}") from e

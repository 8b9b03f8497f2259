from __future__ import annotations

import io
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps

from .bitmap import BLACK, WHITE, PackedBitmap, PixelGrid

DEFAULT_SIZE = 128
DEFAULT_THRESHOLD = 128

Array = np.ndarray


def _flatten_alpha(img: Image.Image) -> Image.Image:
    # Transparent regions become white background, not black ink
    if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
        rgba = img.convert("RGBA")
        white = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(white, rgba)
    return img


def to_greyscale(img: Image.Image) -> Image.Image:
    return _flatten_alpha(img).convert("L")


def fit_contain(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Fit inside `size` keeping aspect ratio, centred on a white letterbox."""
    if img.size == size:
        return img
    return ImageOps.pad(img, size, method=Image.LANCZOS, color=WHITE)


def threshold(arr: Array, value: int = DEFAULT_THRESHOLD) -> Array:
    """Samples >= value become white (255), the rest black (0)."""
    v = int(max(0, min(WHITE, value)))
    a8 = np.asarray(arr)
    if a8.dtype != np.uint8:
        a8 = np.clip(a8, 0, WHITE).astype(np.uint8)
    return np.where(a8 >= v, WHITE, BLACK).astype(np.uint8)


def grid_from_image(
    img: Image.Image,
    size: int | Tuple[int, int] = DEFAULT_SIZE,
    threshold_value: int = DEFAULT_THRESHOLD,
) -> PixelGrid:
    """
    Prepare a decoded image for the encoder: greyscale, fit to size, threshold.

    Args:
        img: Any Pillow image
        size: Target edge length or (width, height)
        threshold_value: Luminance cut-off; darker samples become black

    Returns:
        PixelGrid: samples are exactly 0 or 255
    """
    target = (size, size) if isinstance(size, int) else tuple(size)
    grey = fit_contain(to_greyscale(img), target)  # type: ignore[arg-type]
    arr = np.array(grey, dtype=np.uint8)
    return PixelGrid.from_array(threshold(arr, threshold_value))


def grid_from_bytes(
    data: bytes,
    size: int | Tuple[int, int] = DEFAULT_SIZE,
    threshold_value: int = DEFAULT_THRESHOLD,
) -> PixelGrid:
    """Decode an encoded image (PNG, JPEG, ...) and prepare it as a grid."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return grid_from_image(img, size, threshold_value)


def bitmap_to_image(bitmap: PackedBitmap, scale: int = 1) -> Image.Image:
    """Render a packed bitmap as black-on-white greyscale, e.g. for previews."""
    if scale <= 0:
        raise ValueError(f"scale must be > 0, got {scale}")
    arr = np.where(bitmap.to_mask(), BLACK, WHITE).astype(np.uint8)
    if scale > 1:
        arr = np.kron(arr, np.ones((scale, scale), dtype=np.uint8))
    return Image.fromarray(arr)

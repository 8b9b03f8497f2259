"""
Bitmap serializers.

- to_hex_string: compact "0xHH, 0xHH, ..." form pushed over the serial link
- to_c_header: firmware header with width/height defines and a PROGMEM array
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from .bitmap import PackedBitmap
from .validation import validate_header_options

logger = logging.getLogger(__name__)

DEFAULT_VAR_NAME = "qr_bitmap"
DEFAULT_WRAP = 12


def hex_tokens(data: Iterable[int]) -> List[str]:
    """Format bytes as lower-case `0xhh` tokens."""
    return [f"0x{b:02x}" for b in data]


def to_hex_string(bitmap: PackedBitmap) -> str:
    return ", ".join(hex_tokens(bitmap.data))


def to_c_header(
    bitmap: PackedBitmap, var_name: str = DEFAULT_VAR_NAME, wrap: int = DEFAULT_WRAP
) -> str:
    """
    Render a bitmap as a C header block.

    Every token is followed by ", " and a newline is inserted after every
    `wrap`-th token, so the array body keeps the layout expected by the
    firmware build:

        #define qr_bitmap_width 8
        #define qr_bitmap_height 1
        static const unsigned char qr_bitmap[] PROGMEM = {
        0x80, };

    Raises:
        HeaderFormatError: If var_name is not a C identifier or wrap <= 0
    """
    validate_header_options(var_name, wrap)

    parts = [
        f"#define {var_name}_width {bitmap.width}\n",
        f"#define {var_name}_height {bitmap.height}\n",
        f"static const unsigned char {var_name}[] PROGMEM = {{\n",
    ]
    for i, token in enumerate(hex_tokens(bitmap.data), 1):
        parts.append(f"{token}, ")
        if i % wrap == 0:
            parts.append("\n")
    parts.append("};\n")
    return "".join(parts)


def write_header(
    path: str | Path,
    bitmap: PackedBitmap,
    var_name: str = DEFAULT_VAR_NAME,
    wrap: int = DEFAULT_WRAP,
) -> Path:
    """Write the C header for `bitmap` to `path` and return the path."""
    p = Path(path)
    p.write_text(to_c_header(bitmap, var_name, wrap), encoding="utf-8")
    logger.info(
        "Wrote %s (%dx%d, %d bytes) to %s",
        var_name,
        bitmap.width,
        bitmap.height,
        len(bitmap.data),
        p,
    )
    return p

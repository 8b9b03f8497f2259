"""
Pure 1-bit Bitmap Encoding

This module contains the PixelGrid and PackedBitmap types and the encode/decode
functions converting between them. It has no I/O dependencies.

Packed format: row-major, 8 pixels/byte, MSB first. Every row starts on a fresh
byte, so a row is `ceil(width / 8)` bytes and the unused low bits of the last
byte in a row are always zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np

from .validation import (
    BitmapValidationError,
    GridValidationError,
    row_stride,
    validate_bitmap_data_size,
    validate_dimensions,
    validate_row_padding,
    validate_sample_count,
)

BLACK = 0
WHITE = 255

ForegroundPredicate = Callable[[int], bool]


def is_black(sample: int) -> bool:
    """Default foreground test: only a fully black (0) sample is drawn."""
    return sample == BLACK


def below(threshold: int) -> ForegroundPredicate:
    """Foreground predicate for greyscale data: samples darker than threshold."""
    t = int(threshold)

    def predicate(sample: int) -> bool:
        return sample < t

    return predicate


@dataclass(frozen=True)
class PixelGrid:
    """
    Immutable W x H grid of luminance samples (0-255), row-major.

    Usually produced by gochi.imaging after resize + threshold, so samples are
    either 0 or 255, but any value in range is accepted.
    """

    width: int
    height: int
    samples: bytes

    def __post_init__(self) -> None:
        validate_dimensions(self.width, self.height)
        if not isinstance(self.samples, bytes):
            try:
                object.__setattr__(self, "samples", bytes(self.samples))
            except (TypeError, ValueError) as e:
                raise GridValidationError(f"Invalid samples: {e}") from e
        validate_sample_count(len(self.samples), self.width, self.height)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[int]]) -> PixelGrid:
        """Build a grid from an iterable of equal-length rows."""
        materialized = [list(row) for row in rows]
        if not materialized or not materialized[0]:
            raise GridValidationError("Grid must have at least one row and column")
        width = len(materialized[0])
        for y, row in enumerate(materialized):
            if len(row) != width:
                raise GridValidationError(
                    f"Row {y} has {len(row)} samples, expected {width}"
                )
        flat = [v for row in materialized for v in row]
        return cls(width, len(materialized), flat)  # type: ignore[arg-type]

    @classmethod
    def from_array(cls, arr: np.ndarray) -> PixelGrid:
        """Build a grid from a 2D array of shape (height, width)."""
        a = np.asarray(arr)
        if a.ndim != 2:
            raise GridValidationError(f"Expected a 2D array, got shape {a.shape}")
        if a.size and (int(a.min()) < 0 or int(a.max()) > 255):
            raise GridValidationError("Samples must be in range 0-255")
        h, w = a.shape
        return cls(w, h, a.astype(np.uint8).tobytes())

    def to_array(self) -> np.ndarray:
        """Return a read-only uint8 view of shape (height, width)."""
        return np.frombuffer(self.samples, dtype=np.uint8).reshape(
            (self.height, self.width)
        )

    def sample(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x},{y}) outside {self.width}x{self.height} grid")
        return self.samples[y * self.width + x]


@dataclass(frozen=True)
class PackedBitmap:
    """
    Packed 1-bit bitmap with its originating dimensions.

    Bit (y, x) lives in byte `y * stride + x // 8` at bit position `7 - x % 8`.
    """

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise BitmapValidationError(
                f"Bitmap dimensions must be positive, got ({self.width}x{self.height})"
            )
        if not isinstance(self.data, bytes):
            try:
                object.__setattr__(self, "data", bytes(self.data))
            except (TypeError, ValueError) as e:
                raise BitmapValidationError(f"Invalid bitmap data: {e}") from e
        validate_bitmap_data_size(len(self.data), self.width, self.height)
        validate_row_padding(self.data, self.width, self.height)

    @property
    def stride(self) -> int:
        return row_stride(self.width)

    def row(self, y: int) -> bytes:
        """Packed bytes of row y."""
        if not (0 <= y < self.height):
            raise IndexError(f"Row {y} outside bitmap of height {self.height}")
        start = y * self.stride
        return self.data[start : start + self.stride]

    def pixel(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x},{y}) outside {self.width}x{self.height} bitmap")
        return bool(self.data[y * self.stride + x // 8] & (1 << (7 - x % 8)))

    def to_mask(self) -> np.ndarray:
        """Unpack to a boolean array of shape (height, width)."""
        arr = np.frombuffer(self.data, dtype=np.uint8).reshape(
            (self.height, self.stride)
        )
        bits = np.unpackbits(arr, axis=1, bitorder="big")[:, : self.width]
        return bits.astype(bool, copy=False)


def encode(
    grid: PixelGrid, is_foreground: ForegroundPredicate = is_black
) -> PackedBitmap:
    """
    Pack a grid into a row-major, MSB-first 1-bit bitmap.

    The predicate is evaluated once per possible sample value (0-255) to build a
    lookup table, so it must be a pure function of the sample.

    Args:
        grid: Thresholded pixel grid
        is_foreground: Returns True for samples that become set bits

    Returns:
        PackedBitmap: `grid.height * ceil(grid.width / 8)` bytes
    """
    lut = np.fromiter(
        (bool(is_foreground(v)) for v in range(256)), dtype=bool, count=256
    )
    mask = lut[grid.to_array()]
    # packbits zero-pads each row along axis 1 up to the byte boundary
    data = np.packbits(mask, axis=1, bitorder="big").tobytes()
    return PackedBitmap(grid.width, grid.height, data)


def decode(
    bitmap: PackedBitmap, foreground: int = BLACK, background: int = WHITE
) -> PixelGrid:
    """
    Expand a packed bitmap back into a grid.

    Set bits become `foreground` samples, clear bits `background` samples. With
    the defaults, `encode(decode(b)) == b` for any bitmap `b`.
    """
    samples = np.where(bitmap.to_mask(), foreground, background)
    return PixelGrid.from_array(samples)

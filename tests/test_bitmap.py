"""Tests for 1-bit packing of pixel grids (row-major, MSB first)."""

import numpy as np
import pytest

from gochi.bitmap import (
    BLACK,
    WHITE,
    PackedBitmap,
    PixelGrid,
    below,
    decode,
    encode,
    is_black,
)
from gochi.validation import BitmapValidationError, GridValidationError


def solid(width: int, height: int, value: int) -> PixelGrid:
    return PixelGrid(width, height, bytes([value]) * (width * height))


@pytest.mark.parametrize(
    "width,height", [(1, 1), (5, 1), (7, 3), (8, 1), (9, 2), (16, 4), (28, 7), (128, 128)]
)
def test_encoded_length_is_height_times_stride(width, height):
    bitmap = encode(solid(width, height, WHITE))
    assert len(bitmap.data) == height * ((width + 7) // 8)
    assert bitmap.stride == (width + 7) // 8
    assert (bitmap.width, bitmap.height) == (width, height)


def test_all_background_is_all_zero():
    bitmap = encode(solid(13, 5, WHITE))
    assert bitmap.data == bytes(len(bitmap.data))


def test_all_foreground_sets_every_bit_except_padding():
    bitmap = encode(solid(16, 2, BLACK))
    assert bitmap.data == b"\xff" * 4

    # 10 px wide: second byte of each row keeps its 6 low padding bits clear
    bitmap = encode(solid(10, 3, BLACK))
    assert bitmap.data == b"\xff\xc0" * 3


def test_first_pixel_is_most_significant_bit():
    grid = PixelGrid(8, 1, [BLACK] + [WHITE] * 7)
    assert encode(grid).data == b"\x80"


def test_last_pixel_is_least_significant_bit():
    grid = PixelGrid(8, 1, [WHITE] * 7 + [BLACK])
    assert encode(grid).data == b"\x01"


def test_partial_row_is_zero_padded():
    grid = PixelGrid(5, 1, [BLACK] * 5)
    assert encode(grid).data == b"\xf8"


def test_rows_start_on_fresh_byte():
    # 3 px rows: without per-row alignment these would share one byte
    grid = PixelGrid.from_rows(
        [
            [BLACK, WHITE, BLACK],
            [WHITE, BLACK, WHITE],
        ]
    )
    assert encode(grid).data == bytes([0b1010_0000, 0b0100_0000])


def test_changing_a_row_leaves_other_rows_untouched():
    width, height = 12, 6
    base = np.full((height, width), WHITE, dtype=np.uint8)
    base[::2, ::3] = BLACK
    before = encode(PixelGrid.from_array(base))

    changed = base.copy()
    changed[3, :] = BLACK
    after = encode(PixelGrid.from_array(changed))

    for y in range(height):
        if y == 3:
            assert after.row(y) != before.row(y)
        else:
            assert after.row(y) == before.row(y)


def test_pixel_accessor_matches_grid():
    rng = np.random.default_rng(7)
    arr = np.where(rng.random((9, 13)) < 0.5, BLACK, WHITE).astype(np.uint8)
    bitmap = encode(PixelGrid.from_array(arr))
    for y in range(9):
        for x in range(13):
            assert bitmap.pixel(x, y) == (arr[y, x] == BLACK)


def test_decode_then_encode_is_identity():
    rng = np.random.default_rng(42)
    for width, height in [(1, 1), (5, 3), (8, 8), (21, 4)]:
        arr = np.where(rng.random((height, width)) < 0.3, BLACK, WHITE)
        bitmap = encode(PixelGrid.from_array(arr))
        grid = decode(bitmap)
        assert set(grid.samples) <= {BLACK, WHITE}
        assert encode(grid).data == bitmap.data


def test_decode_uses_given_sample_values():
    bitmap = PackedBitmap(2, 1, b"\x80")
    grid = decode(bitmap, foreground=10, background=200)
    assert grid.samples == bytes([10, 200])


def test_default_predicate_only_counts_pure_black():
    grid = PixelGrid(4, 1, [0, 1, 127, 255])
    assert encode(grid).data == b"\x80"
    assert is_black(0) and not is_black(1)


def test_below_threshold_predicate():
    grid = PixelGrid(4, 1, [0, 1, 127, 255])
    assert encode(grid, below(128)).data == bytes([0b1110_0000])


@pytest.mark.parametrize("width,height", [(0, 1), (1, 0), (-3, 2)])
def test_grid_rejects_non_positive_dimensions(width, height):
    with pytest.raises(GridValidationError):
        PixelGrid(width, height, b"")


def test_grid_rejects_short_sample_array():
    with pytest.raises(GridValidationError, match="Sample count"):
        PixelGrid(4, 2, bytes(7))


def test_grid_rejects_out_of_range_samples():
    with pytest.raises(GridValidationError):
        PixelGrid(2, 1, [0, 256])
    with pytest.raises(GridValidationError):
        PixelGrid.from_array(np.array([[0, -1]]))


def test_grid_from_ragged_rows_fails():
    with pytest.raises(GridValidationError, match="Row 1"):
        PixelGrid.from_rows([[0, 0], [0]])


def test_grid_is_immutable():
    grid = solid(2, 2, WHITE)
    with pytest.raises(AttributeError):
        grid.width = 3  # type: ignore[misc]


def test_packed_bitmap_rejects_wrong_length():
    with pytest.raises(BitmapValidationError, match="doesn't match expected"):
        PackedBitmap(9, 2, b"\x00\x00\x00")


def test_packed_bitmap_rejects_set_padding_bits():
    with pytest.raises(BitmapValidationError, match="padding"):
        PackedBitmap(5, 1, b"\xf9")


@pytest.mark.parametrize("data", [None, [0x80, 256], "\x80"])
def test_packed_bitmap_rejects_unpackable_data(data):
    with pytest.raises(BitmapValidationError, match="Invalid bitmap data"):
        PackedBitmap(8, 1, data)


def test_packed_bitmap_accepts_byte_sequences():
    assert PackedBitmap(8, 1, [0x80]).data == b"\x80"
    assert PackedBitmap(8, 1, bytearray(b"\x80")).data == b"\x80"

"""
Cross-cutting validation logic for bitmap encoding.

Type-local invariants live in the dataclass __post_init__ methods of
gochi.bitmap; the functions here check the size rules shared between the
grid, the packed bitmap and the emitters.

Rules validated here:
- Positive grid dimensions
- Sample count matching width x height
- Packed data size matching height x stride
- Zero row padding bits
"""

import re


class ValidationError(ValueError):
    """Base exception for validation errors."""
    pass


class GridValidationError(ValidationError):
    """Raised when a pixel grid is malformed."""
    pass


class BitmapValidationError(ValidationError):
    """Raised when a packed bitmap is malformed."""
    pass


class HeaderFormatError(ValidationError):
    """Raised when header emitter options are invalid."""
    pass


_C_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def row_stride(width: int) -> int:
    """Bytes per packed row (rounded up to byte boundary)."""
    return (width + 7) // 8


def validate_dimensions(width: int, height: int) -> None:
    """
    Validate grid dimensions.

    Raises:
        GridValidationError: If width or height is not positive
    """
    if width <= 0 or height <= 0:
        raise GridValidationError(
            f"Grid dimensions must be positive, got ({width}x{height})"
        )


def validate_sample_count(sample_count: int, width: int, height: int) -> None:
    """
    Validate that a flat sample sequence covers the grid exactly.

    Raises:
        GridValidationError: If the sample count doesn't match width x height
    """
    expected = width * height
    if sample_count != expected:
        raise GridValidationError(
            f"Sample count {sample_count} doesn't match expected {expected} "
            f"for {width}x{height} grid"
        )


def validate_bitmap_data_size(data_length: int, width: int, height: int) -> None:
    """
    Validate that packed bitmap data matches its dimensions.

    Args:
        data_length: Length of packed data in bytes
        width: Bitmap width in pixels
        height: Bitmap height in pixels

    Raises:
        BitmapValidationError: If data size doesn't match height x stride
    """
    expected_bytes = height * row_stride(width)

    if data_length != expected_bytes:
        raise BitmapValidationError(
            f"Bitmap data size {data_length} doesn't match expected {expected_bytes} "
            f"for {width}x{height} bitmap"
        )


def validate_row_padding(data: bytes, width: int, height: int) -> None:
    """
    Validate that the unused low bits of each row's last byte are clear.

    Raises:
        BitmapValidationError: If any padding bit is set
    """
    pad_bits = (-width) % 8
    if pad_bits == 0:
        return
    mask = (1 << pad_bits) - 1
    stride = row_stride(width)
    for y in range(height):
        if data[y * stride + stride - 1] & mask:
            raise BitmapValidationError(f"Row {y} has non-zero padding bits")


def validate_header_options(var_name: str, wrap: int) -> None:
    """
    Validate header emitter options.

    Raises:
        HeaderFormatError: If var_name is not a C identifier or wrap is not positive
    """
    if not _C_IDENTIFIER.match(var_name or ""):
        raise HeaderFormatError(f"'{var_name}' is not a valid C identifier")
    if wrap <= 0:
        raise HeaderFormatError(f"wrap must be > 0, got {wrap}")

"""Raw-buffer concatenation: stack two images vertically or side by side.

Both operations are pure: inputs are only read and the result is a new
`PixelBuffer`. An absent operand (zero width or height) is allowed so a
caller can grow a strip by stitching an accumulator with each new tile.
"""

from __future__ import annotations

import functools
from typing import Callable, Dict, Iterable

from tilestitch.buffer import PixelBuffer
from tilestitch.errors import (
    AllocationFailedError,
    IncompatibleFormatError,
    InvalidDimensionsError,
    StitchError,
    UnsupportedFormatError,
)
from tilestitch.pixel_format import PixelFormat


def _guarded(operation: str):
    """Map allocation failures and unexpected faults onto `StitchError`."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except StitchError:
                raise
            except MemoryError as exc:
                raise AllocationFailedError(f"Out of memory: {exc}", operation=operation) from exc
            except Exception as exc:
                raise StitchError.wrap(exc, operation=operation) from exc

        return wrapper

    return decorator


def _resolve_format(first: PixelBuffer, second: PixelBuffer, operation: str) -> PixelFormat:
    """Defined format wins; two defined formats must match."""
    if not first.pixel_format.defined:
        if not second.pixel_format.defined:
            raise IncompatibleFormatError("Both images have undefined pixel types!", operation=operation)
        return second.pixel_format
    if not second.pixel_format.defined:
        return first.pixel_format
    if first.pixel_format != second.pixel_format:
        raise IncompatibleFormatError(
            f"Images must be same pixel type ({first.pixel_format} != {second.pixel_format})",
            operation=operation,
        )
    return first.pixel_format


def _resolve_extent(first: int, second: int, name: str, operation: str) -> int:
    """Nonzero extent wins; two nonzero extents must match."""
    if first == 0:
        if second == 0:
            raise InvalidDimensionsError(f"Both images have {name} = 0!", operation=operation)
        return second
    if second != 0 and first != second:
        raise InvalidDimensionsError(f"Images must be same {name} ({first} != {second})", operation=operation)
    return first


@_guarded("stitch_vertical")
def stitch_vertical(top: PixelBuffer, bottom: PixelBuffer) -> PixelBuffer:
    """Stack `bottom` under `top`.

    Each source already holds contiguous full rows, so the result bytes are
    simply `top.data` followed by `bottom.data`.

    Raises:
        IncompatibleFormatError: Formats differ or are both undefined.
        InvalidDimensionsError: Widths differ or are both zero.
    """
    operation = "stitch_vertical"
    fmt = _resolve_format(top, bottom, operation)
    width = _resolve_extent(top.width, bottom.width, "width", operation)

    top_height = 0 if top.is_empty else top.height
    bottom_height = 0 if bottom.is_empty else bottom.height
    top_data = b"" if top.is_empty else top.data
    bottom_data = b"" if bottom.is_empty else bottom.data
    return PixelBuffer(fmt, width, top_height + bottom_height, top_data + bottom_data)


@_guarded("stitch_horizontal")
def stitch_horizontal(left: PixelBuffer, right: PixelBuffer) -> PixelBuffer:
    """Place `right` to the right of `left`.

    Horizontally adjacent images are not contiguous in row-major memory, so
    row `i` of the result is row `i` of `left` followed by row `i` of `right`.

    Raises:
        UnsupportedFormatError: Either operand uses a packed pixel layout.
        IncompatibleFormatError: Formats differ or are both undefined.
        InvalidDimensionsError: Heights differ or are both zero.
    """
    import numpy as np  # type: ignore

    operation = "stitch_horizontal"
    if left.pixel_format.packed or right.pixel_format.packed:
        raise UnsupportedFormatError("Packed pixel formats are not supported yet", operation=operation)
    fmt = _resolve_format(left, right, operation)
    height = _resolve_extent(left.height, right.height, "height", operation)

    if left.is_empty:
        return PixelBuffer(fmt, right.width, height, right.data)
    if right.is_empty:
        return PixelBuffer(fmt, left.width, height, left.data)

    bpp = fmt.bytes_per_pixel
    left_rows = np.frombuffer(left.data, dtype=np.uint8).reshape(height, left.width * bpp)
    right_rows = np.frombuffer(right.data, dtype=np.uint8).reshape(height, right.width * bpp)
    stitched = np.hstack((left_rows, right_rows))
    return PixelBuffer(fmt, left.width + right.width, height, stitched.tobytes())


_DIRECTIONS: Dict[str, Callable[[PixelBuffer, PixelBuffer], PixelBuffer]] = {
    "vertical": stitch_vertical,
    "horizontal": stitch_horizontal,
}


def stitch_strip(buffers: Iterable[PixelBuffer], direction: str = "horizontal") -> PixelBuffer:
    """Fold buffers into one strip, starting from an absent accumulator.

    Example:
        wide = stitch_strip([left, middle, right], "horizontal")
    """
    stitch: Callable[[PixelBuffer, PixelBuffer], PixelBuffer]
    try:
        stitch = _DIRECTIONS[direction]
    except KeyError:
        raise ValueError(f"Unsupported stitch direction: {direction}") from None

    accumulator = PixelBuffer.empty()
    count = 0
    for buffer in buffers:
        accumulator = stitch(accumulator, buffer)
        count += 1
    if count == 0:
        raise InvalidDimensionsError("No images to stitch", operation="stitch_strip")
    return accumulator

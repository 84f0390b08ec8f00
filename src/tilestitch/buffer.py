"""Immutable raw pixel buffer passed between capture, stitching and output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from tilestitch import pixel_format as pf
from tilestitch.errors import InvalidDimensionsError, UnsupportedFormatError
from tilestitch.pixel_format import PixelFormat


@dataclass(frozen=True)
class PixelBuffer:
    """Rectangular raw image: format tag, dimensions and owned bytes.

    `data` is always a private `bytes` copy, so a buffer never aliases memory
    owned by a capture driver or another buffer. A buffer with zero width or
    height is "absent" and is what accumulators start from.
    """

    pixel_format: PixelFormat = pf.UNDEFINED
    width: int = 0
    height: int = 0
    data: bytes = field(default=b"", repr=False)

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise InvalidDimensionsError(
                f"Width and height must be non-negative (got {self.width}x{self.height})",
                operation="PixelBuffer",
            )
        data = self.data
        if not isinstance(data, bytes):
            data = bytes(data)
            object.__setattr__(self, "data", data)
        if self.pixel_format.defined:
            expected = self.pixel_format.byte_size(self.width, self.height)
            # Packed rows or stacked packed images may carry padding bits.
            if self.pixel_format.packed:
                size_ok = len(data) >= expected
            else:
                size_ok = len(data) == expected
            if not size_ok:
                raise InvalidDimensionsError(
                    f"{self.pixel_format} {self.width}x{self.height} needs {expected} bytes, got {len(data)}",
                    operation="PixelBuffer",
                )

    @classmethod
    def empty(cls) -> "PixelBuffer":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def bytes_per_pixel(self) -> int:
        return self.pixel_format.bytes_per_pixel

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def row_stride(self) -> int:
        return self.width * self.bytes_per_pixel

    def row(self, i: int) -> bytes:
        """Bytes of row `i`; only meaningful for byte-aligned formats."""
        if self.pixel_format.packed:
            raise UnsupportedFormatError(
                f"Row access is not supported for packed format {self.pixel_format}",
                operation="PixelBuffer.row",
            )
        if i < 0 or i >= self.height:
            raise IndexError(f"Row index {i} out of range (height={self.height}).")
        stride = self.row_stride
        return self.data[i * stride : (i + 1) * stride]

    @classmethod
    def from_array(cls, array: Any, pixel_format: Optional[PixelFormat] = None) -> "PixelBuffer":
        """Copy a numpy image into a new buffer.

        Args:
            array: (h, w) or (h, w, c) ndarray. OpenCV frames are BGR.
            pixel_format: Explicit format; inferred from dtype/shape if None.

        Returns:
            PixelBuffer owning a copy of the pixel bytes.

        Raises:
            UnsupportedFormatError: If the format cannot be inferred.
            InvalidDimensionsError: If the array size does not fit the format.
        """
        import numpy as np  # type: ignore

        arr = np.asarray(array)
        if arr.ndim not in (2, 3):
            raise InvalidDimensionsError(
                f"Expected a 2-D or 3-D array, got shape {arr.shape}", operation="PixelBuffer.from_array"
            )
        if pixel_format is None:
            pixel_format = _infer_format(arr)
        height, width = int(arr.shape[0]), int(arr.shape[1])
        # C-order copy gives row-major bytes regardless of the input strides.
        return cls(pixel_format, width, height, np.ascontiguousarray(arr).tobytes())

    def to_array(self):
        """Return a fresh ndarray view of the pixels, shaped (h, w[, c])."""
        import numpy as np  # type: ignore

        fmt = self.pixel_format
        if fmt.packed:
            raise UnsupportedFormatError(
                f"Cannot view packed format {fmt} as an array", operation="PixelBuffer.to_array"
            )
        if self.is_empty:
            return np.zeros((self.height, self.width), dtype=np.uint8)
        if not fmt.defined:
            raise UnsupportedFormatError(
                "Cannot view a buffer with undefined pixel format as an array",
                operation="PixelBuffer.to_array",
            )
        dtype = np.dtype(fmt.dtype)
        channels = fmt.bytes_per_pixel // dtype.itemsize
        arr = np.frombuffer(self.data, dtype=dtype)
        if channels > 1:
            return arr.reshape(self.height, self.width, channels).copy()
        return arr.reshape(self.height, self.width).copy()


def _infer_format(arr) -> PixelFormat:
    dtype = str(arr.dtype)
    if arr.ndim == 2:
        if dtype == "uint8":
            return pf.MONO8
        if dtype == "uint16":
            return pf.MONO16
    else:
        channels = int(arr.shape[2])
        if dtype == "uint8" and channels == 3:
            return pf.BGR8
        if dtype == "uint8" and channels == 4:
            return pf.BGRA8
        if dtype == "uint16" and channels == 3:
            return pf.BGR16
        if dtype == "uint8" and channels == 1:
            return pf.MONO8
    raise UnsupportedFormatError(
        f"Cannot infer pixel format for dtype={dtype} shape={arr.shape}",
        operation="PixelBuffer.from_array",
    )

"""Pixel format registry for raw camera buffers.

Only the properties the stitching core needs are tracked: storage size,
channel count, whether pixels are sub-byte packed, and the numpy dtype
used when a buffer is viewed as an array.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from tilestitch.errors import UnsupportedFormatError


@dataclass(frozen=True)
class PixelFormat:
    """Opaque pixel-format tag with the layout facts derived from it."""

    name: str
    bits_per_pixel: int
    channels: int = 1
    packed: bool = False
    dtype: Optional[str] = "uint8"

    @property
    def defined(self) -> bool:
        return self.bits_per_pixel > 0

    @property
    def bytes_per_pixel(self) -> int:
        # Packed layouts have no whole-byte pixel stride.
        if self.packed:
            return 0
        return self.bits_per_pixel // 8

    def byte_size(self, width: int, height: int) -> int:
        """Storage size for a width x height image in this format."""
        if not self.defined:
            return 0
        if self.packed:
            return (width * height * self.bits_per_pixel + 7) // 8
        return width * height * self.bytes_per_pixel

    @staticmethod
    def from_name(name: str) -> "PixelFormat":
        """Look up a registered format by name (case-insensitive)."""
        fmt = _REGISTRY.get(name.lower())
        if fmt is None:
            raise UnsupportedFormatError(f"Unknown pixel format: {name}", operation="PixelFormat.from_name")
        return fmt

    def __str__(self) -> str:
        return self.name


UNDEFINED = PixelFormat("Undefined", 0, channels=0, dtype=None)

MONO8 = PixelFormat("Mono8", 8)
MONO10 = PixelFormat("Mono10", 16, dtype="uint16")
MONO12 = PixelFormat("Mono12", 16, dtype="uint16")
MONO16 = PixelFormat("Mono16", 16, dtype="uint16")
MONO10P = PixelFormat("Mono10p", 10, packed=True, dtype=None)
MONO12P = PixelFormat("Mono12p", 12, packed=True, dtype=None)
MONO12_PACKED = PixelFormat("Mono12Packed", 12, packed=True, dtype=None)

BAYER_RG8 = PixelFormat("BayerRG8", 8)
BAYER_GB8 = PixelFormat("BayerGB8", 8)
BAYER_GR8 = PixelFormat("BayerGR8", 8)
BAYER_BG8 = PixelFormat("BayerBG8", 8)
BAYER_RG12P = PixelFormat("BayerRG12p", 12, packed=True, dtype=None)

RGB8 = PixelFormat("RGB8", 24, channels=3)
BGR8 = PixelFormat("BGR8", 24, channels=3)
RGBA8 = PixelFormat("RGBA8", 32, channels=4)
BGRA8 = PixelFormat("BGRA8", 32, channels=4)
BGR16 = PixelFormat("BGR16", 48, channels=3, dtype="uint16")
YUV422_8 = PixelFormat("YUV422_8", 16, channels=2)


_REGISTRY: Dict[str, PixelFormat] = {
    fmt.name.lower(): fmt
    for fmt in (
        UNDEFINED,
        MONO8,
        MONO10,
        MONO12,
        MONO16,
        MONO10P,
        MONO12P,
        MONO12_PACKED,
        BAYER_RG8,
        BAYER_GB8,
        BAYER_GR8,
        BAYER_BG8,
        BAYER_RG12P,
        RGB8,
        BGR8,
        RGBA8,
        BGRA8,
        BGR16,
        YUV422_8,
    )
}
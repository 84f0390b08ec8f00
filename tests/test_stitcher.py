import numpy as np
import pytest

from conftest import mono8, tile
from tilestitch import pixel_format as pf
from tilestitch.buffer import PixelBuffer
from tilestitch.errors import (
    AllocationFailedError,
    ErrorKind,
    IncompatibleFormatError,
    InvalidDimensionsError,
    StitchError,
    UnsupportedFormatError,
)
from tilestitch.stitcher import stitch_horizontal, stitch_strip, stitch_vertical


# --- stitch_vertical ---

def test_vertical_concatenates_bytes():
    top = mono8(3, 2, start=0)
    bottom = mono8(3, 4, start=100)
    out = stitch_vertical(top, bottom)
    assert (out.width, out.height) == (3, 6)
    assert out.pixel_format == pf.MONO8
    assert out.data == top.data + bottom.data


def test_vertical_width_mismatch():
    with pytest.raises(InvalidDimensionsError) as excinfo:
        stitch_vertical(mono8(3, 1), mono8(4, 1))
    assert excinfo.value.kind is ErrorKind.INVALID_DIMENSIONS
    assert str(excinfo.value).startswith("stitch_vertical(): ")


def test_vertical_format_mismatch():
    bgr = PixelBuffer(pf.BGR8, 1, 1, b"\x00\x00\x00")
    rgb = PixelBuffer(pf.RGB8, 1, 1, b"\x00\x00\x00")
    with pytest.raises(IncompatibleFormatError) as excinfo:
        stitch_vertical(bgr, rgb)
    assert excinfo.value.kind is ErrorKind.INCOMPATIBLE_FORMAT


def test_vertical_both_undefined():
    with pytest.raises(IncompatibleFormatError):
        stitch_vertical(PixelBuffer.empty(), PixelBuffer.empty())


def test_vertical_both_zero_width():
    empty_mono = PixelBuffer(pf.MONO8, 0, 0, b"")
    with pytest.raises(InvalidDimensionsError):
        stitch_vertical(empty_mono, empty_mono)


def test_vertical_from_absent_accumulator():
    bottom = mono8(2, 2)
    out = stitch_vertical(PixelBuffer.empty(), bottom)
    assert out == bottom


def test_vertical_absent_bottom_passes_through():
    top = mono8(2, 2)
    assert stitch_vertical(top, PixelBuffer.empty()) == top


def test_defined_format_wins_in_either_order():
    image = mono8(2, 1)
    untagged = PixelBuffer(width=2, height=1, data=b"\x09\x09")
    below = stitch_vertical(image, untagged)
    above = stitch_vertical(untagged, image)
    assert below.pixel_format is pf.MONO8
    assert above.pixel_format is pf.MONO8
    assert below.data == b"\x00\x01\x09\x09"
    assert above.data == b"\x09\x09\x00\x01"


def test_vertical_allows_packed_formats():
    top = PixelBuffer(pf.MONO12P, 2, 1, b"\x01\x02\x03")
    bottom = PixelBuffer(pf.MONO12P, 2, 1, b"\x04\x05\x06")
    out = stitch_vertical(top, bottom)
    assert out.height == 2
    assert out.data == b"\x01\x02\x03\x04\x05\x06"


def test_vertical_packed_odd_bit_rows_keep_their_padding():
    # One Mono12p pixel is 12 bits stored in 2 bytes; 1x2 only needs 3.
    top = PixelBuffer(pf.MONO12P, 1, 1, b"\x01\x02")
    bottom = PixelBuffer(pf.MONO12P, 1, 1, b"\x03\x04")
    out = stitch_vertical(top, bottom)
    assert (out.width, out.height) == (1, 2)
    assert out.data == b"\x01\x02\x03\x04"


# --- stitch_horizontal ---

def test_horizontal_interleaves_rows():
    left = mono8(2, 3, start=0)
    right = mono8(1, 3, start=50)
    out = stitch_horizontal(left, right)
    assert (out.width, out.height) == (3, 3)
    for i in range(3):
        assert out.row(i) == left.row(i) + right.row(i)


def test_horizontal_multibyte_pixels():
    left = np.arange(2 * 2 * 3, dtype=np.uint8).reshape(2, 2, 3)
    right = np.arange(100, 100 + 2 * 1 * 3, dtype=np.uint8).reshape(2, 1, 3)
    out = stitch_horizontal(PixelBuffer.from_array(left), PixelBuffer.from_array(right))
    assert out.pixel_format == pf.BGR8
    np.testing.assert_array_equal(out.to_array(), np.concatenate([left, right], axis=1))


def test_horizontal_height_mismatch():
    with pytest.raises(InvalidDimensionsError):
        stitch_horizontal(mono8(1, 2), mono8(1, 3))


def test_horizontal_format_mismatch():
    mono16 = PixelBuffer(pf.MONO16, 1, 1, b"\x00\x00")
    with pytest.raises(IncompatibleFormatError):
        stitch_horizontal(mono8(1, 1), mono16)


@pytest.mark.parametrize("packed_left", [True, False])
def test_horizontal_rejects_packed(packed_left):
    packed = PixelBuffer(pf.MONO12P, 2, 1, b"\x00\x00\x00")
    other = PixelBuffer.empty()
    args = (packed, other) if packed_left else (other, packed)
    with pytest.raises(UnsupportedFormatError) as excinfo:
        stitch_horizontal(*args)
    assert excinfo.value.kind is ErrorKind.UNSUPPORTED_FORMAT
    assert "Packed" in excinfo.value.message


def test_horizontal_absent_operand_passes_through():
    image = mono8(3, 2)
    assert stitch_horizontal(PixelBuffer.empty(), image) == image
    assert stitch_horizontal(image, PixelBuffer.empty()) == image


def test_inputs_are_not_modified():
    left = mono8(2, 2)
    right = mono8(2, 2, start=9)
    before = (left.data, right.data)
    stitch_horizontal(left, right)
    stitch_vertical(left, right)
    assert (left.data, right.data) == before


# --- error wrapping ---

def test_memory_error_maps_to_allocation_failed(monkeypatch):
    def _boom(*args, **kwargs):
        raise MemoryError("simulated")

    monkeypatch.setattr(np, "hstack", _boom)
    with pytest.raises(AllocationFailedError) as excinfo:
        stitch_horizontal(mono8(1, 1), mono8(1, 1))
    assert excinfo.value.kind is ErrorKind.ALLOCATION_FAILED
    assert isinstance(excinfo.value, MemoryError)


def test_unexpected_fault_is_wrapped(monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("simulated")

    monkeypatch.setattr(np, "hstack", _boom)
    with pytest.raises(StitchError) as excinfo:
        stitch_horizontal(mono8(1, 1), mono8(1, 1))
    assert excinfo.value.kind is ErrorKind.INTERNAL
    assert "RuntimeError" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, RuntimeError)


# --- stitch_strip ---

def test_strip_horizontal():
    tiles = [tile(v) for v in (1, 2, 3)]
    out = stitch_strip(tiles, "horizontal")
    assert (out.width, out.height) == (3, 1)
    assert out.data == b"\x01\x02\x03"


def test_strip_vertical():
    out = stitch_strip((tile(v, width=2) for v in (7, 8)), "vertical")
    assert (out.width, out.height) == (2, 2)
    assert out.data == b"\x07\x07\x08\x08"


def test_strip_requires_images():
    with pytest.raises(InvalidDimensionsError):
        stitch_strip([], "vertical")


def test_strip_unknown_direction():
    with pytest.raises(ValueError):
        stitch_strip([tile(1)], "diagonal")

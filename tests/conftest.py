import pytest

from tilestitch import pixel_format as pf
from tilestitch.buffer import PixelBuffer


def mono8(width, height, start=0):
    """Mono8 buffer whose bytes count up from `start`."""
    data = bytes((start + i) % 256 for i in range(width * height))
    return PixelBuffer(pf.MONO8, width, height, data)


def tile(value, width=1, height=1):
    """Uniform Mono8 tile filled with `value`."""
    return PixelBuffer(pf.MONO8, width, height, bytes([value]) * (width * height))


@pytest.fixture()
def abcd():
    return [tile(v) for v in (0xA, 0xB, 0xC, 0xD)]

"""Output helpers for stitched buffers."""

from __future__ import annotations

from pathlib import Path

from tilestitch.buffer import PixelBuffer


def save_buffer(path: Path, buffer: PixelBuffer) -> None:
    """Save a buffer as an image file, creating parent directories if needed.

    Channel bytes are written as-is; OpenCV treats 3-channel data as BGR.

    Raises:
        ValueError: If the buffer is empty or OpenCV cannot encode it.
    """

    import cv2  # type: ignore

    path = Path(path)
    if buffer.is_empty:
        raise ValueError(f"Refusing to write empty image: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        written = cv2.imwrite(str(path), buffer.to_array())
    except cv2.error as exc:
        raise ValueError(f"Failed to write image: {path}: {exc}") from exc
    if not written:
        raise ValueError(f"Failed to write image: {path}")

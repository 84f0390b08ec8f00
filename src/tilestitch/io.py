"""Frame input layer: turn image files or videos into `PixelBuffer`s.

统一 I/O 入口，兼容两类输入：
- video files (avi/mp4/mpeg) via OpenCV VideoCapture
- frame sequences (png/jpeg/tiff) via sorted file lists

Also loads YAML run configs for the mosaic scripts.
"""

from __future__ import annotations

import glob
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from tilestitch.buffer import PixelBuffer
from tilestitch.pixel_format import PixelFormat


# Logging 默认 INFO (caller 可覆盖). WARNING 用于可恢复问题，
# ERROR 通过异常抛出，保持行为显式。
logger = logging.getLogger(__name__)

_READ_MODES = ("unchanged", "color", "grayscale")


def _require_cv2():
    try:
        import cv2  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "OpenCV (cv2) is required to read frames. Install opencv-python first."
        ) from exc
    return cv2


def _imread_flag(cv2, read_mode: str) -> int:
    if read_mode == "unchanged":
        return cv2.IMREAD_UNCHANGED
    if read_mode == "color":
        return cv2.IMREAD_COLOR
    if read_mode == "grayscale":
        return cv2.IMREAD_GRAYSCALE
    raise ValueError(f"Unsupported read_mode: {read_mode} (expected one of {_READ_MODES})")


# --- Frame source abstraction ---

class FrameSource:
    """Abstract source of `PixelBuffer` frames.

    Contract / 契约:
    - read_next() returns the next frame, or None at end-of-stream.
    - length() returns total frames if known, else None.
    - close() releases resources.
    """

    pixel_format: Optional[PixelFormat] = None

    def read_next(self) -> Optional[PixelBuffer]:
        raise NotImplementedError

    def length(self) -> Optional[int]:
        raise NotImplementedError

    def resolution(self) -> Optional[Tuple[int, int]]:
        """(width, height) if known, otherwise None."""
        return None

    def close(self) -> None:
        return None

    def frames(self, limit: Optional[int] = None) -> Iterator[PixelBuffer]:
        """Yield frames sequentially until end-of-stream or `limit`."""
        count = 0
        while limit is None or count < limit:
            frame = self.read_next()
            if frame is None:
                return
            count += 1
            yield frame

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _to_buffer(self, image) -> PixelBuffer:
        return PixelBuffer.from_array(image, self.pixel_format)


# --- Frame source implementations ---

class FramesSource(FrameSource):
    """Frame source backed by an explicit list of image file paths.

    Ordering 由传入的列表决定，因此上游排序必须稳定且按时间顺序。
    """

    def __init__(
        self,
        frame_paths: List[Path],
        pixel_format: Optional[PixelFormat] = None,
        read_mode: str = "unchanged",
    ) -> None:
        cv2 = _require_cv2()
        if not frame_paths:
            raise FileNotFoundError("No frames found for frames source.")
        self._paths = list(frame_paths)
        self._idx = 0
        self._flag = _imread_flag(cv2, read_mode)
        self._length_limit: Optional[int] = None
        self.pixel_format = pixel_format

        # Read first frame 以推断分辨率并尽早失败 (fail fast).
        first = cv2.imread(str(self._paths[0]), self._flag)
        if first is None:
            raise ValueError(f"Failed to read first frame: {self._paths[0]}")
        self._resolution = (int(first.shape[1]), int(first.shape[0]))

    def set_length_limit(self, limit: int) -> None:
        """Clamp the visible length for alignment across paired sources."""
        self._length_limit = max(0, limit)

    def read(self, i: int) -> PixelBuffer:
        cv2 = _require_cv2()

        limit = self.length()
        if i < 0 or (limit is not None and i >= limit):
            raise IndexError(f"Frame index {i} out of range (limit={limit}).")
        image = cv2.imread(str(self._paths[i]), self._flag)
        if image is None:
            raise ValueError(f"Failed to read frame: {self._paths[i]}")
        return self._to_buffer(image)

    def read_next(self) -> Optional[PixelBuffer]:
        limit = self.length()
        if limit is not None and self._idx >= limit:
            return None
        frame = self.read(self._idx)
        self._idx += 1
        return frame

    def length(self) -> Optional[int]:
        base_len = len(self._paths)
        if self._length_limit is not None:
            return min(base_len, self._length_limit)
        return base_len

    def resolution(self) -> Optional[Tuple[int, int]]:
        return self._resolution


class VideoSource(FrameSource):
    """Frame source backed by OpenCV VideoCapture.

    Decoded frames are BGR8 unless `read_mode` is "grayscale".
    """

    def __init__(
        self,
        video_path: Path,
        pixel_format: Optional[PixelFormat] = None,
        read_mode: str = "color",
    ) -> None:
        cv2 = _require_cv2()
        _imread_flag(cv2, read_mode)
        self._grayscale = read_mode == "grayscale"
        self.pixel_format = pixel_format

        self._cap = cv2.VideoCapture(str(video_path))
        if not self._cap.isOpened():
            raise ValueError(f"Failed to open video: {video_path}")
        self._frame_count: Optional[int] = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if self._frame_count is not None and self._frame_count <= 0:
            self._frame_count = None
        width = self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        height = self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        if width and height:
            self._resolution: Optional[Tuple[int, int]] = (int(width), int(height))
        else:
            self._resolution = None

    def _decode(self, frame) -> PixelBuffer:
        if self._grayscale and frame.ndim == 3:
            cv2 = _require_cv2()
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        return self._to_buffer(frame)

    def read_next(self) -> Optional[PixelBuffer]:
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return self._decode(frame)

    def length(self) -> Optional[int]:
        return self._frame_count

    def resolution(self) -> Optional[Tuple[int, int]]:
        return self._resolution

    def close(self) -> None:
        # Release resources 以避免文件句柄泄漏。
        self._cap.release()


# --- Run config ---

@dataclass
class MosaicRunConfig:
    """Settings for one mosaic / pair-stitching run, loaded from YAML."""

    columns: int
    rows: int
    source: Dict[str, Any]
    right_source: Optional[Dict[str, Any]] = None
    output_dir: str = "outputs/mosaic"
    pixel_format: Optional[str] = None
    max_frames: Optional[int] = None
    strips: bool = False
    root_dir: Path = field(default_factory=Path, repr=False)

    def resolved_pixel_format(self) -> Optional[PixelFormat]:
        if self.pixel_format is None:
            return None
        return PixelFormat.from_name(self.pixel_format)

    def resolved_output_dir(self) -> Path:
        return (self.root_dir / self.output_dir).resolve()


def load_run_config(config_path: str | os.PathLike) -> MosaicRunConfig:
    """Load a YAML run config.

    Relative paths inside the file resolve against the file's directory.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ValueError: If required keys are missing or malformed.

    Example:
        cfg = load_run_config("configs/mosaic.yaml")
    """
    import yaml  # type: ignore

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("YAML root must be a mapping.")

    mosaic = data.get("mosaic") or {}
    if not isinstance(mosaic, dict):
        raise ValueError("Config format error: 'mosaic' must be a mapping.")
    source = data.get("source")
    if not isinstance(source, dict) or not source.get("path"):
        raise ValueError("Config format error: missing 'source' with a 'path'.")
    right_source = data.get("right_source")
    if right_source is not None and (not isinstance(right_source, dict) or not right_source.get("path")):
        raise ValueError("Config format error: 'right_source' needs a 'path'.")

    max_frames = data.get("max_frames")
    cfg = MosaicRunConfig(
        columns=_config_int(mosaic.get("columns", 1), "mosaic.columns"),
        rows=_config_int(mosaic.get("rows", 1), "mosaic.rows"),
        source=source,
        right_source=right_source,
        output_dir=str(data.get("output_dir", "outputs/mosaic")),
        pixel_format=data.get("pixel_format"),
        max_frames=_config_int(max_frames, "max_frames") if max_frames is not None else None,
        strips=bool(data.get("strips", False)),
        root_dir=config_path.resolve().parent,
    )
    if cfg.columns < 0 or cfg.rows < 0:
        raise ValueError(f"Mosaic grid must be non-negative, got {cfg.columns}x{cfg.rows}")
    # Fail fast on unknown format names.
    cfg.resolved_pixel_format()
    return cfg


def _config_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Config format error: '{key}' must be an integer, got {value!r}.")
    return value


# --- Source opening ---

def open_source(
    source_cfg: Dict[str, Any],
    root_dir: Optional[Path] = None,
    pixel_format: Optional[PixelFormat] = None,
) -> FrameSource:
    """Open a single source (video or frames) into a FrameSource.

    Args:
        source_cfg: Dict with keys: input_type, path, frame_pattern, read_mode.
        root_dir: Base directory for relative paths (cwd if None).
        pixel_format: Format tag for produced buffers; inferred if None.

    Raises:
        FileNotFoundError: If the path is missing or frames are empty.
        ValueError: If input_type is unsupported or required fields missing.
    """
    if root_dir is None:
        root_dir = Path.cwd()

    input_type = source_cfg.get("input_type", "frames")
    path = source_cfg.get("path")
    if not path:
        raise ValueError("source_cfg requires a path.")

    source_path = (Path(root_dir) / path).resolve()
    if not source_path.exists():
        raise FileNotFoundError(f"Source path not found: {path}")

    if input_type == "video":
        source: FrameSource = VideoSource(
            source_path,
            pixel_format=pixel_format,
            read_mode=source_cfg.get("read_mode", "color"),
        )
    elif input_type == "frames":
        frame_paths = resolve_frame_paths(source_path, source_cfg.get("frame_pattern"))
        source = FramesSource(
            frame_paths,
            pixel_format=pixel_format,
            read_mode=source_cfg.get("read_mode", "unchanged"),
        )
    else:
        raise ValueError(f"Unsupported input_type: {input_type}")

    logger.info(
        "open_source input_type=%s path=%s length=%s res=%s",
        input_type,
        path,
        source.length(),
        source.resolution(),
    )
    return source


def open_pair(
    left_cfg: Dict[str, Any],
    right_cfg: Dict[str, Any],
    root_dir: Optional[Path] = None,
    pixel_format: Optional[PixelFormat] = None,
) -> Tuple[FrameSource, FrameSource]:
    """Open left/right sources and align frame counts for file sequences."""
    left_source = open_source(left_cfg, root_dir=root_dir, pixel_format=pixel_format)
    right_source = open_source(right_cfg, root_dir=root_dir, pixel_format=pixel_format)

    left_len = left_source.length()
    right_len = right_source.length()
    if left_len is not None and right_len is not None and left_len != right_len:
        min_len = min(left_len, right_len)
        # WARNING: 长度对齐后继续运行，避免 silent misalignment。
        logger.warning(
            "Frame count mismatch: left=%s right=%s, using min=%s",
            left_len,
            right_len,
            min_len,
        )
        for source in (left_source, right_source):
            if isinstance(source, FramesSource):
                source.set_length_limit(min_len)
    return left_source, right_source


def open_config_pair(cfg: MosaicRunConfig) -> Tuple[FrameSource, FrameSource]:
    """Open `source` (left) and `right_source` of a run config as a pair.

    Raises:
        ValueError: If the config has no right_source.
    """
    if cfg.right_source is None:
        raise ValueError("Config has no 'right_source'; pair stitching needs one.")
    return open_pair(
        cfg.source,
        cfg.right_source,
        root_dir=cfg.root_dir,
        pixel_format=cfg.resolved_pixel_format(),
    )


# --- Frame path resolution ---

def resolve_frame_paths(frame_dir: Path, frame_pattern: Optional[str] = None) -> List[Path]:
    """List frames in a directory by glob pattern, in numeric order."""
    if frame_pattern:
        frame_paths = [Path(p) for p in glob.glob(str(frame_dir / frame_pattern))]
    else:
        frame_paths = []
        for ext in ("*.png", "*.jpg", "*.jpeg", "*.tif", "*.tiff", "*.bmp"):
            frame_paths.extend(Path(p) for p in glob.glob(str(frame_dir / ext)))

    if not frame_paths:
        raise FileNotFoundError(f"No frames found in directory: {frame_dir}")
    # 数字序号排序保证时序稳定；无法解析则字典序兜底。
    return sorted(frame_paths, key=_frame_sort_key)


def _frame_sort_key(path: Path):
    """Sort key: numeric order if possible, else lexicographic."""
    numbers = _extract_numbers(path.name)
    if numbers:
        return (0, numbers, path.name)
    return (1, [], path.name)


def _extract_numbers(name: str) -> List[int]:
    return [int(n) for n in re.findall(r"\d+", name)]

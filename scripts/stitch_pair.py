#!/usr/bin/env python3
"""Stitch two frame sources side by side, frame by frame.

用途/Goal: 左右两路同步帧拼接 (left | right) 并保存为 PNG 序列。
Frames are paired by index; sources of different length are truncated to
the shorter one. Sources come from --left/--right or from a run config
with `source` (left) and `right_source`.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Optional, Tuple


# --- CLI helpers ---

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stitch left/right frames side by side.")
    parser.add_argument("--config", default=None, help="YAML run config with source and right_source")
    parser.add_argument("--left", default=None, help="Left frame directory or video")
    parser.add_argument("--right", default=None, help="Right frame directory or video")
    parser.add_argument("--input_type", default="frames", help="frames or video")
    parser.add_argument("--frame_pattern", default=None, help="Glob pattern inside frame directories")
    parser.add_argument("--pixel_format", default=None, help="Pixel format tag, e.g. Mono8")
    parser.add_argument("--max_frames", type=int, default=None, help="Stop after this many pairs")
    parser.add_argument("--output_dir", default=None, help="Output directory (default: outputs/pairs)")
    return parser


def _open_sources(args) -> Tuple[object, object, Optional[int], Path]:
    """Open the left/right sources from --config or --left/--right.

    Returns:
        (left_source, right_source, max_frames, output_dir); CLI flags
        override config values.
    """
    from tilestitch.io import load_run_config, open_config_pair, open_pair  # noqa: E402
    from tilestitch.pixel_format import PixelFormat  # noqa: E402

    if args.config is not None:
        cfg = load_run_config(args.config)
        if args.pixel_format is not None:
            cfg.pixel_format = args.pixel_format
        left_source, right_source = open_config_pair(cfg)
        max_frames = args.max_frames if args.max_frames is not None else cfg.max_frames
        output_dir = Path(args.output_dir) if args.output_dir else cfg.resolved_output_dir()
        return left_source, right_source, max_frames, output_dir

    if args.left is None or args.right is None:
        raise ValueError("Either --config or both --left and --right are required.")
    pixel_format = PixelFormat.from_name(args.pixel_format) if args.pixel_format else None
    left_cfg = {"input_type": args.input_type, "path": args.left, "frame_pattern": args.frame_pattern}
    right_cfg = {"input_type": args.input_type, "path": args.right, "frame_pattern": args.frame_pattern}
    left_source, right_source = open_pair(left_cfg, right_cfg, root_dir=Path.cwd(), pixel_format=pixel_format)
    return left_source, right_source, args.max_frames, Path(args.output_dir or "outputs/pairs")


# --- Entry point ---

def main() -> int:
    """Stitch each frame pair and write the results.

    Returns:
        Exit code 0 if at least one pair was stitched, else 1.
    """
    args = _build_parser().parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))

    from tilestitch.errors import StitchError  # noqa: E402
    from tilestitch.stitcher import stitch_horizontal  # noqa: E402
    from tilestitch.viz import save_buffer  # noqa: E402

    left_source, right_source, max_frames, output_dir = _open_sources(args)

    stitched_count = 0
    try:
        pairs = zip(left_source.frames(max_frames), right_source.frames(max_frames))
        for index, (left, right) in enumerate(pairs):
            try:
                stitched = stitch_horizontal(left, right)
            except StitchError as exc:
                logging.warning("Pair %s skipped [%s]: %s", index, exc.kind.value, exc)
                continue
            save_buffer(output_dir / f"pair_{index:06d}.png", stitched)
            stitched_count += 1
    finally:
        left_source.close()
        right_source.close()

    logging.info("Stitched %s pair(s) into %s", stitched_count, output_dir)
    return 0 if stitched_count else 1


if __name__ == "__main__":
    raise SystemExit(main())

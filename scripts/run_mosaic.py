#!/usr/bin/env python3
"""Feed a frame source into a MosaicBuilder and save every completed mosaic.

Tiles fill the grid left-to-right, top-to-bottom. With --strips the run also
keeps a tall strip and a wide strip of the first max_frames frames
(DEFAULT_STRIP_LIMIT when max_frames is unset).
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import time
from typing import Dict, Optional


# Strips copy every frame on each update; cap them when max_frames is unset.
DEFAULT_STRIP_LIMIT = 64


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Assemble frames into grid mosaics.")
    parser.add_argument("--config", default=None, help="YAML run config (CLI flags override it)")
    parser.add_argument("--source", default=None, help="Frame directory or video file")
    parser.add_argument("--input_type", default=None, help="frames or video")
    parser.add_argument("--frame_pattern", default=None, help="Glob pattern inside the frame directory")
    parser.add_argument("--columns", type=int, default=None, help="Tiles per mosaic row")
    parser.add_argument("--rows", type=int, default=None, help="Tile rows per mosaic")
    parser.add_argument("--pixel_format", default=None, help="Pixel format tag, e.g. Mono8 or BGR8")
    parser.add_argument("--max_frames", type=int, default=None, help="Stop after this many frames")
    parser.add_argument("--strips", action="store_true", help="Also save vertical/horizontal strips")
    parser.add_argument("--output_dir", default=None, help="Output directory")
    return parser


def _setup_logging(log_path: Optional[Path]) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s %(message)s",
        handlers=handlers,
    )


def _write_summary(path: Path, summary: Dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(summary, f, ensure_ascii=False, indent=2)


def _strip_limit(cfg) -> int:
    """Number of frames the strips may hold: max_frames, else DEFAULT_STRIP_LIMIT."""
    if cfg.max_frames is not None:
        return cfg.max_frames
    logging.warning(
        "--strips without max_frames: strips keep only the first %s frame(s)", DEFAULT_STRIP_LIMIT
    )
    return DEFAULT_STRIP_LIMIT


def _resolve_config(args, MosaicRunConfig, load_run_config):
    if args.config is not None:
        cfg = load_run_config(args.config)
    else:
        if args.source is None:
            raise ValueError("Either --config or --source is required.")
        cfg = MosaicRunConfig(columns=1, rows=1, source={"path": args.source}, root_dir=Path.cwd())

    # CLI 优先于 YAML。
    if args.source is not None:
        cfg.source = dict(cfg.source, path=args.source)
    if args.input_type is not None:
        cfg.source = dict(cfg.source, input_type=args.input_type)
    if args.frame_pattern is not None:
        cfg.source = dict(cfg.source, frame_pattern=args.frame_pattern)
    if args.columns is not None:
        cfg.columns = args.columns
    if args.rows is not None:
        cfg.rows = args.rows
    if args.pixel_format is not None:
        cfg.pixel_format = args.pixel_format
    if args.max_frames is not None:
        cfg.max_frames = args.max_frames
    if args.strips:
        cfg.strips = True
    if args.output_dir is not None:
        cfg.output_dir = args.output_dir
    return cfg


def main() -> int:
    args = _build_parser().parse_args()

    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))

    from tilestitch.buffer import PixelBuffer  # noqa: E402
    from tilestitch.errors import StitchError  # noqa: E402
    from tilestitch.io import MosaicRunConfig, load_run_config, open_source  # noqa: E402
    from tilestitch.mosaic import MosaicBuilder  # noqa: E402
    from tilestitch.stitcher import stitch_horizontal, stitch_vertical  # noqa: E402
    from tilestitch.viz import save_buffer  # noqa: E402

    cfg = _resolve_config(args, MosaicRunConfig, load_run_config)
    output_dir = cfg.resolved_output_dir()
    _setup_logging(output_dir / "logs.txt")

    summary = {
        "source": cfg.source.get("path"),
        "columns": cfg.columns,
        "rows": cfg.rows,
        "pixel_format": cfg.pixel_format,
        "frames_read": 0,
        "frames_skipped": 0,
        "mosaics_saved": [],
        "strips_saved": [],
        "runtime_ms": None,
    }
    start_time = time.time()

    builder = MosaicBuilder(columns=cfg.columns, rows=cfg.rows)
    tall_strip = PixelBuffer.empty()
    wide_strip = PixelBuffer.empty()
    strip_limit = _strip_limit(cfg) if cfg.strips else 0

    source = open_source(cfg.source, root_dir=cfg.root_dir, pixel_format=cfg.resolved_pixel_format())
    try:
        for frame in source.frames(limit=cfg.max_frames):
            summary["frames_read"] += 1
            try:
                builder.append(frame)
            except StitchError as exc:
                # 单帧失败不终止采集，跳过继续。
                summary["frames_skipped"] += 1
                logging.warning("Frame %s skipped [%s]: %s", summary["frames_read"] - 1, exc.kind.value, exc)
                continue

            if builder.is_complete():
                mosaic_path = output_dir / f"mosaic_{len(summary['mosaics_saved']):04d}.png"
                save_buffer(mosaic_path, builder.latest_mosaic())
                summary["mosaics_saved"].append(mosaic_path.name)
                logging.info("Saved %s", mosaic_path)

            if cfg.strips and summary["frames_read"] <= strip_limit:
                try:
                    tall_strip = stitch_vertical(tall_strip, frame)
                    wide_strip = stitch_horizontal(wide_strip, frame)
                except StitchError as exc:
                    logging.warning("Strip update skipped: %s", exc)
    finally:
        source.close()

    if cfg.strips and not tall_strip.is_empty:
        for name, strip in (("strip_vertical.png", tall_strip), ("strip_horizontal.png", wide_strip)):
            save_buffer(output_dir / name, strip)
            summary["strips_saved"].append(name)

    if builder.images_accumulated:
        logging.info("%s tile(s) left in an incomplete grid", builder.images_accumulated)

    summary["runtime_ms"] = int((time.time() - start_time) * 1000)
    _write_summary(output_dir / "summary.json", summary)
    logging.info("Run completed: %s", output_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

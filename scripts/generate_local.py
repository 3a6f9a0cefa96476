#!/usr/bin/env python3
"""
generate_local: run the frame pipeline on one image without Redis.

Usage:
    python scripts/generate_local.py --image photo.jpg --effect pan-left --duration 3
    python scripts/generate_local.py --image photo.png --realtime --output out/
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from worker.app.tasks.frame_engine import (
    AnimationConfig,
    FrameEngineError,
    FrameScheduler,
    RealtimeClock,
    VideoPipeline,
    list_effects,
)
from worker.app.tasks.frame_engine.models import FRAME_RATE

OUT_DIR = _REPO_ROOT / "out"


def _print_progress(current: int, total: int) -> None:
    if current == total or current % FRAME_RATE == 0:
        print(f"  frame {current}/{total}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    effect_names = list_effects()

    parser = argparse.ArgumentParser(
        prog="generate_local",
        description="Animate a still image into a WebM clip.",
    )
    parser.add_argument("--image", required=True, type=Path, help="Source image file")
    parser.add_argument("--duration", type=float, default=5, help="Clip length in seconds (1-30)")
    parser.add_argument("--effect", choices=effect_names, default="zoom-in", help="Animation effect")
    parser.add_argument("--prompt", default=None, help="Optional description stored with the config")
    parser.add_argument("--output", type=Path, default=OUT_DIR, help="Output directory")
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace frames on the wall clock instead of rendering as fast as possible",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = AnimationConfig(duration_seconds=args.duration, effect=args.effect, prompt=args.prompt)
    clock = RealtimeClock(FRAME_RATE) if args.realtime else None
    pipeline = VideoPipeline(
        scheduler=FrameScheduler(fps=FRAME_RATE, clock=clock),
        progress_callback=_print_progress,
    )

    try:
        artifact = pipeline.run(args.image.read_bytes(), config)
    except FrameEngineError as e:
        print(f"generation failed ({e.kind}): {e}", file=sys.stderr)
        return 1

    path = artifact.save(args.output)
    print(json.dumps({
        "path": str(path),
        "frame_count": artifact.frame_count,
        "size": artifact.size,
        "handle": artifact.handle,
        "config": config.to_dict(),
    }, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

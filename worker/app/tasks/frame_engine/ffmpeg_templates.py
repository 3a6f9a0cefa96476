"""
FFmpeg Command Templates for Frame Streaming

Builds the FFmpeg command that reads raw RGB frames on stdin and
writes a VP9/WebM stream to stdout.
"""

import logging
import os
from dataclasses import dataclass
from typing import List

from .models import CANVAS_HEIGHT, CANVAS_WIDTH, FRAME_RATE

logger = logging.getLogger(__name__)

FFMPEG_BINARY = os.environ.get("FFMPEG_BINARY", "ffmpeg")


@dataclass
class EncoderConfig:
    """Configuration for the streaming encoder."""

    width: int = CANVAS_WIDTH
    height: int = CANVAS_HEIGHT
    fps: int = FRAME_RATE
    bitrate_bps: int = 5_000_000
    codec: str = "libvpx-vp9"
    container: str = "webm"
    pix_fmt: str = "yuv420p"
    deadline: str = "realtime"
    cpu_used: int = 8
    chunk_size: int = 64 * 1024
    flush_timeout_seconds: int = 120

    @property
    def frame_bytes(self) -> int:
        """Size of one raw RGB24 frame."""
        return self.width * self.height * 3


def build_stream_command(config: EncoderConfig, binary: str = FFMPEG_BINARY) -> List[str]:
    """
    Build FFmpeg command for stdin-to-stdout encoding.

    Input is rawvideo rgb24 at ``config.fps``; output is the
    configured codec/container written to ``pipe:1``.

    Args:
        config: EncoderConfig with resolution, rate and codec settings
        binary: FFmpeg executable

    Returns:
        List of command arguments for subprocess
    """
    cmd = [
        binary,
        "-hide_banner",
        "-loglevel", "error",
        "-f", "rawvideo",
        "-pix_fmt", "rgb24",
        "-s", f"{config.width}x{config.height}",
        "-r", str(config.fps),
        "-i", "pipe:0",
        "-an",  # No audio
        "-c:v", config.codec,
        "-b:v", str(config.bitrate_bps),
        "-pix_fmt", config.pix_fmt,
    ]

    if config.codec.startswith("libvpx"):
        cmd.extend([
            "-deadline", config.deadline,
            "-cpu-used", str(config.cpu_used),
        ])

    cmd.extend(["-f", config.container, "pipe:1"])
    return cmd

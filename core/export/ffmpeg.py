"""
FFmpeg export backend
Pipes raw RGBA frames into an ffmpeg process writing the temp output
"""

import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from utils.log import LogFn, resolve_logger

from .config import ExportConfig, ExportFormat
from .encoding import FrameStream, raw_frames, round_half_up

# ffmpeg has no direct AVIF writer here; AVIF goes through avifenc
FFMPEG_FORMATS = frozenset({
    ExportFormat.GIF,
    ExportFormat.WEBP,
    ExportFormat.PNG,
    ExportFormat.MP4,
    ExportFormat.MKV,
    ExportFormat.WEBM,
})

X264_PRESETS = [
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
]

CONTAINERS = {
    ExportFormat.MP4: "mp4",
    ExportFormat.MKV: "matroska",
    ExportFormat.WEBM: "webm",
}

EVEN_CROP = "crop=trunc(iw/2)*2:trunc(ih/2)*2"

# Keep console windows from flashing up on Windows
NO_WINDOW_FLAGS = getattr(subprocess, "CREATE_NO_WINDOW", 0)


def raw_input_args(config: ExportConfig) -> List[str]:
    return [
        "-f", "rawvideo",
        "-pixel_format", "rgba",
        "-video_size", f"{config.width}x{config.height}",
        "-framerate", str(config.fps),
        "-i", "-",
    ]


def uses_av1(config: ExportConfig) -> bool:
    return config.quality_percent > 90 and config.compression_percent > 90


def _crf(value: float) -> str:
    return str(round_half_up(value))


def build_ffmpeg_args(config: ExportConfig, temp_path: Path) -> List[str]:
    """
    Build the ffmpeg argument list (without the executable) for a format

    Args:
        config: Export configuration
        temp_path: File ffmpeg writes to

    Returns:
        Argument list

    Raises:
        ValueError: if ffmpeg has no direct writer for the format
    """
    quality = config.quality_percent
    compression = config.compression_percent
    args = ["-nostdin"] + raw_input_args(config)

    if config.format == ExportFormat.GIF:
        if quality >= 80:
            dither = "sierra2_4a"
        elif quality >= 40:
            dither = "floyd_steinberg"
        else:
            dither = "bayer:bayer_scale=5"
        stats_mode = "full" if compression < 50 else "diff"
        graph = (
            f"split[s0][s1];[s0]palettegen=stats_mode={stats_mode}[p];"
            f"[s1][p]paletteuse=dither={dither}"
        )
        args += ["-vf", graph, "-f", "gif"]

    elif config.format == ExportFormat.WEBP:
        level = round_half_up(compression / 100.0 * 6.0)
        args += [
            "-c:v", "libwebp_anim",
            "-loop", "0",
            "-q:v", str(quality),
            "-compression_level", str(level),
            "-preset", "drawing",
            "-threads", "0",
            "-f", "webp",
        ]

    elif config.format == ExportFormat.PNG:
        args += ["-plays", "0", "-c:v", "apng", "-f", "apng"]

    elif config.format.is_video:
        av1 = uses_av1(config)
        if av1 or config.format != ExportFormat.WEBM:
            args += ["-vf", EVEN_CROP]

        if av1:
            args += [
                "-c:v", "libaom-av1",
                "-pix_fmt", "yuv420p",
                "-crf", _crf(63.0 - quality / 100.0 * 63.0),
                "-cpu-used", _crf(4.0 + compression / 100.0 * 4.0),
                "-b:v", "0",
                "-strict", "experimental",
            ]
        elif config.format == ExportFormat.WEBM:
            args += [
                "-c:v", "libvpx-vp9",
                "-pix_fmt", "yuva420p",
                "-crf", _crf(63.0 - quality / 100.0 * 63.0),
                "-b:v", "0",
            ]
        else:
            preset = X264_PRESETS[round_half_up(compression / 100.0 * 8.0)]
            args += [
                "-c:v", "libx264",
                "-pix_fmt", "yuv420p",
                "-profile:v", "main",
                "-crf", _crf(51.0 - quality / 100.0 * 33.0),
                "-preset", preset,
            ]
        args += ["-f", CONTAINERS[config.format]]

    else:
        raise ValueError(f"ffmpeg cannot write {config.format.extension} directly")

    args += ["-y", str(temp_path)]
    return args


def stop_process(process: subprocess.Popen):
    """Kill a child process and reap it."""
    if process.poll() is None:
        process.kill()
    process.wait()


class FFmpegEncoder:
    """Streams frames into ffmpeg over stdin"""

    name = "ffmpeg"

    def __init__(self, ffmpeg_path: str, log_fn: Optional[LogFn] = None):
        self.ffmpeg_path = ffmpeg_path
        self.log = resolve_logger(log_fn)

    @staticmethod
    def supports(export_format: ExportFormat) -> bool:
        return export_format in FFMPEG_FORMATS

    def encode(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        cmd = [self.ffmpeg_path] + build_ffmpeg_args(config, temp_path)
        self.log(f"Running: {' '.join(cmd)}", "INFO")
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=NO_WINDOW_FLAGS,
        )
        clean = False
        try:
            for data in raw_frames(config, frames, abort_event):
                process.stdin.write(data)
            clean = not abort_event.is_set()
        except (BrokenPipeError, OSError) as e:
            self.log(f"ffmpeg stopped accepting frames: {e}", "ERROR")
        finally:
            if not clean:
                stop_process(process)
        if not clean:
            return False

        try:
            process.stdin.close()
        except BrokenPipeError as e:
            self.log(f"ffmpeg closed its input early: {e}", "ERROR")
            stop_process(process)
            return False
        return_code = process.wait()
        if return_code != 0:
            self.log(f"ffmpeg exited with code {return_code}", "ERROR")
            return False
        return True

"""
avifenc export backend
Encodes animated AVIF either through an ffmpeg -> avifenc pipe or from a
folder of PNG frames when ffmpeg is not available
"""

import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional

from utils.log import LogFn, resolve_logger

from .config import ExportConfig, ExportFormat
from .encoding import FrameStream, prepare_frame, raw_frames
from .ffmpeg import NO_WINDOW_FLAGS, raw_input_args, stop_process

AVIF_SPEED = "8"
AVIF_QUALITY = "60"
POLL_INTERVAL = 0.05


def scratch_dir_for(temp_path: Path) -> Path:
    """Folder holding PNG frames beside the temp file: <stem>.temp"""
    return temp_path.with_name(f"{temp_path.stem}.temp")


class AvifencEncoder:
    """Animated AVIF through avifenc"""

    name = "avifenc"

    def __init__(self, avifenc_path: str, ffmpeg_path: Optional[str] = None, log_fn: Optional[LogFn] = None):
        self.avifenc_path = avifenc_path
        self.ffmpeg_path = ffmpeg_path
        self.log = resolve_logger(log_fn)

    @staticmethod
    def supports(export_format: ExportFormat) -> bool:
        return export_format == ExportFormat.AVIF

    def encode(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        if self.ffmpeg_path:
            return self._encode_via_pipe(config, frames, temp_path, abort_event)
        return self._encode_via_folder(config, frames, temp_path, abort_event)

    def _encode_via_pipe(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        avif_cmd = [
            self.avifenc_path, "--stdin",
            "--speed", AVIF_SPEED,
            "-q", AVIF_QUALITY,
            "--qalpha", AVIF_QUALITY,
            "-o", str(temp_path),
        ]
        ffmpeg_cmd = [self.ffmpeg_path] + raw_input_args(config) + [
            "-f", "yuv4mpegpipe",
            "-strict", "-1",
            "-pix_fmt", "yuva444p",
            "-",
        ]
        self.log("Encoding AVIF through ffmpeg -> avifenc", "INFO")

        avif_proc = subprocess.Popen(
            avif_cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=NO_WINDOW_FLAGS,
        )
        ffmpeg_proc = subprocess.Popen(
            ffmpeg_cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            creationflags=NO_WINDOW_FLAGS,
        )

        # ffmpeg must be able to flush even while avifenc is busy
        def bridge():
            try:
                shutil.copyfileobj(ffmpeg_proc.stdout, avif_proc.stdin)
            except OSError as e:
                self.log(f"AVIF pipe broke: {e}", "WARNING")
            finally:
                ffmpeg_proc.stdout.close()
                try:
                    avif_proc.stdin.close()
                except BrokenPipeError:
                    self.log("avifenc closed its input early", "WARNING")

        bridge_thread = threading.Thread(target=bridge, name="avif-bridge", daemon=True)
        bridge_thread.start()

        clean = False
        try:
            for data in raw_frames(config, frames, abort_event):
                ffmpeg_proc.stdin.write(data)
            ffmpeg_proc.stdin.close()
            clean = not abort_event.is_set()
        except (BrokenPipeError, OSError) as e:
            self.log(f"ffmpeg stopped accepting frames: {e}", "ERROR")
        finally:
            if not clean:
                stop_process(ffmpeg_proc)
                stop_process(avif_proc)
                bridge_thread.join()

        if not clean:
            return False

        bridge_thread.join()
        ffmpeg_proc.wait()
        return_code = avif_proc.wait()
        if return_code != 0:
            self.log(f"avifenc exited with code {return_code}", "ERROR")
            return False
        return True

    def _encode_via_folder(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        work_dir = scratch_dir_for(temp_path)
        if work_dir.exists():
            shutil.rmtree(work_dir)
        work_dir.mkdir(parents=True)

        try:
            frame_paths: List[Path] = []
            for index, (_, image) in enumerate(frames):
                if abort_event.is_set():
                    return False
                path = work_dir / f"frame_{index:05d}.png"
                prepare_frame(image, config).save(path, format='PNG')
                frame_paths.append(path)

            if not frame_paths or abort_event.is_set():
                return False

            cmd = [
                self.avifenc_path,
                "--speed", AVIF_SPEED,
                "-q", AVIF_QUALITY,
                "-o", str(temp_path),
            ] + [str(p) for p in frame_paths]
            self.log(f"Encoding {len(frame_paths)} PNG frames with avifenc", "INFO")
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=NO_WINDOW_FLAGS,
            )
            while process.poll() is None:
                if abort_event.is_set():
                    stop_process(process)
                    return False
                time.sleep(POLL_INTERVAL)

            if process.returncode != 0:
                self.log(f"avifenc exited with code {process.returncode}", "ERROR")
                return False
            return True
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

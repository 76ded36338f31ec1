"""
Export Orchestrator
Runs an export on a worker thread: picks an encoder backend, streams rendered
frames into it and commits the output atomically
"""

import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

from PIL import Image

from utils.log import LogFn, resolve_logger
from utils.tool_paths import ToolPaths

from ..jobs import BackgroundJob
from .avifenc import AvifencEncoder
from .config import ExportConfig, ExportFormat
from .encoding import NativeEncoder
from .ffmpeg import FFMPEG_FORMATS, FFmpegEncoder

# frame number -> premultiplied RGBA image
FrameProducer = Callable[[int], Image.Image]

BACKEND_AVIFENC = "avifenc"
BACKEND_FFMPEG = "ffmpeg"
BACKEND_NATIVE = "native"


class ExportStatus:
    """Messages emitted by an export job"""

    @dataclass(frozen=True)
    class Progress:
        frames: int
        total: int

    @dataclass(frozen=True)
    class Finished:
        path: Path

    @dataclass(frozen=True)
    class Failed:
        message: str

    @dataclass(frozen=True)
    class Aborted:
        pass

    TERMINAL = (Finished, Failed, Aborted)


def select_backend(export_format: ExportFormat, tools: ToolPaths) -> Optional[str]:
    """
    Pick the encoder backend for a format

    A specialized tool wins when installed; otherwise the built-in encoder
    handles its reduced format set. None means nothing can write the format.
    """
    if export_format == ExportFormat.AVIF and tools.has_avifenc:
        return BACKEND_AVIFENC
    if export_format in FFMPEG_FORMATS and tools.has_ffmpeg:
        return BACKEND_FFMPEG
    if NativeEncoder.supports(export_format):
        return BACKEND_NATIVE
    return None


def create_encoder(backend: str, tools: ToolPaths, log_fn: LogFn):
    if backend == BACKEND_AVIFENC:
        return AvifencEncoder(tools.avifenc, tools.ffmpeg, log_fn=log_fn)
    if backend == BACKEND_FFMPEG:
        return FFmpegEncoder(tools.ffmpeg, log_fn=log_fn)
    return NativeEncoder(log_fn=log_fn)


def _remove_file(path: Path, log: LogFn):
    if path.exists():
        path.unlink()
        log(f"Removed temporary file {path.name}", "INFO")


def run_export(
    config: ExportConfig,
    frame_producer: FrameProducer,
    emit: Callable[[object], None],
    abort_event: threading.Event,
    tools: ToolPaths,
    log_fn: Optional[LogFn] = None,
):
    """
    Encode one export synchronously

    Frames are rendered in export order, the abort flag is checked before
    each one, and the temp file only replaces the final path after the
    encoder succeeded on a job that was not aborted.

    Returns:
        The terminal ExportStatus
    """
    log = resolve_logger(log_fn)
    backend = select_backend(config.format, tools)
    if backend is None:
        message = f"No encoder available for {config.format.extension.upper()}"
        log(message, "ERROR")
        return ExportStatus.Failed(message)

    final_path = config.output_path
    final_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = config.temp_path
    total = config.frame_count

    log(f"Export: {total} frames to {final_path.name} using {backend} encoder", "INFO")

    def frame_stream() -> Iterator[Tuple[int, Image.Image]]:
        for index, frame_number in enumerate(config.frame_numbers()):
            if abort_event.is_set():
                return
            image = frame_producer(frame_number)
            emit(ExportStatus.Progress(index + 1, total))
            yield frame_number, image

    encoder = create_encoder(backend, tools, log)
    committed = False
    try:
        success = encoder.encode(config, frame_stream(), temp_path, abort_event)

        if abort_event.is_set():
            log("Export aborted", "WARNING")
            return ExportStatus.Aborted()
        if not success or not temp_path.exists():
            message = f"{backend} encoder failed"
            log(message, "ERROR")
            return ExportStatus.Failed(message)

        os.replace(temp_path, final_path)
        committed = True
        log(f"Exported to: {final_path}", "SUCCESS")
        return ExportStatus.Finished(final_path)
    finally:
        if not committed:
            _remove_file(temp_path, log)


def start_encoding(
    config: ExportConfig,
    frame_producer: FrameProducer,
    status_queue: Optional[queue.Queue] = None,
    abort_event: Optional[threading.Event] = None,
    tools: Optional[ToolPaths] = None,
    log_fn: Optional[LogFn] = None,
) -> BackgroundJob:
    """
    Start an export on a worker thread

    Args:
        config: Export configuration
        frame_producer: Renders one frame number to a premultiplied RGBA image
        status_queue: Queue receiving ExportStatus messages
        abort_event: Cooperative cancellation flag
        tools: External encoders; discovered from PATH and the tools dir when None
        log_fn: Log callback

    Returns:
        The running job; poll it until a terminal ExportStatus arrives
    """
    log = resolve_logger(log_fn)
    resolved_tools = tools if tools is not None else ToolPaths.discover()

    def run(emit, abort):
        return run_export(config, frame_producer, emit, abort, resolved_tools, log)

    def on_error(exc: BaseException):
        # run_export has already removed the temp file
        return ExportStatus.Failed(str(exc) or exc.__class__.__name__)

    job = BackgroundJob(
        run,
        on_error=on_error,
        name="export",
        status_queue=status_queue,
        abort_event=abort_event,
        log_fn=log,
    )
    return job.start()

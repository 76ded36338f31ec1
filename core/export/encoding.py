"""
Export encoding
Frame preparation shared by every backend and the built-in Pillow encoder
"""

import threading
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np
from PIL import Image

from utils.log import LogFn, resolve_logger

from .config import ExportConfig, ExportFormat

# (frame_number, premultiplied RGBA image) pairs in export order
FrameStream = Iterable[Tuple[int, Image.Image]]

NATIVE_FORMATS = frozenset({
    ExportFormat.GIF,
    ExportFormat.WEBP,
    ExportFormat.PNG,
    ExportFormat.ZIP,
})

GIF_TRANSPARENCY_THRESHOLD = 128
GIF_TRANSPARENT_INDEX = 255
GIF_MIN_DELAY_TICKS = 2


def round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def unpremultiply_image(image: Image.Image) -> Image.Image:
    """Convert a premultiplied-alpha image to straight alpha."""
    if image.mode != 'RGBA':
        image = image.convert('RGBA')
    arr = np.array(image, dtype=np.float32)
    alpha = arr[..., 3:4]
    mask = alpha > 0.0
    safe_alpha = np.where(mask, alpha, 1.0)
    arr[..., :3] = np.where(mask, arr[..., :3] * 255.0 / safe_alpha, 0.0)
    arr[..., :3] = np.clip(arr[..., :3], 0.0, 255.0)
    return Image.fromarray(arr.astype(np.uint8), 'RGBA')


def prepare_frame(image: Image.Image, config: ExportConfig) -> Image.Image:
    """Straight-alpha RGBA frame at the configured output size."""
    frame = unpremultiply_image(image)
    if frame.size != (config.width, config.height):
        frame = frame.resize((config.width, config.height), Image.Resampling.LANCZOS)
    return frame


def gif_delay_ticks(delay_ms: float) -> int:
    """GIF frame delay in centiseconds; most viewers ignore anything below 2."""
    return max(GIF_MIN_DELAY_TICKS, round_half_up(delay_ms / 10.0))


def to_gif_frame(image: Image.Image) -> Image.Image:
    """
    Convert a straight-alpha RGBA frame to a palette frame

    GIF only supports 1-bit transparency, so pixels with alpha below 128
    become the reserved transparent palette index.
    """
    alpha = np.array(image.split()[3])
    rgb_image = image.convert('RGB')
    # Reserve one color for transparency
    palette_image = rgb_image.convert(
        'P',
        palette=Image.Palette.ADAPTIVE,
        colors=GIF_TRANSPARENT_INDEX,
        dither=Image.Dither.FLOYDSTEINBERG,
    )
    palette = palette_image.getpalette() or []
    while len(palette) < GIF_TRANSPARENT_INDEX * 3 + 3:
        palette.extend([0, 0, 0])
    palette[GIF_TRANSPARENT_INDEX * 3:GIF_TRANSPARENT_INDEX * 3 + 3] = [255, 0, 255]

    palette_array = np.array(palette_image)
    palette_array[alpha < GIF_TRANSPARENCY_THRESHOLD] = GIF_TRANSPARENT_INDEX

    final_image = Image.fromarray(palette_array, mode='P')
    final_image.putpalette(palette)
    final_image.info['transparency'] = GIF_TRANSPARENT_INDEX
    return final_image


def png_bytes(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


class NativeEncoder:
    """Built-in encoder for GIF, WebP, animated PNG and PNG-sequence ZIP"""

    name = "native"

    def __init__(self, log_fn: Optional[LogFn] = None):
        self.log = resolve_logger(log_fn)

    @staticmethod
    def supports(export_format: ExportFormat) -> bool:
        return export_format in NATIVE_FORMATS

    def encode(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        """
        Encode frames into temp_path

        Returns:
            True when every frame was written and the job was not aborted
        """
        if config.format == ExportFormat.ZIP:
            return self._encode_zip(config, frames, temp_path, abort_event)

        prepared: List[Image.Image] = []
        for _, image in frames:
            if abort_event.is_set():
                return False
            frame = prepare_frame(image, config)
            if config.format == ExportFormat.GIF:
                frame = to_gif_frame(frame)
            prepared.append(frame)

        if abort_event.is_set() or not prepared:
            return False

        if config.format == ExportFormat.GIF:
            self._save_gif(config, prepared, temp_path)
        elif config.format == ExportFormat.WEBP:
            self._save_webp(config, prepared, temp_path)
        elif config.format == ExportFormat.PNG:
            self._save_apng(config, prepared, temp_path)
        else:
            self.log(f"Native encoder cannot write {config.format.extension}", "ERROR")
            return False
        return True

    def _save_gif(self, config: ExportConfig, frames: List[Image.Image], temp_path: Path):
        duration = gif_delay_ticks(config.frame_delay_ms) * 10
        frames[0].save(
            temp_path,
            format='GIF',
            save_all=True,
            append_images=frames[1:],
            duration=duration,
            loop=0,
            transparency=GIF_TRANSPARENT_INDEX,
            disposal=2,  # Restore to background between frames
        )

    def _save_webp(self, config: ExportConfig, frames: List[Image.Image], temp_path: Path):
        frames[0].save(
            temp_path,
            format='WEBP',
            save_all=True,
            append_images=frames[1:],
            duration=round_half_up(config.frame_delay_ms),
            loop=0,
            quality=config.quality_percent,
            lossless=config.quality_percent >= 100,
            method=round_half_up(config.compression_percent / 100.0 * 6.0),
        )

    def _save_apng(self, config: ExportConfig, frames: List[Image.Image], temp_path: Path):
        frames[0].save(
            temp_path,
            format='PNG',
            save_all=True,
            append_images=frames[1:],
            duration=round_half_up(config.frame_delay_ms),
            loop=0,
            disposal=1,
            compress_level=round_half_up(config.compression_percent / 100.0 * 9.0),
        )

    def _encode_zip(
        self,
        config: ExportConfig,
        frames: FrameStream,
        temp_path: Path,
        abort_event: threading.Event,
    ) -> bool:
        method = zipfile.ZIP_STORED if config.compression_percent == 0 else zipfile.ZIP_DEFLATED
        written = 0
        with zipfile.ZipFile(temp_path, 'w', compression=method) as archive:
            for frame_number, image in frames:
                if abort_event.is_set():
                    return False
                frame = prepare_frame(image, config)
                archive.writestr(f"{config.base_name}.{frame_number}f.png", png_bytes(frame))
                written += 1
        return written > 0 and not abort_event.is_set()


def raw_frames(config: ExportConfig, frames: FrameStream, abort_event: threading.Event) -> Iterator[bytes]:
    """Straight-alpha RGBA bytes for each frame, stopping early on abort."""
    for _, image in frames:
        if abort_event.is_set():
            return
        yield prepare_frame(image, config).tobytes()


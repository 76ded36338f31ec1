"""
Export configuration
Output formats, the per-export settings and output naming helpers
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Tuple


class ExportFormat(Enum):
    GIF = "gif"
    WEBP = "webp"
    AVIF = "avif"
    PNG = "png"
    MP4 = "mp4"
    MKV = "mkv"
    WEBM = "webm"
    ZIP = "zip"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def is_video(self) -> bool:
        return self in (ExportFormat.MP4, ExportFormat.MKV, ExportFormat.WEBM)

    @classmethod
    def from_name(cls, name: str) -> "ExportFormat":
        """Look a format up by extension, case-insensitive; unknown names raise ValueError."""
        return cls(name.strip().lower().lstrip('.'))


@dataclass
class ExportConfig:
    """Everything one export job needs besides the frames themselves"""
    output_path: Path
    format: ExportFormat
    start_frame: int
    end_frame: int
    width: int
    height: int
    quality_percent: int = 100
    compression_percent: int = 0
    fps: int = 30
    base_name: str = "animation"
    pan: Tuple[float, float] = (0.0, 0.0)
    zoom: float = 1.0
    background: bool = False
    sub_frame: bool = False

    def __post_init__(self):
        self.output_path = Path(self.output_path)
        self.quality_percent = max(0, min(100, int(self.quality_percent)))
        self.compression_percent = max(0, min(100, int(self.compression_percent)))
        self.fps = max(1, int(self.fps))

    @property
    def step(self) -> int:
        return 1 if self.start_frame <= self.end_frame else -1

    @property
    def frame_count(self) -> int:
        return abs(self.end_frame - self.start_frame) + 1

    def frame_numbers(self) -> List[int]:
        """Frames to render, start and end inclusive, in export order."""
        return list(range(self.start_frame, self.end_frame + self.step, self.step))

    @property
    def frame_delay_ms(self) -> float:
        return 1000.0 / self.fps

    @property
    def temp_path(self) -> Path:
        return temp_path_for(self.output_path, self.format)


def frame_range_label(start_frame: int, end_frame: int) -> str:
    if start_frame == end_frame:
        return f"{start_frame}f"
    return f"{start_frame}f~{end_frame}f"


def ensure_extension(file_name: str, export_format: ExportFormat) -> str:
    suffix = f".{export_format.extension}"
    if file_name.lower().endswith(suffix):
        return file_name
    return file_name + suffix


def default_output_name(prefix: str, start_frame: int, end_frame: int, export_format: ExportFormat) -> str:
    """
    Build the default export file name

    Args:
        prefix: Unit/animation prefix, "animation" when empty
        start_frame: First exported frame
        end_frame: Last exported frame
        export_format: Target format, used for the extension

    Returns:
        "<prefix>.<start>f.<ext>" or "<prefix>.<start>f~<end>f.<ext>"
    """
    base = prefix or "animation"
    return ensure_extension(f"{base}.{frame_range_label(start_frame, end_frame)}", export_format)


def temp_path_for(output_path: Path, export_format: ExportFormat) -> Path:
    """Temporary sibling of the final output: <stem>.<ext>.tmp"""
    output_path = Path(output_path)
    return output_path.with_name(f"{output_path.stem}.{export_format.extension}.tmp")

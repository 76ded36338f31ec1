"""
Settings Manager
Handles export, loop search and external tool preference persistence
"""

from pathlib import Path
from typing import Optional, Tuple

from PyQt6.QtCore import QSettings

from core.export.config import ExportConfig, ExportFormat
from .log import LogFn, resolve_logger
from .tool_paths import AVIFENC, FFMPEG, ToolPaths, resolve_tool_path


class ExportSettings:
    """Container for export settings"""

    def __init__(self, settings: Optional[QSettings] = None):
        self.settings = settings if settings is not None else QSettings('UnitAnimViewer', 'ExportSettings')
        self.load()

    def load(self):
        """Load settings from storage"""
        # Export settings
        self.fps = self.settings.value('export/fps', 30, type=int)
        format_name = self.settings.value('export/format', 'gif', type=str)
        try:
            self.format = ExportFormat.from_name(format_name)
        except ValueError:
            self.format = ExportFormat.GIF
        self.quality_percent = self.settings.value('export/quality', 100, type=int)
        self.compression_percent = self.settings.value('export/compression', 0, type=int)
        self.background = self.settings.value('export/background', False, type=bool)
        self.sub_frame = self.settings.value('export/sub_frame', False, type=bool)

        # Loop search settings
        self.loop_tolerance = self.settings.value('loop/tolerance', 30, type=int)
        self.loop_min = self.settings.value('loop/min', 15, type=int)
        self.loop_max = self.settings.value('loop/max', 0, type=int)  # 0 = unbounded

        # External tools
        self.ffmpeg_path = self.settings.value('tools/ffmpeg_path', '', type=str)
        self.avifenc_path = self.settings.value('tools/avifenc_path', '', type=str)

    def save(self):
        """Save settings to storage"""
        self.settings.setValue('export/fps', self.fps)
        self.settings.setValue('export/format', self.format.extension)
        self.settings.setValue('export/quality', self.quality_percent)
        self.settings.setValue('export/compression', self.compression_percent)
        self.settings.setValue('export/background', self.background)
        self.settings.setValue('export/sub_frame', self.sub_frame)

        self.settings.setValue('loop/tolerance', self.loop_tolerance)
        self.settings.setValue('loop/min', self.loop_min)
        self.settings.setValue('loop/max', self.loop_max)

        self._store_path('tools/ffmpeg_path', self.ffmpeg_path)
        self._store_path('tools/avifenc_path', self.avifenc_path)
        self.settings.sync()

    def _store_path(self, key: str, value: str):
        if value:
            self.settings.setValue(key, value)
        else:
            self.settings.remove(key)

    @property
    def loop_max_frames(self) -> Optional[int]:
        """Maximum loop length for a search, None when unbounded."""
        return self.loop_max if self.loop_max > 0 else None

    def build_export_config(
        self,
        output_path: Path,
        start_frame: int,
        end_frame: int,
        width: int,
        height: int,
        base_name: str = "animation",
        pan: Tuple[float, float] = (0.0, 0.0),
        zoom: float = 1.0,
    ) -> ExportConfig:
        """Create an ExportConfig from the stored preferences."""
        return ExportConfig(
            output_path=Path(output_path),
            format=self.format,
            start_frame=start_frame,
            end_frame=end_frame,
            width=width,
            height=height,
            quality_percent=self.quality_percent,
            compression_percent=self.compression_percent,
            fps=self.fps,
            base_name=base_name,
            pan=pan,
            zoom=zoom,
            background=self.background,
            sub_frame=self.sub_frame,
        )

    def resolve_tools(self, tools_dir: Optional[Path] = None, log_fn: Optional[LogFn] = None) -> ToolPaths:
        """
        Resolve external encoders and keep the stored paths current

        A stored path is replaced when a different binary is found and
        removed when nothing is found anymore.
        """
        log = resolve_logger(log_fn)
        ffmpeg = resolve_tool_path(FFMPEG, self.ffmpeg_path or None, tools_dir)
        avifenc = resolve_tool_path(AVIFENC, self.avifenc_path or None, tools_dir)

        changed = False
        for label, stored, found in (
            ('ffmpeg', self.ffmpeg_path, ffmpeg),
            ('avifenc', self.avifenc_path, avifenc),
        ):
            resolved = found or ''
            if resolved == stored:
                continue
            changed = True
            if resolved:
                log(f"Using {label} at {resolved}", "INFO")
            else:
                log(f"{label} not found; stored path cleared", "WARNING")
            setattr(self, f"{label}_path", resolved)

        if changed:
            self.save()
        return ToolPaths(ffmpeg=ffmpeg, avifenc=avifenc)

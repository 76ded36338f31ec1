"""
External encoder discovery
Locates the optional ffmpeg and avifenc binaries used by exports
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

APP_DIR_NAME = "UnitAnimViewer"

FFMPEG = "ffmpeg"
AVIFENC = "avifenc"


def executable_name(tool: str) -> str:
    return f"{tool}.exe" if os.name == "nt" else tool


def get_tools_dir() -> Path:
    """Return the managed directory external tools are installed into."""
    base_dir = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or str(Path.home())
    return Path(base_dir) / APP_DIR_NAME / "tools"


def get_managed_path(tool: str, root: Optional[Path] = None) -> Path:
    """Return <tools dir>/<tool>/<binary>."""
    root = root or get_tools_dir()
    return root / tool / executable_name(tool)


def resolve_tool_path(tool: str, preferred_path: Optional[str] = None, tools_dir: Optional[Path] = None) -> Optional[str]:
    """
    Resolve a usable binary path for an external tool.

    Order of precedence:
      1. preferred_path if it exists
      2. managed local install (<tools dir>/<tool>/<binary>)
      3. Anything found on PATH
    """
    if preferred_path:
        preferred = Path(preferred_path)
        if preferred.exists():
            return str(preferred)

    local_install = get_managed_path(tool, tools_dir)
    if local_install.exists():
        return str(local_install)

    return shutil.which(tool)


@dataclass(frozen=True)
class ToolPaths:
    """Resolved binaries; None means the tool is not installed"""
    ffmpeg: Optional[str] = None
    avifenc: Optional[str] = None

    @classmethod
    def discover(
        cls,
        ffmpeg_preferred: Optional[str] = None,
        avifenc_preferred: Optional[str] = None,
        tools_dir: Optional[Path] = None,
    ) -> "ToolPaths":
        return cls(
            ffmpeg=resolve_tool_path(FFMPEG, ffmpeg_preferred, tools_dir),
            avifenc=resolve_tool_path(AVIFENC, avifenc_preferred, tools_dir),
        )

    @classmethod
    def none(cls) -> "ToolPaths":
        return cls()

    @property
    def has_ffmpeg(self) -> bool:
        return bool(self.ffmpeg)

    @property
    def has_avifenc(self) -> bool:
        return bool(self.avifenc)

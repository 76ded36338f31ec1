"""
Export module
Renders animation frames into image/video containers through interchangeable
encoder backends
"""

from .config import (
    ExportConfig,
    ExportFormat,
    default_output_name,
    temp_path_for,
)
from .orchestrator import (
    ExportStatus,
    select_backend,
    start_encoding,
    run_export,
)

__all__ = [
    'ExportConfig',
    'ExportFormat',
    'default_output_name',
    'temp_path_for',
    'ExportStatus',
    'select_backend',
    'start_encoding',
    'run_export',
]

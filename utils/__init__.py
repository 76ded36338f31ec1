"""
Utils module for the unit animation core
Contains logging helpers, external tool discovery and settings
"""

from .log import LogFn, default_logger
from .tool_paths import ToolPaths, resolve_tool_path

__all__ = [
    'LogFn',
    'default_logger',
    'ToolPaths',
    'resolve_tool_path',
]

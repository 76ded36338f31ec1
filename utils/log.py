"""
Logging helpers
Log callbacks take (message, level) with levels INFO, WARNING, ERROR, SUCCESS
"""

from typing import Callable, Optional

LogFn = Callable[[str, str], None]


def default_logger(message: str, level: str = "INFO") -> None:
    print(f"[{level}] {message}")


def resolve_logger(log_fn: Optional[LogFn]) -> LogFn:
    return log_fn or default_logger

"""
Logging setup for hosts embedding the engine.

The library itself only creates module loggers; call configure_logging()
once from an entrypoint to see them:

    from shortest_path_core.logging_config import configure_logging
    configure_logging("DEBUG")
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """
    Configure root logging if no handlers are attached yet.

    Args:
        level: logging level or level name; defaults to the configured
            ``log_level`` setting.
    """
    if level is None:
        from .config import load_settings

        level = load_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger()

    # Don't duplicate handlers if someone already configured logging.
    if root.handlers:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)

"""Logging for the publishing core.

Every module logger is a child of the ``multipost`` package logger, which
owns the only stdout handler. Raising or lowering the package level (or
setting ``MULTIPOST_LOG_LEVEL``) therefore tunes the whole pipeline at once.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

PACKAGE_LOGGER = "multipost"
LOG_LEVEL_ENV = "MULTIPOST_LOG_LEVEL"


def _env_level() -> int:
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root

    root.setLevel(_env_level())
    root.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)
    return root


def setup_logging(
    level: Optional[int] = None,
    module_name: Optional[str] = None,
) -> logging.Logger:
    """Return the logger for ``module_name`` under the package logger.

    Args:
        level: Level for this logger only; inherits the package level
            when omitted.
        module_name: Dotted name such as ``"assets.pipeline"``. ``None``
            returns the package logger itself.
    """
    root = _package_logger()
    logger = root if not module_name else root.getChild(module_name)
    if level is not None:
        logger.setLevel(level)
    return logger

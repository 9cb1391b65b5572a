# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Logging setup for RydPair.

Modules log through ``logging.getLogger(__name__)``; all of them sit below
the ``rydpair`` root logger, which gets a single rich console handler.

File: rydpair/utils/logger.py
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

ROOT_LOGGER = "rydpair"

RYDPAIR_THEME = Theme({
    "rydpair.main": "cyan",
    "rydpair.accent": "bright_yellow",
})


def setup_logging(
    level: int | str = logging.INFO,
    console: Console | None = None,
) -> logging.Logger:
    """
    Attach a RichHandler to the package root logger.

    Repeated calls only update the level; handlers are not duplicated.

    Args:
        level: Logging level for the package root
        console: Optional rich console (default: themed stderr console)

    Returns:
        The configured ``rydpair`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        if console is None:
            console = Console(theme=RYDPAIR_THEME, stderr=True)
        else:
            # Log messages carry rydpair.* markup
            console.push_theme(RYDPAIR_THEME)
        handler = RichHandler(
            console=console,
            show_path=False,
            show_time=False,
            omit_repeated_times=False,
            markup=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it for ``name``."""
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


__all__ = ["ROOT_LOGGER", "RYDPAIR_THEME", "setup_logging", "get_logger"]

"""Logging setup for applications embedding the engine."""

from __future__ import annotations

import logging
import sys

from kestrel_fsm.core.settings import get_settings


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for the engine.

    Args:
        verbose: Enable INFO level logging instead of the configured level
    """
    current = get_settings()
    log_level = logging.INFO if verbose else logging.getLevelName(current.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.WARNING
    log_format = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=log_level, format=log_format, datefmt=date_format, stream=sys.stdout, force=True
    )

    if current.debug:
        logging.getLogger().setLevel(logging.DEBUG)

"""Logging setup."""

import logging
import os
import sys
from typing import Optional


def configure_logging(run_id: Optional[str] = None, level: Optional[str] = None) -> None:
    """Configure logging for a CLI run.

    Args:
        run_id: Optional run identifier prefixed to every record
        level: Explicit level name; falls back to PROPLINE_LOG_LEVEL, then INFO
    """
    level_name = (level or os.environ.get("PROPLINE_LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    run_prefix = f"[run_id={run_id}] " if run_id else ""
    fmt = "%(asctime)s %(levelname)s " + run_prefix + "%(name)s: %(message)s"
    logging.basicConfig(
        level=log_level,
        format=fmt,
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

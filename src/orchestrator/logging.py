from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("ORCH_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    _configured = True


def set_verbose(verbose: bool) -> None:
    """Drop the orchestrator loggers to DEBUG for `--verbose` runs."""
    _ensure_base_logger()
    if verbose:
        logging.getLogger("orchestrator").setLevel(logging.DEBUG)


def attach_file_handler(log_file: Path) -> None:
    """Mirror every orchestrator log line into a rotating file."""
    _ensure_base_logger()
    root = logging.getLogger("orchestrator")
    target = os.path.abspath(log_file)
    # Do not duplicate handlers if already set
    if any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == target
        for h in root.handlers
    ):
        return
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def get_logger(name: str, log_file: Path | None = None) -> logging.Logger:
    _ensure_base_logger()
    if log_file:
        attach_file_handler(log_file)
    return logging.getLogger(name)

"""Logging setup: colored level prefixes on the console, full detail in the build log."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

LOGGER_NAME = "aetheros_builder"

_RESET = "\033[0m"
_LEVEL_COLORS = {
    logging.DEBUG: "\033[2m",
    logging.INFO: "\033[1;34m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[1;31m",
    logging.CRITICAL: "\033[1;31m",
}


class LevelPrefixFormatter(logging.Formatter):
    """Render ``[LEVEL] message`` with the prefix colored when ``color`` is set."""

    def __init__(self, *, color: bool) -> None:
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = f"[{record.levelname}]"
        if self.color:
            prefix = f"{_LEVEL_COLORS.get(record.levelno, '')}{prefix}{_RESET}"
        return f"{prefix} {message}"


class CallbackHandler(logging.Handler):
    """Forward formatted records to a line callback (used by the TUI)."""

    def __init__(self, callback: Callable[[str], None], level: int = logging.INFO) -> None:
        super().__init__(level)
        self.callback = callback
        self.setFormatter(LevelPrefixFormatter(color=False))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.callback(self.format(record))
        except Exception:
            self.handleError(record)


def configure_logging(
    log_dir: Optional[Path] = None,
    *,
    verbose: bool = False,
    console: bool = True,
) -> Optional[Path]:
    """Configure the package logger.

    The console shows INFO (DEBUG with ``verbose``), the build log under
    ``log_dir`` records everything including streamed tool output. Calling
    this again replaces the handlers installed by the previous call.

    Returns the build log path, if any.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        if getattr(handler, "_aetheros_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setLevel(logging.DEBUG if verbose else logging.INFO)
        stream.setFormatter(LevelPrefixFormatter(color=sys.stdout.isatty()))
        handlers.append(stream)

    log_path: Optional[Path] = None
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_path = Path(log_dir) / "build.log"
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
        handlers.append(file_handler)

    for handler in handlers:
        setattr(handler, "_aetheros_managed", True)
        logger.addHandler(handler)

    return log_path

"""Logging setup and progress reporting shared by the pipelines."""

import logging
from pathlib import Path
from typing import Callable, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ProgressCallback = Callable[[str, str], None]


def setup_logger(
    name: str, log_level: str | int = "INFO", log_file: Optional[str | Path] = None
) -> logging.Logger:
    """Setup logging configuration.

    Args:
        name: Logger name.
        log_level: Level for the logger and its console handler.
        log_file: Optional file to additionally write DEBUG-level records to.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class ProgressReporter:
    """Forwards stage status messages to a callback and to a logger.

    The callback is invoked synchronously, before the log record is emitted.

    Attributes:
        logger: Logger receiving every status message.
        callback: Optional ``(stage, message)`` callable.
    """

    def __init__(self, logger: logging.Logger, callback: Optional[ProgressCallback] = None) -> None:
        self.logger = logger
        self.callback = callback

    def start(self, stage: str, message: str) -> None:
        self._emit(stage, message, logging.INFO)

    def done(self, stage: str, message: str) -> None:
        self._emit(stage, message, logging.INFO)

    def failed(self, stage: str, error: Exception) -> None:
        self._emit(stage, f"{stage} failed: {error}", logging.ERROR)

    def _emit(self, stage: str, message: str, level: int) -> None:
        if self.callback is not None:
            self.callback(stage, message)
        self.logger.log(level, f"[{stage}] {message}")

import sys
import logging
from pathlib import Path
from typing import Optional, Union

from spawner.local.config import effective_settings as config

# Lifecycle lines of a supervised process are logged through 'proc.<name>'.
PROC_LOGGER_PREFIX = "proc."

DEFAULT_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
PROC_FORMAT = '%(asctime)s - %(levelname)-8s - <%(proc_name)s> - %(message)s'


class MainFormatter(logging.Formatter):
    """A custom formatter to handle supervisor logs and per-process lifecycle logs."""

    def __init__(self) -> None:
        super().__init__(DEFAULT_FORMAT)

    def format(self, record):
        # Supervisor records use the default formatting.
        if not record.name.startswith(PROC_LOGGER_PREFIX):
            return super().format(record)

        # Temporarily change the format string for the superclass call.
        record.proc_name = record.name[len(PROC_LOGGER_PREFIX):]
        original_format = self._style._fmt
        self._style._fmt = PROC_FORMAT
        try:
            return super().format(record)
        finally:
            self._style._fmt = original_format


def setup_logging(console_level: int = logging.INFO, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Configures the root logger for the application.
    This sets up handlers for the console and, optionally, a log file,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: Optional path of a file receiving every record. Defaults to LOG_FILE_PATH.
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler (conditional) ---
    log_file = log_file or config.LOG_FILE_PATH
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(MainFormatter())
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.error(f"Failed to initialize file logging handler for '{log_file}': {e}")

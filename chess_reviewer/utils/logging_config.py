# chess_reviewer/utils/logging_config.py
"""
Logging configuration for the Chess Reviewer application.

This module provides a centralized function to set up consistent logging across
the application, with distinct formatting for console and file outputs. Console
output can be routed through tqdm so log lines do not break progress bars.
"""
import logging
import sys
from typing import Iterable, List, Optional

from tqdm import tqdm

from chess_reviewer.config import settings


class TqdmLoggingHandler(logging.Handler):
    """Writes log records with `tqdm.write`, keeping active progress bars intact."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=sys.stdout)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level_str: Optional[str] = None,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    extra_handlers: Optional[Iterable[logging.Handler]] = None,
) -> None:
    """
    Configures application-wide logging by manipulating the root logger.

    Every component logger (`settings.APP_NAME + ".Component"`) inherits this
    configuration.

    Args:
        log_level_str: The desired logging level as a string (e.g., "INFO", "DEBUG").
                       If None, defaults to `settings.DEFAULT_LOG_LEVEL`.
        log_file: The path to the log file.
                  If None, defaults to `settings.DEFAULT_LOG_FILENAME`.
        log_to_console: Whether to output logs to the console.
        log_to_file: Whether to output logs to the specified log file.
        extra_handlers: Optional pre-configured handlers. If provided and
                        `log_to_console` is True, they replace the default
                        console handler.
    """
    effective_log_level_str = log_level_str or settings.DEFAULT_LOG_LEVEL
    effective_log_file = log_file or settings.DEFAULT_LOG_FILENAME

    level_val = logging.getLevelName(effective_log_level_str.upper())
    if not isinstance(level_val, int):
        logging.warning(
            f"Invalid log level string: '{effective_log_level_str}'. Defaulting to 'INFO'."
        )
        level_val = logging.INFO
        effective_log_level_str = "INFO"

    root_logger = logging.getLogger()
    root_logger.setLevel(level_val)
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_formatter = logging.Formatter("%(levelname)-8s - %(name)s - %(message)s")
    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
    )

    handlers: List[logging.Handler] = []
    if log_to_console and not extra_handlers:
        console_handler = TqdmLoggingHandler()
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(effective_log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            if handler.formatter is None:
                handler.setFormatter(console_formatter)
            handlers.append(handler)

    if not handlers:
        root_logger.addHandler(logging.NullHandler())
        return

    for handler in handlers:
        root_logger.addHandler(handler)

    # The engine wrapper library is chatty at DEBUG.
    logging.getLogger("stockfish").setLevel(max(level_val, logging.INFO))

    setup_logger = logging.getLogger(settings.APP_NAME + ".Logging")
    setup_logger.info(f"Logging initialized. Level: {effective_log_level_str.upper()}.")
    if log_to_file:
        setup_logger.info(f"Logging to file enabled: '{effective_log_file}'.")

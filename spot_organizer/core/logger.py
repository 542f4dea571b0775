"""
Logging configuration for spot-organizer.

This module sets up the logging system with two outputs:
    - Console: Colored, tqdm-compatible lines (enrichment progress bars stay intact)
    - Log file (optional): Complete log of all events (DEBUG and above)

Level policy used across the package:
    - DEBUG: per-item progress (cache hits, single fetches)
    - INFO: summaries (tracks enriched, playlist created)
    - WARNING: degraded enrichment, token refresh attempts
    - ERROR: token refresh failure, primary API failures

Usage:
    from spot_organizer.core.logger import setup_logging, get_logger

    setup_logging("INFO")  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Fetched 42 tracks")
"""

import logging
import sys
from pathlib import Path
from typing import TextIO

import colorama
from colorama import Back, Fore, Style
from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"

# Third-party loggers that are too chatty at INFO
EXTERNAL_LOGGERS = ("aiohttp", "spotipy", "urllib3", "asyncio")


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output."""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: str = CONSOLE_LOG_FORMAT, use_colors: bool = True) -> None:
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)

        # Work on a copy so file handlers still see the plain level name
        record_copy = logging.makeLogRecord(record.__dict__)
        record_copy.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
        return super().format(record_copy)


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    tqdm progress bars write to stderr and use carriage returns to update in-place.
    Standard logging to stderr can interfere with this, causing visual glitches.
    This handler uses tqdm.write() which properly coordinates with active progress bars.

    Attributes:
        stream: The output stream (defaults to sys.stderr).

    Example:
        handler = TqdmLoggingHandler()
        handler.setFormatter(ColoredFormatter())
        logger.addHandler(handler)
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """
        Initialize the tqdm-compatible handler.

        Args:
            stream: Output stream for log messages. Defaults to stderr
                    which is where tqdm also writes by default.
        """
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        """
        Emit a log record using tqdm.write() for proper progress bar compatibility.

        Args:
            record: The log record to emit.
        """
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
            self.flush()
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        if self.stream and hasattr(self.stream, "flush"):
            self.stream.flush()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    colored_output: bool = True
) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file receiving every record at DEBUG and above.
                  Parent directories are created if needed.
        colored_output: Whether console level names are colored.

    Behavior:
        1. Configure root logger level to DEBUG and drop existing handlers
        2. Add console handler (TqdmLoggingHandler) at the requested level
        3. Add UTF-8 file handler at DEBUG if log_file is given
        4. Raise chatty third-party loggers to WARNING

    Example:
        config = load_config()
        setup_logging(config.logging.level, config.logging.file)
    """
    colorama.init()

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredFormatter(use_colors=colored_output))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in EXTERNAL_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("spot_organizer").debug(
        f"Logging initialized - Level: {level}, File: {log_file}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    This is a convenience wrapper around logging.getLogger() that ensures
    consistent logger naming throughout the application.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'spot_organizer.spotify.http'.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().
    """
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Behavior:
        1. Flush all handlers
        2. Close all handlers
        3. Remove all handlers from root logger
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
        root_logger.removeHandler(handler)

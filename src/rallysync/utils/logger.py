"""Logging configuration for RallySync."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Union

# Library loggers whose warnings matter during a countdown (TTS and audio)
_LIBRARY_WARNINGS = ("aiohttp", "pydub")


def _console_filter(record: logging.LogRecord) -> bool:
    if record.name.startswith("rallysync"):
        return True
    return record.levelno >= logging.WARNING and record.name.startswith(_LIBRARY_WARNINGS)


def setup_logger(
    verbose: bool = False,
    save_to_file: bool = False,
    log_dir: Union[str, Path] = "data/logs",
) -> logging.Logger:
    """
    Configure logging for a RallySync process.

    The console shows RallySync's own records plus library warnings. Verbose
    mode adds per-announcement debug lines stamped with the wall clock, so a
    countdown's pacing can be checked from the terminal.

    Args:
        verbose: If True, set level to DEBUG, otherwise INFO
        save_to_file: If True, also log everything to rallysync_<timestamp>.log
        log_dir: Directory for log files

    Returns:
        Configured root logger
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    if verbose:
        console_handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", datefmt="%H:%M:%S"))
    else:
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.addFilter(_console_filter)
    logger.addHandler(console_handler)

    if save_to_file:
        try:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            log_file = log_path / f"rallysync_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
            )
            logger.addHandler(file_handler)

            logging.getLogger(__name__).info(f"Logging to file: {log_file}")
        except OSError as e:
            logger.error(f"Failed to create file handler: {e}")

    return logger

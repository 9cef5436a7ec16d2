"""Root logger configuration for the ledgerfeed CLI.

Log records go to stdout and, when logging.file is set, to a UTF-8 file.
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None

# Chatty third-party loggers kept at WARNING unless DEBUG is requested
NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3")

def resolve_log_level(level: Union[int, str, None], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Turns 'debug', 'INFO', 20 or None into a logging level."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default

def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Replaces the root logger handlers with stdout (and optionally file) handlers.

    Args:
        log_level: Level name or number; unknown names fall back to WARNING.
        log_format: logging.Formatter format string.
        log_file: Extra file destination, skipped with an error log if it cannot be opened.
    """
    level = resolve_log_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Repeated setup must not duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.info(f"Logging configured. Level={logging.getLevelName(level)}")

"""
Utility functions for the huesync library
"""
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Callable, Any, Optional


LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(name: str = "huesync",
                  log_file: Optional[str] = None,
                  debug_file: Optional[str] = None,
                  level: int = logging.INFO) -> logging.Logger:
    """
    Configure a logger with rotating file, debug file and console handlers.

    Args:
        name: Logger name
        log_file: Rotating log of everything above DEBUG, if given
        debug_file: Plain file receiving DEBUG and above, if given
        level: Console level

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        # Exclude debug messages
        file_handler.addFilter(lambda record: record.levelno != logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(file_handler)

    if debug_file:
        debug_handler = logging.FileHandler(debug_file)
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(debug_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s.%(msecs)03d %(levelname)s: %(message)s', datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)
    return logger


def run_with_keyboard_interrupt(main_func: Callable[[], Any]) -> None:
    """
    Run an async main function with graceful KeyboardInterrupt handling.

    Args:
        main_func: The async main function to run
    """
    try:
        asyncio.run(main_func())
    except KeyboardInterrupt:
        print("\n🛑 Interrupted by user (Ctrl+C)")
        print("Shutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

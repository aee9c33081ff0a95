"""Logger module for zipload

Usage:
    from zipload.logger import Logger, ConsoleLogger, session_logger

    # Use the shared logger
    session_logger.info("zipload.run_start", event="zipload.run_start", users=10)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            # Your custom implementation
            pass
"""

import logging

from .base import Logger
from .console_logger import ConsoleLogger

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = ConsoleLogger(level=logging.INFO)

__all__ = [
    "Logger",
    "ConsoleLogger",
    "session_logger",
]

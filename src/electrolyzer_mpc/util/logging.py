"""This module provides a centralized utility for configuring and managing application logging.

It defines the `LoggingUtil` class, which offers a static method to retrieve
pre-configured logger instances for the control engine. Every strategy, the
learned predictor and the monitoring jobs log through it, so that a single
`LOGLEVEL` environment variable governs the verbosity of the whole engine
and an optional `LOGFILE` mirrors the console output to disk.
"""

import logging
import os

LOG_FORMAT = "%(asctime)s - [%(name)s][%(levelname)s] %(message)s"


class LoggingUtil:
    """A utility class for configuring and retrieving loggers.

    The log level can be controlled via the `LOGLEVEL` environment variable and
    a file handler is attached when `LOGFILE` is set.
    """

    @staticmethod
    def get_logger(logger_name: str) -> logging.Logger:
        """Retrieves a configured logger instance.

        The logger's level is determined by the 'LOGLEVEL' environment variable.
        If 'LOGLEVEL' is not set or is not a known level name, it defaults to INFO.

        Args:
            logger_name: The name of the logger to retrieve (typically `__name__`
                         of the calling module).

        Returns:
            A configured `logging.Logger` instance.
        """
        logger = logging.getLogger(logger_name)
        logger.setLevel(LoggingUtil._resolve_level(os.getenv("LOGLEVEL")))

        # Ensure that handlers are not duplicated if get_logger is called multiple times
        if not logger.handlers:
            log_formatter = logging.Formatter(LOG_FORMAT)

            console_handler = logging.StreamHandler()
            console_handler.setFormatter(log_formatter)
            logger.addHandler(console_handler)

            log_file = os.getenv("LOGFILE")
            if log_file:
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(log_formatter)
                logger.addHandler(file_handler)

        return logger

    @staticmethod
    def _resolve_level(level_name: str | None) -> int:
        """Maps a level name such as 'debug' or 'WARNING' to its numeric value."""
        if not level_name:
            return logging.INFO
        level = logging.getLevelName(level_name.upper())
        return level if isinstance(level, int) else logging.INFO

"""Centralized logging configuration for the catpoint security system."""

import logging
import logging.handlers
import os
import sys
from typing import Optional, Dict
from pathlib import Path

ROOT_LOGGER_NAME = "catpoint_security"


class StructuredFormatter(logging.Formatter):
    """Custom formatter that adds structured information to log records."""

    def __init__(self, include_context: bool = True):
        self.include_context = include_context
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured information."""
        base_format = "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"

        if self.include_context and hasattr(record, 'context'):
            context_str = " | ".join([f"{k}={v}" for k, v in record.context.items()])
            base_format += f" | Context: {context_str}"

        if record.levelno >= logging.ERROR and record.exc_info:
            base_format += " | %(pathname)s:%(lineno)d"

        formatter = logging.Formatter(base_format)
        return formatter.format(record)


class ContextFilter(logging.Filter):
    """Filter that tags records with the emitting component."""

    def __init__(self, component_name: Optional[str] = None):
        super().__init__()
        self.component_name = component_name
        self.process_id = os.getpid()

    def filter(self, record: logging.LogRecord) -> bool:
        record.process_id = self.process_id
        if self.component_name:
            record.component = self.component_name
        return True


class LoggingManager:
    """Centralized logging management for the catpoint security system.

    Console output is always configured on the package logger. Rotating
    file handlers are added only when a log directory is given.
    """

    def __init__(self, log_dir: Optional[str] = None):
        self.log_dir = Path(log_dir) if log_dir else None

        self.log_level = logging.INFO
        self.max_log_size = 10 * 1024 * 1024  # 10MB
        self.backup_count = 5

        self.component_loggers: Dict[str, logging.Logger] = {}

        self._setup_package_logger()

    @property
    def main_log_file(self) -> Optional[Path]:
        return self.log_dir / "catpoint.log" if self.log_dir else None

    @property
    def error_log_file(self) -> Optional[Path]:
        return self.log_dir / "errors.log" if self.log_dir else None

    def _setup_package_logger(self) -> None:
        """Setup the package logger configuration."""
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        package_logger.setLevel(self.log_level)

        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(StructuredFormatter(include_context=False))
        package_logger.addHandler(console_handler)

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

            main_file_handler = logging.handlers.RotatingFileHandler(
                self.main_log_file,
                maxBytes=self.max_log_size,
                backupCount=self.backup_count
            )
            main_file_handler.setLevel(logging.DEBUG)
            main_file_handler.setFormatter(StructuredFormatter(include_context=True))
            package_logger.addHandler(main_file_handler)

            # Errors and critical only
            error_file_handler = logging.handlers.RotatingFileHandler(
                self.error_log_file,
                maxBytes=self.max_log_size,
                backupCount=self.backup_count
            )
            error_file_handler.setLevel(logging.ERROR)
            error_file_handler.setFormatter(StructuredFormatter(include_context=True))
            package_logger.addHandler(error_file_handler)

    def get_component_logger(self, component_name: str,
                             log_level: Optional[int] = None) -> logging.Logger:
        """Get or create a logger for a specific component."""
        if component_name in self.component_loggers:
            return self.component_loggers[component_name]

        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}")

        if log_level:
            logger.setLevel(log_level)

        logger.addFilter(ContextFilter(component_name))

        self.component_loggers[component_name] = logger
        return logger

    def set_log_level(self, level: int) -> None:
        """Set the package log level."""
        self.log_level = level
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)

        for logger in self.component_loggers.values():
            logger.setLevel(level)


# Global logging manager instance
logging_manager = LoggingManager()


def get_logger(component_name: str) -> logging.Logger:
    """Convenience function to get a component logger."""
    return logging_manager.get_component_logger(component_name)


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> LoggingManager:
    """Setup centralized logging system."""
    global logging_manager

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Carry existing component loggers over so module-level loggers keep working
    previous = logging_manager.component_loggers
    logging_manager = LoggingManager(log_dir)
    logging_manager.component_loggers.update(previous)
    logging_manager.set_log_level(numeric_level)

    return logging_manager

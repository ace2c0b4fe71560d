"""
Logging Configuration and Progress Reporting

This module provides configurable logging levels and a console progress
indicator for transcription jobs.

Supports:
- Configurable logging levels (debug, info, warning, error)
- Optional log file output with rotation
- Masking of credential-like values when logging configuration
- Job progress display for the command line
"""

import dataclasses
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO


SENSITIVE_MARKERS = ("key", "token", "secret", "password", "credential")


class ProgressIndicator:
    """
    Single-line progress display for one transcription job.

    Driven by job progress fractions rather than step counts.
    """

    def __init__(self, description: str, stream: Optional[TextIO] = None, min_interval: float = 0.5):
        self.description = description
        self.stream = stream or sys.stderr
        self.min_interval = min_interval
        self.fraction = 0.0
        self.start_time = time.time()
        self._last_update = 0.0

    def update(self, fraction: float, message: Optional[str] = None) -> None:
        """Update the display; redraws at most every ``min_interval`` seconds."""
        self.fraction = max(self.fraction, min(max(fraction, 0.0), 1.0))

        current_time = time.time()
        if current_time - self._last_update < self.min_interval and self.fraction < 1.0:
            return
        self._last_update = current_time

        elapsed = current_time - self.start_time
        percentage = self.fraction * 100
        status = f"{self._create_progress_bar(percentage)} {percentage:.1f}%"
        display_message = message or self.description
        self.stream.write(f"\r{display_message} {status} [{elapsed:.1f}s]")
        self.stream.flush()

    def finish(self, message: Optional[str] = None, ok: bool = True) -> None:
        """Complete the progress line."""
        elapsed = time.time() - self.start_time
        final_message = message or f"{self.description} completed"
        marker = "[OK]" if ok else "[FAILED]"
        self.stream.write(f"\r{final_message} {marker} [{elapsed:.1f}s]\n")
        self.stream.flush()

    def _create_progress_bar(self, percentage: float, width: int = 20) -> str:
        """Create a text-based progress bar."""
        filled = int(width * percentage / 100)
        bar = "#" * filled + "-" * (width - filled)
        return f"[{bar}]"


class LoggingConfig:
    """
    Centralized logging configuration.

    Provides configurable logging levels and optional file output.
    """

    def __init__(self):
        self._configured = False
        self._log_file_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None

    def configure_logging(
        self,
        level: str = "info",
        log_file: Optional[str] = None,
        include_timestamps: bool = True,
        max_log_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        force: bool = False
    ) -> None:
        """
        Configure logging for the application.

        Args:
            level: Logging level (debug, info, warning, error)
            log_file: Optional log file path
            include_timestamps: Whether to include timestamps in console messages
            max_log_file_size: Maximum log file size before rotation
            backup_count: Number of backup log files to keep
            force: Reconfigure even if already configured
        """
        if self._configured and not force:
            return

        log_level = self._get_log_level(level)
        debug_mode = log_level == logging.DEBUG

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in (self._console_handler, self._log_file_handler):
            if handler is not None:
                root_logger.removeHandler(handler)
                handler.close()
        self._log_file_handler = None

        self._console_handler = logging.StreamHandler(sys.stderr)
        self._console_handler.setLevel(log_level)
        self._console_handler.setFormatter(self._create_console_formatter(include_timestamps, debug_mode))
        root_logger.addHandler(self._console_handler)

        if log_file:
            self._configure_file_logging(log_file, log_level, max_log_file_size, backup_count)

        self._configured = True
        logging.getLogger(__name__).debug(f"Logging configured: level={level}, file={log_file}")

    def _get_log_level(self, level_str: str) -> int:
        """Convert string log level to logging constant."""
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR
        }
        return level_map.get((level_str or "info").lower(), logging.INFO)

    def _create_console_formatter(self, include_timestamps: bool, debug_mode: bool) -> logging.Formatter:
        parts = []
        if include_timestamps:
            parts.append("%(asctime)s")
        if debug_mode:
            parts.append("%(threadName)s")
            parts.append("%(name)s")
        parts.extend(["%(levelname)s", "%(message)s"])

        return logging.Formatter(
            " - ".join(parts),
            datefmt="%H:%M:%S" if not debug_mode else "%Y-%m-%d %H:%M:%S"
        )

    def _configure_file_logging(self, log_file: str, log_level: int, max_size: int, backup_count: int) -> None:
        """Configure file logging with rotation."""
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            self._log_file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            self._log_file_handler.setLevel(log_level)
            self._log_file_handler.setFormatter(logging.Formatter(
                "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logging.getLogger().addHandler(self._log_file_handler)
        except OSError as e:
            # Continue with console only
            logging.getLogger(__name__).warning(f"Failed to setup log file {log_file}: {e}")

    @staticmethod
    def mask_sensitive(values: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy with credential-like values masked."""
        masked = {}
        for key, value in values.items():
            if isinstance(value, dict):
                masked[key] = LoggingConfig.mask_sensitive(value)
            elif any(marker in key.lower() for marker in SENSITIVE_MARKERS):
                masked[key] = "***MASKED***" if value else None
            else:
                masked[key] = value
        return masked

    def log_configuration_details(self, config: Any) -> None:
        """Log configuration details at debug level.

        Accepts a dict or a dataclass instance such as TranscriptionConfig.
        """
        logger = logging.getLogger(__name__)
        if not logger.isEnabledFor(logging.DEBUG):
            return

        values = dataclasses.asdict(config) if dataclasses.is_dataclass(config) else dict(config)
        logger.debug("=== Configuration Details ===")
        for key, value in self.mask_sensitive(values).items():
            logger.debug(f"  {key}: {value}")
        logger.debug("=== End Configuration ===")

    def log_provider_selection(self, order: List[str], configured: List[str]) -> None:
        logger = logging.getLogger(__name__)
        logger.info(f"Provider order: {' -> '.join(order)}")
        logger.debug(f"Configured providers: {', '.join(configured) or 'none'}")

    def log_operation_timing(self, operation: str, duration: float) -> None:
        """Log operation timing information."""
        logger = logging.getLogger(__name__)
        if duration < 1.0:
            logger.debug(f"{operation} completed in {duration*1000:.0f}ms")
        else:
            logger.info(f"{operation} completed in {duration:.1f}s")

    def is_debug_enabled(self) -> bool:
        return logging.getLogger().isEnabledFor(logging.DEBUG)


# Global logging configuration instance
logging_config = LoggingConfig()


def configure_logging(level: str = "info", log_file: Optional[str] = None) -> None:
    """
    Convenience function to configure logging.

    Args:
        level: Logging level (debug, info, warning, error)
        log_file: Optional log file path
    """
    logging_config.configure_logging(level=level, log_file=log_file)

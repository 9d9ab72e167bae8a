"""
Structured logging system for TradeQuote.

Provides centralized logging with console and file outputs, log levels,
and counters for monitoring quote and profile activity.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json

from . import config


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for quote submissions, profile edits and billing events.
    """

    def __init__(
        self,
        name: str = "tradequote",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self.metrics = {
            "quotes_submitted": 0,
            "quotes_rejected": {},
            "jobs_recomputed": 0,
            "profile_updates": 0,
            "subscription_events": {"applied": 0, "ignored": 0},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"tradequote_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_quote_submitted(self):
        self.metrics["quotes_submitted"] += 1

    def record_quote_rejected(self, reason: str):
        """Count a rejected submission under its error type."""
        rejected = self.metrics["quotes_rejected"]
        rejected[reason] = rejected.get(reason, 0) + 1

    def record_job_recomputed(self):
        self.metrics["jobs_recomputed"] += 1

    def record_profile_update(self):
        self.metrics["profile_updates"] += 1

    def record_subscription_event(self, applied: bool):
        key = "applied" if applied else "ignored"
        self.metrics["subscription_events"][key] += 1

    def get_metrics(self) -> dict:
        """Return current metrics with the submission acceptance rate."""
        metrics_copy = dict(self.metrics)
        rejected = sum(metrics_copy["quotes_rejected"].values())
        attempts = metrics_copy["quotes_submitted"] + rejected
        metrics_copy["acceptance_rate"] = (
            round(metrics_copy["quotes_submitted"] / attempts, 3) if attempts else None
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Session Metrics ===")
        self.info(f"Quotes submitted: {metrics['quotes_submitted']}")
        if metrics["acceptance_rate"] is not None:
            self.info(f"Acceptance rate: {metrics['acceptance_rate'] * 100:.1f}%")
        self.info(f"Jobs recomputed: {metrics['jobs_recomputed']}")
        self.info(f"Profile updates: {metrics['profile_updates']}")

        events = metrics["subscription_events"]
        self.info(f"Subscription events: {events['applied']} applied, {events['ignored']} ignored")

        if metrics["quotes_rejected"]:
            self.info("Rejections:")
            for reason, count in metrics["quotes_rejected"].items():
                self.info(f"  {reason}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "tradequote",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level, log directory and file output default to the environment
    settings in tradequote.config when not given.

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        kwargs.setdefault("log_dir", config.log_dir())
        kwargs.setdefault("enable_file", config.file_logging_enabled())
        _global_logger = StructuredLogger(name=name, level=level or config.log_level(), **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None

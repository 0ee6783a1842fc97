"""
Structured logging for assetmatch runs.

One process-wide logger writes human-readable lines to stderr (stdout is
reserved for result tables) and everything at DEBUG and above to a daily
file. Context passed as keyword arguments is appended as JSON. The same
object keeps run metrics: API calls, reference fetch outcomes, transport
errors by type and terminal status per workflow.
"""

import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    return getattr(logging, name.upper())


class StructuredLogger:
    """
    Logger plus run metrics, safe to use from enrichment worker threads.
    """

    def __init__(
        self,
        name: str = "assetmatch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the underlying ``logging`` logger
            level: Console threshold (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for the daily log file (default: logs/)
            enable_file: Write the daily log file
            enable_console: Write to stderr
        """
        self.logger = logging.getLogger(name)
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "api_calls": 0,
            "references_fetched": 0,
            "reference_failures": 0,
            "errors_by_type": {},
            "workflow_runs": {},
        }
        self.configure(level, log_dir, enable_file, enable_console)

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """Swap handlers once settings are known. Metrics survive."""
        self.logger.setLevel(_level(level))
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        if enable_console:
            console = logging.StreamHandler(sys.stderr)
            console.setLevel(_level(level))
            console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
            self.logger.addHandler(console)

        if enable_file:
            log_dir = log_dir or Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"assetmatch_{datetime.now():%Y%m%d}.log"
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
            self.logger.addHandler(file_handler)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    # Metrics

    def record_api_call(self):
        with self._metrics_lock:
            self.metrics["api_calls"] += 1

    def record_reference_fetch(self, success: bool):
        """Count one per-asset sub-resource fetch."""
        key = "references_fetched" if success else "reference_failures"
        with self._metrics_lock:
            self.metrics[key] += 1

    def record_error(self, error_type: str):
        with self._metrics_lock:
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def record_run(self, workflow: str, status: str):
        """Count a finished run by workflow and terminal status."""
        with self._metrics_lock:
            runs = self.metrics["workflow_runs"].setdefault(workflow, {})
            runs[status] = runs.get(status, 0) + 1

    def get_metrics(self) -> dict:
        """Snapshot of the counters, plus the reference success rate once known."""
        with self._metrics_lock:
            snapshot = dict(self.metrics)
        attempts = snapshot["references_fetched"] + snapshot["reference_failures"]
        if attempts:
            snapshot["reference_success_rate"] = round(snapshot["references_fetched"] / attempts, 3)
        return snapshot

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        self.info("=== Matching Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")

        attempts = metrics["references_fetched"] + metrics["reference_failures"]
        if attempts:
            rate = metrics["reference_success_rate"] * 100
            self.info(f"Reference fetches: {metrics['references_fetched']}/{attempts} ({rate:.1f}% success)")

        if metrics["workflow_runs"]:
            self.info("Workflow Runs:")
            for workflow, statuses in metrics["workflow_runs"].items():
                counts = ", ".join(f"{s}={n}" for s, n in sorted(statuses.items()))
                self.info(f"  {workflow}: {counts}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "assetmatch", level: str = "INFO", **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Only the first call's arguments take effect; use ``configure`` to change
    handlers afterwards.
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Forget the process-wide logger (tests)."""
    global _global_logger
    _global_logger = None

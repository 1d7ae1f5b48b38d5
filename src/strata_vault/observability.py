"""Logging and per-operation timing for the Strata vault.

Log records of the ``strata_vault`` logger tree go to a rotating file under
``~/.strata/logs`` (and optionally the console). Every MCP tool call is timed
with ``timed_operation``; the totals are kept in memory and written to
``~/.strata/metrics.json`` when the server shuts down.
"""
import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "strata_vault"
LOG_FILENAME = "strata.log"
DEFAULT_LOG_DIR = Path.home() / ".strata" / "logs"
DEFAULT_METRICS_FILE = Path.home() / ".strata" / "metrics.json"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    console: bool = True,
) -> Path:
    """Send the package's log records to a rotating file.

    Calling it again moves logging to the new directory.

    Returns:
        The log directory.
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    file_handler = RotatingFileHandler(
        log_path / LOG_FILENAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    has_console = any(
        type(h) is logging.StreamHandler for h in root_logger.handlers
    )
    if console and not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.info(f"Logging to {log_path / LOG_FILENAME}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one tool."""
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_error: Optional[str] = None


class MetricsCollector:
    """Thread-safe call counts and durations per vault operation."""

    def __init__(self, metrics_file: Optional[Union[str, Path]] = None):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()
        self._started = datetime.now(timezone.utc)
        self._metrics_file = Path(metrics_file) if metrics_file else DEFAULT_METRICS_FILE

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None
    ) -> None:
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.max_ms = max(stats.max_ms, duration_ms)
            if not success:
                stats.errors += 1
                stats.last_error = error

    def get_metrics(self) -> Dict[str, Dict]:
        """Snapshot of the totals, keyed by operation name."""
        with self._lock:
            return {
                name: dict(asdict(stats), avg_ms=round(stats.total_ms / stats.calls, 2))
                for name, stats in self._stats.items()
            }

    def save_metrics(self) -> bool:
        """Write the snapshot to the metrics file.

        Returns:
            True if the file was written.
        """
        snapshot = {
            "started": self._started.isoformat(),
            "saved": datetime.now(timezone.utc).isoformat(),
            "operations": self.get_metrics(),
        }
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self._metrics_file.with_suffix(".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
            temp_file.replace(self._metrics_file)
            return True
        except OSError as e:
            logger.error(f"Failed to save metrics to {self._metrics_file}: {e}")
            return False


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Time a block, log it at debug level and record it in ``metrics``.

    Yields a dict the caller may fill with result details (``result_count``)
    that are added to the closing log line.
    """
    call_id = uuid.uuid4().hex[:8]
    details = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{call_id}] {operation} ({details})")

    result: Dict = {}
    error = None
    start = time.perf_counter()
    try:
        yield result
    except Exception as e:
        error = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record_operation(operation, duration_ms, error is None, error)
        outcome = "ok" if error is None else f"failed: {error}"
        logger.debug(
            f"[{call_id}] {operation} {outcome} in {duration_ms:.2f}ms {result or ''}"
        )

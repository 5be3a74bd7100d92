"""Logging and operation metrics for Shareable Notes.

File logging goes to a size-rotated ``shareable_notes.log``. Service
operations are wrapped with :func:`traced`, which times each call and
records the outcome in a :class:`MetricsCollector`. Only note IDs are
ever attached to trace records.
"""
import functools
import inspect
import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "shareable_notes"
LOG_FILE_NAME = "shareable_notes.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = False,
) -> Path:
    """Send the ``shareable_notes`` logger hierarchy to a rotating log file.

    Handlers from an earlier call are closed and replaced, so the CLI and
    tests can reconfigure freely.

    Args:
        log_dir: Directory for the log file. Defaults to ~/.shareable_notes/logs
        level: Minimum level written.
        max_bytes: Size at which the file is rotated.
        backup_count: Rotated files kept.
        console: Also write to stderr.

    Returns:
        The log directory in use.
    """
    log_path = Path(log_dir) if log_dir else Path.home() / ".shareable_notes" / "logs"
    log_path.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list = [
        RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    package_logger.debug(f"Logging to {log_path / LOG_FILE_NAME}")
    return log_path


@dataclass
class OperationMetrics:
    """Running totals for one operation name (create, encrypt, search...)."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = field(default=None)

    def add(self, duration_ms: float, error: Optional[str]) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        if error is not None:
            self.error_count += 1
            self.last_error = error
            self.last_error_at = datetime.now(timezone.utc)

    @property
    def success_count(self) -> int:
        return self.count - self.error_count

    def snapshot(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / self.count if self.count else 0,
            "avg_duration_ms": round(self.total_ms / self.count, 2) if self.count else 0,
            "min_duration_ms": round(self.min_ms or 0.0, 2),
            "max_duration_ms": round(self.max_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_at.isoformat() if self.last_error_at else None,
        }


class MetricsCollector:
    """Per-operation call counts, failures and durations.

    Safe to share between threads. Kept in memory; ``save_metrics`` writes
    a JSON snapshot when the collector was given a file.
    """

    def __init__(self, metrics_file: Optional[Union[str, Path]] = None):
        self._operations: Dict[str, OperationMetrics] = {}
        self._lock = Lock()
        self._started = datetime.now(timezone.utc)
        self._metrics_file = Path(metrics_file) if metrics_file else None

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            stats = self._operations.setdefault(operation, OperationMetrics())
            stats.add(duration_ms, None if success else (error or "unknown error"))

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every recorded operation, keyed by name."""
        with self._lock:
            return {name: stats.snapshot() for name, stats in self._operations.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals across all operations."""
        with self._lock:
            total = sum(s.count for s in self._operations.values())
            errors = sum(s.error_count for s in self._operations.values())
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._started).total_seconds(),
                "total_operations": total,
                "total_success": total - errors,
                "total_errors": errors,
                "overall_success_rate": (total - errors) / total if total else 1.0,
                "operations_tracked": list(self._operations),
            }

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._started = datetime.now(timezone.utc)

    def save_metrics(self) -> bool:
        """Write a snapshot to the configured file via a temp file rename.

        Returns:
            False when no file is configured or the write failed.
        """
        if self._metrics_file is None:
            return False
        payload = {
            "start_time": self._started.isoformat(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "operations": self.get_metrics(),
        }
        temp_file = self._metrics_file.with_suffix(".tmp")
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            temp_file.replace(self._metrics_file)
        except OSError as e:
            logger.error(f"Failed to save metrics to {self._metrics_file}: {e}")
            return False
        return True


# Process-wide collector used when a service is not given its own
metrics = MetricsCollector()


@contextmanager
def timed_operation(
    operation: str, collector: Optional[MetricsCollector] = None, **context: Any
) -> Iterator[Dict[str, Any]]:
    """Time a block, record it, and log start and end at DEBUG.

    The yielded dict collects extra result info for the end record::

        with timed_operation("search") as op:
            op["result_count"] = len(results)
    """
    collector = collector or metrics
    trace_id = uuid.uuid4().hex[:8]
    info: Dict[str, Any] = {}
    described = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{trace_id}] START {operation} ({described})")

    started = time.perf_counter()
    error: Optional[str] = None
    try:
        yield info
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        collector.record_operation(operation, elapsed_ms, error is None, error)
        outcome = "OK" if error is None else f"ERROR: {error}"
        extras = ", ".join(f"{k}={v}" for k, v in info.items())
        logger.debug(f"[{trace_id}] END {operation} ({elapsed_ms:.2f}ms) [{outcome}] {extras}")


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Wrap a service method in :func:`timed_operation`.

    Metrics go to the instance's ``metrics`` attribute when it has one.
    The ``note_id`` argument, if the method takes one, is the only
    argument that reaches the log.
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__
        params = list(inspect.signature(func).parameters)
        id_position = params.index("note_id") if "note_id" in params else None

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context = {}
            if "note_id" in kwargs:
                context["note_id"] = kwargs["note_id"]
            elif id_position is not None and id_position < len(args):
                context["note_id"] = args[id_position]

            collector = getattr(args[0], "metrics", None) if args else None
            with timed_operation(name, collector=collector, **context) as op:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple)):
                    op["result_count"] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator

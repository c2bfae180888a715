"""
Logging setup and per-step bookkeeping for a provisioning run.
"""
import json
import logging
import logging.handlers
import sys
import time
import traceback
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_MAX_BYTES = 5 * 1024 * 1024
ERROR_LOG_MAX_BYTES = 1 * 1024 * 1024
LOG_BACKUP_COUNT = 3

REDACTED = "***"
SENSITIVE_KEYS = ("password", "passphrase", "private_key")


def redact(data: Any) -> Any:
    """Copy of ``data`` with password and key values masked."""
    if isinstance(data, dict):
        return {
            key: REDACTED if any(s in str(key).lower() for s in SENSITIVE_KEYS) else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(value) for value in data]
    return data


@dataclass
class LogEntry:
    """One line of the JSON log."""
    timestamp: str
    level: str
    logger: str
    message: str
    location: str
    process_id: int
    context: Optional[Dict[str, Any]] = None
    exception: Optional[Dict[str, Any]] = None


@dataclass
class StepResult:
    """Duration and outcome of one provisioning step."""
    step: str
    started_at: str
    duration_ms: float = 0.0
    success: bool = True
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorRecord:
    """An error that aborted the run."""
    step: str
    error_type: str
    message: str
    timestamp: str
    stack_trace: str


class JSONFormatter(logging.Formatter):
    """Formats records as JSON objects; the ``context`` extra is redacted."""

    def format(self, record: logging.LogRecord) -> str:
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            location=f"{record.module}:{record.funcName}:{record.lineno}",
            process_id=record.process,
            context=redact(getattr(record, 'context', None)),
        )

        if record.exc_info and record.exc_info[0] is not None:
            entry.exception = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(asdict(entry), default=str)


class StepRecorder:
    """Times provisioning steps and keeps their results in run order."""

    def __init__(self):
        self.results: List[StepResult] = []
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def step(self, name: str, **context):
        """
        Record the step executed inside the ``with`` block.

        Exceptions are recorded and re-raised.
        """
        result = StepResult(step=name, started_at=datetime.now().isoformat(), context=context)
        start = time.perf_counter()

        try:
            yield result
        except Exception as e:
            result.success = False
            result.error_type = type(e).__name__
            result.error_message = str(e)
            raise
        finally:
            result.duration_ms = (time.perf_counter() - start) * 1000
            self.results.append(result)
            outcome = "completed" if result.success else "failed"
            self.logger.log(
                logging.INFO if result.success else logging.ERROR,
                f"Step {name} {outcome} in {result.duration_ms:.1f} ms",
                extra={'context': {'step': name, 'success': result.success, **context}}
            )

    def failed_steps(self) -> List[StepResult]:
        return [result for result in self.results if not result.success]

    def summary(self) -> Dict[str, Any]:
        return {
            'steps': [result.step for result in self.results],
            'failed': [result.step for result in self.failed_steps()],
            'total_duration_ms': sum(result.duration_ms for result in self.results),
        }


class ErrorTracker:
    """Keeps the errors that ended a run, with their stack traces."""

    def __init__(self):
        self.errors: List[ErrorRecord] = []
        self.logger = logging.getLogger(__name__)

    def record(self, error: Exception, step: str) -> ErrorRecord:
        record = ErrorRecord(
            step=step,
            error_type=type(error).__name__,
            message=str(error),
            timestamp=datetime.now().isoformat(),
            stack_trace=''.join(traceback.format_exception(type(error), error, error.__traceback__)),
        )
        self.errors.append(record)
        self.logger.error(
            f"{step}: {record.error_type}: {record.message}",
            extra={'context': {'step': step, 'error_type': record.error_type}}
        )
        return record

    def get_error_summary(self) -> Dict[str, Any]:
        error_types: Dict[str, int] = {}
        for error in self.errors:
            error_types[error.error_type] = error_types.get(error.error_type, 0) + 1

        return {
            'total_errors': len(self.errors),
            'error_types': error_types,
            'steps': [error.step for error in self.errors],
        }


def _rotating_json_handler(path: str, max_bytes: int, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setFormatter(JSONFormatter())
    handler.setLevel(level)
    return handler


class LoggingService:
    """
    Configures the root logger for a run: console output plus, when
    ``log_file_path`` is set, a JSON log and a JSON error log next to it.
    """

    def __init__(self, config):
        self.config = config
        self.steps = StepRecorder()
        self.error_tracker = ErrorTracker()
        self._handlers: List[logging.Handler] = []
        self._setup_logging()
        self.logger = logging.getLogger(__name__)
        self.logger.debug(f"Logging configured at {config.log_level}")

    def _setup_logging(self):
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.setLevel(log_level)
        self._handlers.append(console_handler)

        if self.config.log_file_path:
            log_path = Path(self.config.log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._handlers.append(_rotating_json_handler(str(log_path), LOG_MAX_BYTES, log_level))
            self._handlers.append(_rotating_json_handler(
                str(log_path.with_suffix('.errors.log')), ERROR_LOG_MAX_BYTES, logging.ERROR
            ))

        for handler in self._handlers:
            root_logger.addHandler(handler)

    def step(self, name: str, **context):
        """Context manager recording one provisioning step."""
        return self.steps.step(name, **context)

    def record_error(self, error: Exception, step: str) -> ErrorRecord:
        return self.error_tracker.record(error, step)

    def get_step_summary(self) -> Dict[str, Any]:
        return self.steps.summary()

    def get_error_summary(self) -> Dict[str, Any]:
        return self.error_tracker.get_error_summary()

    def close(self):
        """Detach and close the handlers installed by this service."""
        root_logger = logging.getLogger()
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

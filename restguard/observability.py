"""
Structured request logging.

The pipeline only *produces* :class:`LogRecord` values. Where they go is up to
the :class:`LogSink`; the default sink forwards them to the stdlib ``logging``
module, so transport, formatting and rotation stay with the logging config.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ACCESS_LOGGER_NAME = "restguard.access"


@dataclass(frozen=True)
class LogRecord:
    """A structured log record produced by the pipeline."""

    request_id: Optional[str]
    level: int
    message: str
    fields: Dict[str, Any] = field(default_factory=dict)


class LogSink(ABC):
    """Destination for structured records."""

    @abstractmethod
    def emit(self, record: LogRecord) -> None:
        pass


class LoggingSink(LogSink):
    """Forwards records to a stdlib logger.

    ``request_id`` and ``fields`` are attached as ``extra`` attributes so that
    formatters and handlers can render them; the message itself also carries
    the request id for plain-text setups.
    """

    def __init__(self, logger_name: str = ACCESS_LOGGER_NAME):
        self.logger = logging.getLogger(logger_name)

    def emit(self, record: LogRecord) -> None:
        if not self.logger.isEnabledFor(record.level):
            return
        rendered = " ".join(f"{k}={v}" for k, v in record.fields.items())
        self.logger.log(
            record.level,
            f"[{record.request_id}] {record.message} {rendered}".rstrip(),
            extra={"request_id": record.request_id, "fields": dict(record.fields)},
        )


class MemorySink(LogSink):
    """Keeps records in a list. Useful in tests."""

    def __init__(self):
        self.records: List[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        self.records.append(record)

    def messages(self) -> List[str]:
        return [r.message for r in self.records]


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLogger:
    """Outermost pipeline stage: records the start and completion of each request."""

    def __init__(self, sink: LogSink, clock=time.perf_counter):
        self.sink = sink
        self.clock = clock

    def started(self, ctx) -> None:
        ctx.start_time = self.clock()
        self.sink.emit(LogRecord(
            request_id=ctx.request_id,
            level=logging.DEBUG,
            message="request started",
            fields={"method": ctx.method, "path": ctx.path},
        ))

    def completed(self, ctx, status_code: int) -> None:
        start = ctx.start_time
        duration_ms = round((self.clock() - start) * 1000, 3) if start is not None else None
        route = ctx.route.pattern if ctx.route is not None else None
        self.sink.emit(LogRecord(
            request_id=ctx.request_id,
            level=level_for_status(status_code),
            message="request completed",
            fields={
                "method": ctx.method,
                "path": ctx.path,
                "route": route,
                "status": status_code,
                "duration_ms": duration_ms,
            },
        ))


def configure_logging(level: str = "INFO") -> None:
    """Set up basic logging for running the server from a script."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

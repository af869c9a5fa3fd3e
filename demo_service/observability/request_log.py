from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

import structlog

from demo_service.observability.errors import LabelArityError, SinkWriteError
from demo_service.observability.metrics import CounterFamily
from demo_service.observability.sinks import Sink


class Severity(str, enum.Enum):
    INFO = "info"
    ERROR = "error"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. ``2024-01-02T03:04:05.678Z``."""

    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# Written by serialize_record itself; a field with one of these names would be lost.
RESERVED_FIELDS = frozenset({"timestamp", "level"})


@dataclass(frozen=True)
class LogRecord:
    severity: Severity
    fields: Mapping[str, Any]
    timestamp: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        reserved = RESERVED_FIELDS.intersection(self.fields)
        if reserved:
            raise ValueError(f"log fields {sorted(reserved)} are reserved for the record envelope")
        # Copy so callers can't mutate a record after handing it over.
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def create(cls, severity: Severity, message: str, **fields: Any) -> "LogRecord":
        return cls(severity=severity, fields={"message": message, **fields})

    @property
    def message(self) -> str | None:
        return self.fields.get("message")


_renderer = structlog.processors.JSONRenderer(default=str)


def serialize_record(record: LogRecord) -> str:
    event: dict[str, Any] = {
        "timestamp": format_timestamp(record.timestamp),
        "level": record.severity.value,
    }
    event.update(record.fields)
    return _renderer(None, "", event)


class RequestLogger:
    """Fans a record out to every sink, isolating sink failures.

    A failing sink is counted on ``error_counter`` (labelled by sink name) and
    reported on the process log. It never raises out of :meth:`log` and never
    stops the remaining sinks from receiving the record.
    """

    def __init__(self, sinks: Iterable[Sink], error_counter: CounterFamily | None = None) -> None:
        if error_counter is not None and error_counter.label_names != ("sink",):
            raise LabelArityError(error_counter.name, ("sink",), error_counter.label_names)
        self.sinks: list[Sink] = list(sinks)
        self.error_counter = error_counter
        self.sink_errors: dict[str, int] = {}
        self._log = structlog.get_logger("request_log")

    def log(self, record: LogRecord) -> None:
        line = serialize_record(record)
        for sink in self.sinks:
            try:
                sink.write(line)
            except Exception as exc:
                self._report(SinkWriteError(sink.name, exc))

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogRecord.create(Severity.INFO, message, **fields))

    def error(self, message: str, **fields: Any) -> None:
        self.log(LogRecord.create(Severity.ERROR, message, **fields))

    def _report(self, err: SinkWriteError) -> None:
        self.sink_errors[err.sink] = self.sink_errors.get(err.sink, 0) + 1
        if self.error_counter is not None:
            self.error_counter.inc({"sink": err.sink})
        try:
            self._log.warning("log_sink_write_failed", sink=err.sink, error=repr(err.cause))
        except Exception:
            # The process log is itself a stream; don't let it escalate a sink failure.
            pass

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if callable(close):
                close()

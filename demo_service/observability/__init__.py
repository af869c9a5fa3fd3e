"""Request observability: counter registry, structured request log, ASGI middleware
and the Prometheus text exposition.

Nothing in here is a module-level singleton; the app factory builds one
registry and one request logger and hands them to the middleware and the
``/metrics`` endpoint.
"""

from demo_service.observability.errors import (
    DuplicateNameError,
    InvalidNameError,
    LabelArityError,
    MetricsError,
    SinkWriteError,
    UnknownFamilyError,
)
from demo_service.observability.exposition import CONTENT_TYPE, ExpositionEndpoint, render
from demo_service.observability.metrics import CounterFamily, LabelSet, MetricRegistry, Sample
from demo_service.observability.middleware import InstrumentationMiddleware, RequestContext, instrument
from demo_service.observability.request_log import LogRecord, RequestLogger, Severity, serialize_record
from demo_service.observability.sinks import BufferedSink, ConsoleSink, FileSink, Sink


__all__ = [
    "BufferedSink",
    "CONTENT_TYPE",
    "ConsoleSink",
    "CounterFamily",
    "DuplicateNameError",
    "ExpositionEndpoint",
    "FileSink",
    "InstrumentationMiddleware",
    "InvalidNameError",
    "LabelArityError",
    "LabelSet",
    "LogRecord",
    "MetricRegistry",
    "MetricsError",
    "RequestContext",
    "RequestLogger",
    "Sample",
    "Severity",
    "Sink",
    "SinkWriteError",
    "UnknownFamilyError",
    "instrument",
    "render",
    "serialize_record",
]

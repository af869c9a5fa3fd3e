"""Errors raised by the metrics registry and the request log sinks."""

from __future__ import annotations

from collections.abc import Sequence


class MetricsError(Exception):
    """Base class for registry misuse. These are programmer errors."""


class DuplicateNameError(MetricsError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"metric family {name!r} is already registered")


class UnknownFamilyError(MetricsError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"metric family {name!r} is not registered")


class LabelArityError(MetricsError):
    """Label values do not match the schema declared for the family."""

    def __init__(self, family: str, expected: Sequence[str], got: object) -> None:
        self.family = family
        self.expected = tuple(expected)
        self.got = got
        super().__init__(f"metric family {family!r} expects labels {list(self.expected)}, got {got!r}")


class InvalidNameError(MetricsError, ValueError):
    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"invalid {kind} name: {name!r}")


class SinkWriteError(Exception):
    """A log sink failed to write a record.

    Reported on a side channel by the request logger and never raised into
    the request path.
    """

    def __init__(self, sink: str, cause: BaseException) -> None:
        self.sink = sink
        self.cause = cause
        super().__init__(f"sink {sink!r} failed to write: {cause!r}")

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Union

from demo_service.observability.errors import (
    DuplicateNameError,
    InvalidNameError,
    LabelArityError,
    MetricsError,
    UnknownFamilyError,
)


_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

LabelValues = Union[Mapping[str, object], Sequence[object]]


@dataclass(frozen=True)
class LabelSet:
    """Ordered (name, value) pairs identifying one series within a family."""

    pairs: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_values(cls, family: str, names: Sequence[str], values: LabelValues) -> "LabelSet":
        if isinstance(values, Mapping):
            if set(values) != set(names) or len(values) != len(names):
                raise LabelArityError(family, names, dict(values))
            return cls(tuple((name, str(values[name])) for name in names))

        # A bare string is a sequence of characters, never a label tuple.
        if isinstance(values, (str, bytes)):
            raise LabelArityError(family, names, values)
        values = tuple(values)
        if len(values) != len(names):
            raise LabelArityError(family, names, values)
        return cls(tuple((name, str(value)) for name, value in zip(names, values)))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.pairs)

    @property
    def values(self) -> tuple[str, ...]:
        return tuple(value for _, value in self.pairs)

    def as_dict(self) -> dict[str, str]:
        return dict(self.pairs)


@dataclass(frozen=True)
class Sample:
    family: str
    help: str
    labels: LabelSet
    value: Union[int, float]


class CounterFamily:
    """Monotonic counters for one metric name, one per LabelSet.

    The lock is scoped to this family's map so unrelated families never
    contend with each other.
    """

    type = "counter"

    def __init__(self, name: str, help: str, label_names: Sequence[str] = ()) -> None:
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._lock = Lock()
        # dicts keep insertion order, which gives first-seen ordering for free.
        self._values: dict[LabelSet, int] = {}

    def inc(self, label_values: LabelValues = (), amount: int = 1) -> int:
        if amount < 0:
            raise ValueError("counters can only increase")
        key = LabelSet.from_values(self.name, self.label_names, label_values)
        with self._lock:
            value = self._values.get(key, 0) + int(amount)
            self._values[key] = value
        return value

    def value(self, label_values: LabelValues = ()) -> int:
        key = LabelSet.from_values(self.name, self.label_names, label_values)
        with self._lock:
            return self._values.get(key, 0)

    def samples(self) -> list[Sample]:
        with self._lock:
            items = list(self._values.items())
        return [Sample(self.name, self.help, labels, value) for labels, value in items]

    def __repr__(self) -> str:
        return f"CounterFamily(name={self.name!r}, labels={list(self.label_names)!r})"


class CallbackFamily:
    """An unlabelled series whose value is read from ``callback`` at collect time.

    ``callback`` returns the current value, or ``None`` when it can't be read on
    this platform, in which case the family has no series.
    """

    label_names: tuple[str, ...] = ()

    def __init__(self, name: str, help: str, callback: Callable[[], Union[int, float, None]], type: str = "gauge") -> None:
        if type not in ("counter", "gauge"):
            raise ValueError(f"unsupported metric type: {type!r}")
        self.name = name
        self.help = help
        self.type = type
        self._callback = callback

    def inc(self, label_values: LabelValues = (), amount: int = 1) -> int:
        raise MetricsError(f"metric family {self.name!r} is read at collect time and cannot be incremented")

    def samples(self) -> list[Sample]:
        value = self._callback()
        if value is None:
            return []
        return [Sample(self.name, self.help, LabelSet(), value)]

    def __repr__(self) -> str:
        return f"CallbackFamily(name={self.name!r}, type={self.type!r})"


Family = Union[CounterFamily, CallbackFamily]


class MetricRegistry:
    """Process-scoped collection of metric families.

    Families are registered once and never removed. Increments go straight to
    the family, so the registry lock only covers registration.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._families: dict[str, Family] = {}

    def _add(self, family: Family) -> None:
        with self._lock:
            if family.name in self._families:
                raise DuplicateNameError(family.name)
            self._families[family.name] = family

    def register_family(self, name: str, help: str, label_names: Sequence[str] = ()) -> CounterFamily:
        label_names = tuple(label_names)
        _validate_names(name, label_names)

        family = CounterFamily(name, help, label_names)
        self._add(family)
        return family

    def ensure_family(self, name: str, help: str, label_names: Sequence[str] = ()) -> CounterFamily:
        """Return the counter family ``name``, registering it if needed.

        An existing family must be a counter with the same label schema.
        """

        label_names = tuple(label_names)
        if name not in self:
            try:
                return self.register_family(name, help, label_names)
            except DuplicateNameError:
                pass
        family = self.get(name)
        if not isinstance(family, CounterFamily) or family.label_names != label_names:
            raise LabelArityError(name, label_names, family.label_names)
        return family

    def register_callback(
        self,
        name: str,
        help: str,
        callback: Callable[[], Union[int, float, None]],
        type: str = "gauge",
    ) -> CallbackFamily:
        _validate_names(name, ())
        family = CallbackFamily(name, help, callback, type)
        self._add(family)
        return family

    def get(self, name: str) -> Family:
        family = self._families.get(name)
        if family is None:
            raise UnknownFamilyError(name)
        return family

    def increment(self, family_name: str, label_values: LabelValues = ()) -> int:
        return self.get(family_name).inc(label_values)

    def families(self) -> list[Family]:
        with self._lock:
            return list(self._families.values())

    def collect(self) -> Iterator[Sample]:
        """Yield every observed series.

        Each family is read atomically on its own; there is no global
        snapshot across families.
        """

        for family in self.families():
            yield from family.samples()

    def __contains__(self, name: object) -> bool:
        return name in self._families


def _validate_names(name: str, label_names: tuple[str, ...]) -> None:
    if not _METRIC_NAME_RE.match(name):
        raise InvalidNameError("metric", name)
    for label in label_names:
        if not _LABEL_NAME_RE.match(label) or label.startswith("__"):
            raise InvalidNameError("label", label)
    if len(set(label_names)) != len(label_names):
        raise InvalidNameError("label", ",".join(label_names))

"""Metric descriptors, samples, the shared error counter and the collector base."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

ERRORS_METRIC_NAME = "sakuracloud_exporter_errors_total"

_MAX_WORKERS = 16

Job = Callable[[], Iterable["Metric"]]


class ValueType(Enum):
    """Kind of value a metric sample carries."""

    GAUGE = "gauge"
    COUNTER = "counter"
    UNTYPED = "untyped"


@dataclass(frozen=True)
class Desc:
    """Describes a metric family: its name, help text and label names."""

    name: str
    help: str
    label_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "label_names", tuple(self.label_names))


@dataclass(frozen=True)
class Metric:
    """A single sample of a metric family."""

    desc: Desc
    value: float
    label_values: tuple[str, ...] = ()
    value_type: ValueType = ValueType.GAUGE
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        values = tuple(self.label_values)
        expected = len(self.desc.label_names)
        if len(values) != expected:
            raise ValueError(
                f"{self.desc.name}: expected {expected} label values, got {len(values)}"
            )
        object.__setattr__(self, "label_values", values)
        object.__setattr__(self, "value", float(self.value))

    def labels(self) -> dict[str, str]:
        """Return the labels of this sample as a name to value mapping."""
        return dict(zip(self.desc.label_names, self.label_values))


class ErrorCounter:
    """Thread-safe count of errors per collector."""

    name = ERRORS_METRIC_NAME

    def __init__(self) -> None:
        self._values: dict[str, float] = {}
        self._lock = threading.Lock()

    def add(self, collector: str, amount: float = 1.0) -> None:
        """Increase the count for ``collector`` by ``amount``."""
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._values[collector] = self._values.get(collector, 0.0) + float(amount)

    def value(self, collector: str) -> float:
        """Return the current count for ``collector``."""
        with self._lock:
            return self._values.get(collector, 0.0)


def flatten_string_slice(values: Iterable[str]) -> str:
    """Join values into one label, wrapped in commas; empty input gives ''."""
    items = list(values)
    if not items:
        return ""
    return "," + ",".join(items) + ","


def format_id(value: int) -> str:
    """Format a resource ID for a label; an unset (zero) ID gives ''."""
    return str(value) if value else ""


class Collector(ABC):
    """Base for collectors that gather metrics about one kind of resource."""

    error_label: str = ""

    def __init__(
        self,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.errors = errors if errors is not None else ErrorCounter()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.errors.add(self.error_label, 0)

    @abstractmethod
    def describe(self) -> list[Desc]:
        """Return every descriptor this collector can produce."""

    @abstractmethod
    def collect(self) -> list[Metric]:
        """Gather the current metrics."""

    def _warn(self, message: str, err: BaseException) -> None:
        self.errors.add(self.error_label, 1)
        self.logger.warning("%s err=%s", message, err)

    def _gather(self, jobs: Sequence[Job]) -> list[Metric]:
        """Run jobs concurrently and return their metrics in job order."""
        if not jobs:
            return []
        with ThreadPoolExecutor(max_workers=min(len(jobs), _MAX_WORKERS)) as pool:
            batches = list(pool.map(lambda job: list(job()), jobs))
        return [metric for batch in batches for metric in batch]
"""Thread-safe gauge registry rendered in the Prometheus text exposition format."""
from __future__ import annotations

import enum
import logging
import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .errors import InvalidMetricError, MetricNotFoundError, RenderError

logger = logging.getLogger(__name__)

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_KEY_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class MetricKind(enum.Enum):
    GAUGE = "gauge"


def format_value(value: float) -> str:
    """Render a float the way scrapers expect: ``0``, ``12.4``, ``NaN``, ``+Inf``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


@dataclass(frozen=True)
class MetricSample:
    """Point-in-time copy of a single metric."""

    name: str
    kind: MetricKind
    value: float
    labels: Tuple[Tuple[str, str], ...]
    observed_at: float


class Metric:
    """A single named, labeled measurement guarded by its own lock."""

    def __init__(self, name: str, kind: MetricKind):
        self._name = name
        self._kind = kind
        self._lock = threading.Lock()
        self._value = 0.0
        self._labels: List[Tuple[str, str]] = []
        self._observed_at = time.monotonic()

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> MetricKind:
        return self._kind

    def set_value(self, value: float) -> None:
        with self._lock:
            self._value = float(value)
            self._observed_at = time.monotonic()

    def add_label(self, key: str, value: str) -> None:
        with self._lock:
            self._labels.append((key, value))

    def sample(self) -> MetricSample:
        with self._lock:
            return MetricSample(
                name=self._name,
                kind=self._kind,
                value=self._value,
                labels=tuple(self._labels),
                observed_at=self._observed_at,
            )

    def to_prometheus(self) -> str:
        with self._lock:
            value = self._value
            labels = list(self._labels)

        if labels:
            rendered = ",".join(f'{key}="{_escape_label_value(val)}"' for key, val in labels)
            return f"{self._name}{{{rendered}}} {format_value(value)}"
        return f"{self._name} {format_value(value)}"


class MetricRegistry:
    """Shared mapping of metric name to :class:`Metric`.

    The registry lock only protects the mapping itself; values and labels are
    guarded per metric, so an update to one gauge never waits on an export
    that is rendering another. Export order is registration order.
    """

    def __init__(self):
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._metrics

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._metrics)

    def _lookup(self, name: str) -> Metric:
        with self._lock:
            metric = self._metrics.get(name)
        if metric is None:
            raise MetricNotFoundError(name)
        return metric

    def register(self, name: str, kind: MetricKind = MetricKind.GAUGE) -> None:
        """Create ``name`` with value 0.0 and no labels; no-op if it already exists."""
        if not name or not name.strip():
            raise InvalidMetricError("metric name must not be empty")
        if not _METRIC_NAME_RE.match(name):
            raise InvalidMetricError(f"invalid metric name: {name!r}")

        with self._lock:
            if name in self._metrics:
                return
            self._metrics[name] = Metric(name, kind)
        logger.debug("Registered %s metric %s", kind.value, name)

    def add_label(self, name: str, key: str, value: str) -> None:
        if not key or not _LABEL_KEY_RE.match(key):
            raise InvalidMetricError(f"invalid label key: {key!r}")
        self._lookup(name).add_label(key, str(value))

    def update(self, name: str, value: float) -> None:
        metric = self._lookup(name)
        if metric.kind is MetricKind.GAUGE:
            metric.set_value(value)
        else:  # pragma: no cover - only gauges exist today
            raise InvalidMetricError(f"unsupported metric kind: {metric.kind}")

    def get(self, name: str) -> MetricSample:
        return self._lookup(name).sample()

    def export(self) -> str:
        """Render every metric, one per line, with a trailing newline."""
        with self._lock:
            metrics = list(self._metrics.values())

        try:
            lines = [metric.to_prometheus() for metric in metrics]
        except Exception as exc:
            raise RenderError("failed to render metrics") from exc
        return "\n".join(lines) + "\n"

"""In-process counters, rendered in Prometheus text exposition format."""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class Counter:
    """Monotonic counter keyed by an ordered tuple of label values."""

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, help: str = ""):
        self.name = name
        self.help = help
        self.label_names = tuple(label_names or ())
        self._series: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counters only go up")
        key = self._key(labels)
        with self._lock:
            self._series[key] = self._series.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._series.get(key, 0.0)

    def _render_labels(self, values: LabelValues) -> str:
        if not self.label_names:
            return ""
        pairs = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(self.label_names, values))
        return "{" + pairs + "}"

    def export(self) -> List[str]:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} counter")
        with self._lock:
            series = sorted(self._series.items())
        lines.extend(f"{self.name}{self._render_labels(values)} {total}" for values, total in series)
        return lines

    def reset(self) -> None:
        with self._lock:
            self._series.clear()


class MetricsRegistry:
    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None, help: str = "") -> Counter:
        """Get or create. A second call with the same name returns the first counter."""
        with self._lock:
            existing = self._counters.get(name)
            if existing is None:
                existing = self._counters[name] = Counter(name, label_names, help)
            return existing

    def export_prometheus(self) -> str:
        with self._lock:
            counters = list(self._counters.values())
        lines: List[str] = []
        for counter in counters:
            lines.extend(counter.export())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            counters = list(self._counters.values())
        for counter in counters:
            counter.reset()


METRICS = MetricsRegistry()

plan_mutations_total = METRICS.counter(
    "plan_mutations_total", ["type"], help="Plan aggregate writes by mutation kind"
)
notifications_written_total = METRICS.counter(
    "notifications_written_total", ["action"], help="Notification records appended"
)
notification_failures_total = METRICS.counter(
    "notification_failures_total", ["action"], help="Best-effort notification writes that failed"
)
reputation_recomputes_total = METRICS.counter(
    "reputation_recomputes_total", help="User reputation recalculations"
)
http_requests_total = METRICS.counter(
    "http_requests_total", ["method", "path", "status"], help="HTTP requests served"
)


_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F-]{8,})$")


def normalize_path(path: str) -> str:
    """Collapse id-looking segments to :id so one route is one label set."""
    segments = [":id" if _ID_SEGMENT.match(part) else part for part in path.split("/") if part]
    return "/" + "/".join(segments)

"""
In-memory metrics for flow execution.

Tracks:
- run_started_total / run_completed_total{status}: runs by terminal state
- run_duration_seconds{status}: histogram of run wall-clock time
- node_execution_total{kind,status}: processed nodes by kind and outcome
- provider_call_duration_seconds{provider}: histogram of provider latency
- provider_failures_total{provider}: failed provider calls

A series is keyed by metric name plus its sorted label pairs.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

logger = logging.getLogger("promptchain.metrics")

Labels = tuple[tuple[str, str], ...]
SeriesKey = tuple[str, Labels]

PROMETHEUS_PREFIX = "promptchain_"


def _labels(labels: dict[str, str] | None) -> Labels:
    return tuple(sorted((k, str(v)) for k, v in (labels or {}).items()))


def _display_key(key: SeriesKey) -> str:
    name, labels = key
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def _histogram_stats(values: list[float]) -> dict[str, Any]:
    if not values:
        return {"count": 0, "sum": 0, "min": 0, "max": 0, "avg": 0, "p95": 0}
    ordered = sorted(values)
    n = len(ordered)
    total = sum(ordered)
    return {
        "count": n,
        "sum": total,
        "min": ordered[0],
        "max": ordered[-1],
        "avg": total / n,
        "p95": ordered[max(0, int(n * 0.95) - 1)],
    }


class MetricsCollector:
    """Counters and histograms held in process memory."""

    def __init__(self):
        self.counters: dict[SeriesKey, int] = defaultdict(int)
        self.histograms: dict[SeriesKey, list[float]] = defaultdict(list)

    def increment_counter(self, name: str, value: int = 1, labels: dict[str, str] | None = None):
        self.counters[(name, _labels(labels))] += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None):
        self.histograms[(name, _labels(labels))].append(value)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        return self.counters.get((name, _labels(labels)), 0)

    def get_histogram_stats(self, name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
        """count, sum, min, max, avg and p95 of one histogram series."""
        return _histogram_stats(self.histograms.get((name, _labels(labels)), []))

    def get_all_metrics(self) -> dict[str, Any]:
        """JSON-friendly snapshot; series render as ``name{k=v,...}``."""
        return {
            "counters": {_display_key(k): v for k, v in self.counters.items()},
            "histograms": {_display_key(k): _histogram_stats(v) for k, v in self.histograms.items()},
        }

    def reset(self):
        self.counters.clear()
        self.histograms.clear()


# Process-wide collector, exposed by the API
metrics = MetricsCollector()


def record_run_started(collector: MetricsCollector | None = None):
    (collector or metrics).increment_counter("run_started_total")


def record_run_completed(duration_seconds: float, status: str, collector: MetricsCollector | None = None):
    """
    Record a run reaching a terminal state.

    Args:
        duration_seconds: Run wall-clock time in seconds
        status: Terminal status (completed, stopped, errored)
    """
    c = collector or metrics
    c.increment_counter("run_completed_total", labels={"status": status})
    c.observe_histogram("run_duration_seconds", duration_seconds, labels={"status": status})


def record_node_execution(kind: str, status: str, collector: MetricsCollector | None = None):
    """Record one processed node (status: ok | error)."""
    (collector or metrics).increment_counter("node_execution_total", labels={"kind": kind, "status": status})


def record_provider_call(provider_id: str, duration_seconds: float, ok: bool, collector: MetricsCollector | None = None):
    c = collector or metrics
    c.observe_histogram("provider_call_duration_seconds", duration_seconds, labels={"provider": provider_id})
    if not ok:
        c.increment_counter("provider_failures_total", labels={"provider": provider_id})
        logger.debug("Provider failure recorded for %s", provider_id)


def get_metrics_summary() -> dict:
    return metrics.get_all_metrics()


def _prom_labels(labels: Labels, extra: tuple[str, str] | None = None) -> str:
    pairs = list(labels) + ([extra] if extra else [])
    if not pairs:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in pairs) + "}"


def to_prometheus_text(collector: MetricsCollector | None = None) -> str:
    """Render a collector in Prometheus text exposition format.

    Each family gets one ``# TYPE`` line; histograms are rendered as
    summaries with count/sum and 0.95 / 1.0 quantiles.
    """
    c = collector or metrics
    lines: list[str] = []

    counter_families: dict[str, list[tuple[Labels, int]]] = defaultdict(list)
    for (name, labels), value in c.counters.items():
        counter_families[name].append((labels, value))
    for name, series in counter_families.items():
        prom = PROMETHEUS_PREFIX + name
        lines.append(f"# TYPE {prom} counter")
        for labels, value in series:
            lines.append(f"{prom}{_prom_labels(labels)} {value}")

    histogram_families: dict[str, list[tuple[Labels, list[float]]]] = defaultdict(list)
    for (name, labels), values in c.histograms.items():
        histogram_families[name].append((labels, values))
    for name, series in histogram_families.items():
        prom = PROMETHEUS_PREFIX + name
        lines.append(f"# TYPE {prom} summary")
        for labels, values in series:
            stats = _histogram_stats(values)
            lines.append(f"{prom}_count{_prom_labels(labels)} {stats['count']}")
            lines.append(f"{prom}_sum{_prom_labels(labels)} {stats['sum']:.6f}")
            if stats["count"]:
                lines.append(f"{prom}{_prom_labels(labels, ('quantile', '0.95'))} {stats['p95']:.6f}")
                lines.append(f"{prom}{_prom_labels(labels, ('quantile', '1.0'))} {stats['max']:.6f}")
    return "\n".join(lines) + "\n"

"""
Prometheus metrics for one model constructor run.

Each run owns its own CollectorRegistry; the batch job has no scrape
endpoint, so the registry is dumped to a .prom text file at the end
(node_exporter textfile collector format).
"""
from __future__ import annotations

import logging
from pathlib import Path

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

log = logging.getLogger(__name__)


class JobMetrics:
    def __init__(self):
        self.registry = CollectorRegistry()
        self.users_scored = Counter(
            "itemrec_users_scored_total", "Users whose recommendations were written", registry=self.registry
        )
        self.users_failed = Counter(
            "itemrec_users_failed_total", "Users whose scoring failed", ["reason"], registry=self.registry
        )
        self.unmapped = Counter(
            "itemrec_unmapped_entities_total", "Matrix columns without an index entry", ["kind"],
            registry=self.registry,
        )
        self.sink_retries = Counter(
            "itemrec_sink_write_retries_total", "Retried result writes", registry=self.registry
        )
        self.sink_lost = Counter(
            "itemrec_sink_writes_lost_total", "Results dropped after all retries", registry=self.registry
        )
        self.scoring_latency = Histogram(
            "itemrec_user_scoring_seconds", "Per-user scoring latency",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
            registry=self.registry,
        )
        self.job_duration = Gauge(
            "itemrec_job_duration_seconds", "Wall time of the whole run", registry=self.registry
        )

    def value(self, name: str, **labels) -> float:
        v = self.registry.get_sample_value(name, labels or None)
        return v or 0.0

    def render(self) -> str:
        return generate_latest(self.registry).decode("utf-8")

    def write(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render())
        log.info(f"Exported job metrics to {path}")
        return path

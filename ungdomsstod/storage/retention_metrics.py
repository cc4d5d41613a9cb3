"""
Prometheus metrics for the retention system.

Tracks planned and executed removals per record type, sweep outcomes and
history ledger writes.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .retention_models import CleanupReport, SweepResult

logger = logging.getLogger(__name__)


class RetentionMetrics:
    """
    Metrics for retention sweeps and the history ledger.

    Metrics include:
    - Records eligible for removal in the latest preview
    - Records removed per type
    - Sweep executions by status and their duration
    - History upserts by metric and operation
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize retention metrics.

        Args:
            registry: Optional Prometheus registry. A private registry is created if None.
        """
        self.registry = registry or CollectorRegistry()

        self.records_eligible = Gauge(
            'retention_records_eligible',
            'Records eligible for permanent removal in the latest sweep',
            ['record_type'],
            registry=self.registry
        )

        self.records_removed = Counter(
            'retention_records_removed_total',
            'Records permanently removed by retention sweeps',
            ['record_type'],
            registry=self.registry
        )

        self.sweeps_executed = Counter(
            'retention_sweeps_executed_total',
            'Retention sweep executions',
            ['status'],
            registry=self.registry
        )

        self.removal_failures = Counter(
            'retention_removal_failures_total',
            'Items the cleanup executor failed to remove',
            registry=self.registry
        )

        self.sweep_duration = Histogram(
            'retention_sweep_duration_seconds',
            'Time spent applying removal plans',
            registry=self.registry
        )

        self.history_upserts = Counter(
            'history_upserts_total',
            'History ledger upserts',
            ['metric', 'operation'],
            registry=self.registry
        )

    def record_sweep_preview(self, sweep: SweepResult) -> None:
        for record_type, count in sweep.counts().items():
            self.records_eligible.labels(record_type=record_type).set(count)

    def record_cleanup(self, report: CleanupReport) -> None:
        for record_type, count in report.removed.items():
            if count:
                self.records_removed.labels(record_type=record_type).inc(count)
        if report.failures:
            self.removal_failures.inc(len(report.failures))
        self.sweeps_executed.labels(status=report.status).inc()
        self.sweep_duration.observe(report.duration_seconds)

    def record_history_upsert(self, metric: str, created: bool) -> None:
        self.history_upserts.labels(metric=metric, operation='insert' if created else 'update').inc()

    def get_metrics_text(self) -> str:
        """Render the registry in the Prometheus exposition format."""
        return generate_latest(self.registry).decode('utf-8')

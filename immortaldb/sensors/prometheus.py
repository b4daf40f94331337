"""Prometheus backend for the operator sensor hooks.

Every metric is labelled with the `name` and `namespace` of the ImmortalDB it
concerns, and prefixed with `immortaldb_`.
"""

from typing import Any, Dict, List, Optional
import time
import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, Gauge

from immortaldb.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)

PREFIX = "immortaldb_"
PASS_BUCKETS = (0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
WRITE_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0)
WRITE_LABELS = ("name", "namespace", "resource_type", "operation", "result")


def _result(success: bool) -> str:
    return "success" if success else "failure"


class PrometheusMonitor(OperatorSensor):
    """Records reconciliation passes and API writes as Prometheus metrics.

    Metrics register in `registry`, the process-wide default unless given;
    tests pass a fresh `CollectorRegistry` to stay isolated.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        def metric(cls, name, doc, labels, **kwargs):
            return cls(PREFIX + name, doc, labelnames=labels, registry=registry, **kwargs)

        # passes
        self.reconcile_duration = metric(
            Histogram,
            "reconcile_duration_seconds",
            "Duration of one reconciliation pass",
            ("name", "namespace", "trigger_source", "result"),
            buckets=PASS_BUCKETS,
        )
        self.reconcile_total = metric(
            Counter,
            "reconcile_total",
            "Reconciliation passes by outcome",
            ("name", "namespace", "trigger_source", "outcome"),
        )
        self.reconcile_errors = metric(
            Counter,
            "reconcile_errors_total",
            "Failed reconciliation passes by error type",
            ("name", "namespace", "error_type"),
        )
        self.reconcile_waiting = metric(
            Gauge,
            "reconcile_waiting",
            "Passes waiting for a running pass of the same ImmortalDB",
            ("name", "namespace"),
        )

        # writes
        self.resource_sync_duration = metric(
            Histogram,
            "resource_sync_duration_seconds",
            "Duration of writes to the Kubernetes API",
            WRITE_LABELS,
            buckets=WRITE_BUCKETS,
        )
        self.resource_sync_total = metric(
            Counter,
            "resource_sync_total",
            "Writes to the Kubernetes API",
            WRITE_LABELS,
        )
        self.resource_drift_detected = metric(
            Counter,
            "resource_drift_detected_total",
            "Fields found to differ from the desired state and left as they are",
            ("name", "namespace", "resource_type", "drift_field"),
        )
        self.status_updates = metric(
            Counter,
            "status_updates_total",
            "Status fields written",
            ("name", "namespace", "update_field"),
        )

        logger.info("Prometheus metrics registered")

    def on_reconcile_start(
        self, name: str, namespace: str, trigger_source: str
    ) -> Optional[Dict[str, Any]]:
        return {"start_time": time.monotonic(), "trigger_source": trigger_source}

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        outcome: Optional[str],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        if not state:
            return
        trigger_source = state["trigger_source"]
        result = _result(success)
        self.reconcile_duration.labels(name, namespace, trigger_source, result).observe(
            time.monotonic() - state["start_time"]
        )
        # Failed passes count under outcome "failure"
        self.reconcile_total.labels(
            name, namespace, trigger_source, outcome if success and outcome else result
        ).inc()
        if error is not None:
            self.reconcile_errors.labels(name, namespace, type(error).__name__).inc()

    def on_reconcile_queued(self, name: str, namespace: str, waiting: int) -> None:
        self.reconcile_waiting.labels(name, namespace).set(waiting)

    def on_resource_sync_start(
        self, name: str, resource_name: str, namespace: str, resource_type: str
    ) -> Optional[Dict[str, Any]]:
        return {"start_time": time.monotonic()}

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        labels = (name, namespace, resource_type, operation, _result(success))
        if state:
            self.resource_sync_duration.labels(*labels).observe(
                time.monotonic() - state["start_time"]
            )
        self.resource_sync_total.labels(*labels).inc()

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        for field in drift_fields:
            self.resource_drift_detected.labels(
                name, namespace, resource_type, field
            ).inc()

    def on_status_update(
        self, name: str, namespace: str, update_fields: List[str]
    ) -> None:
        for field in update_fields:
            self.status_updates.labels(name, namespace, field).inc()

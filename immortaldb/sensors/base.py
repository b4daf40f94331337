"""Hook interface observed by the reconciler.

Every hook is a no-op here. Hooks that time an operation come in start and
complete pairs: whatever `on_*_start` returns is passed back unchanged as the
`state` argument of the matching `on_*_complete` call.
"""

from typing import Any, Dict, List, Optional

SensorState = Optional[Dict[str, Any]]


class OperatorSensor:
    """No-op sensor; subclasses override the hooks they need.

    Hooks must not raise: a failing sensor is a monitoring problem, not a
    reconciliation failure. Use `SensorDelegate` to guard several backends.
    """

    # ---- reconciliation passes ----

    def on_reconcile_start(
        self, name: str, namespace: str, trigger_source: str
    ) -> SensorState:
        """A pass for ImmortalDB `namespace/name` starts.

        `trigger_source` is the kopf cause (create, update, resume), `timer`
        or `workload`.
        """

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: SensorState,
        outcome: Optional[str],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """A pass ended; `outcome` is a `ReconcileOutcome` value, None on failure."""

    def on_reconcile_queued(self, name: str, namespace: str, waiting: int) -> None:
        """A pass waits for another pass of the same ImmortalDB."""

    # ---- writes ----

    def on_resource_sync_start(
        self, name: str, resource_name: str, namespace: str, resource_type: str
    ) -> SensorState:
        """A write of `resource_type` (deployment or status) is about to be sent."""

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: SensorState,
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """A write finished; `operation` is create, scale or replace_status."""

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """A live resource differs from the desired one in fields that are
        only set at creation."""

    def on_status_update(
        self, name: str, namespace: str, update_fields: List[str]
    ) -> None:
        """Status fields `update_fields` were written."""

"""Fan-out of sensor hooks to several monitoring backends."""

from typing import Any, Dict, List, Optional, Set
import logging

from immortaldb.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)

DelegateState = Optional[Dict[OperatorSensor, Any]]


class SensorDelegate(OperatorSensor):
    """Forwards every hook to each registered sensor.

    The state returned by a start hook maps each sensor to its own state, and
    the complete hook hands every sensor back what it returned. An exception
    raised by one sensor is logged and does not reach the other sensors or
    the reconciler.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())
        reconciler = ImmortalDBReconciler(..., sensor=delegate)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Registering sensor {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        self._sensors.discard(sensor)

    def clear(self) -> None:
        self._sensors.clear()

    def __len__(self) -> int:
        return len(self._sensors)

    def _call(self, sensor: OperatorSensor, hook: str, *args: Any) -> Any:
        try:
            return getattr(sensor, hook)(*args)
        except Exception as e:
            logger.error(
                f"Sensor {sensor.__class__.__name__} failed in {hook}: {e}",
                exc_info=True,
            )
            return None

    def _start(self, hook: str, *args: Any) -> DelegateState:
        states = {}
        for sensor in self._sensors:
            state = self._call(sensor, hook, *args)
            if state is not None:
                states[sensor] = state
        return states or None

    def _complete(
        self, hook: str, state: DelegateState, head: tuple, tail: tuple
    ) -> None:
        for sensor in self._sensors:
            own = state.get(sensor) if state else None
            self._call(sensor, hook, *head, own, *tail)

    def _broadcast(self, hook: str, *args: Any) -> None:
        for sensor in self._sensors:
            self._call(sensor, hook, *args)

    def on_reconcile_start(self, name, namespace, trigger_source) -> DelegateState:
        return self._start("on_reconcile_start", name, namespace, trigger_source)

    def on_reconcile_complete(
        self, name, namespace, state, outcome, success, error=None
    ) -> None:
        self._complete(
            "on_reconcile_complete", state, (name, namespace), (outcome, success, error)
        )

    def on_reconcile_queued(self, name, namespace, waiting) -> None:
        self._broadcast("on_reconcile_queued", name, namespace, waiting)

    def on_resource_sync_start(
        self, name, resource_name, namespace, resource_type
    ) -> DelegateState:
        return self._start(
            "on_resource_sync_start", name, resource_name, namespace, resource_type
        )

    def on_resource_sync_complete(
        self,
        name,
        resource_name,
        namespace,
        resource_type,
        state,
        operation,
        success,
        error=None,
    ) -> None:
        self._complete(
            "on_resource_sync_complete",
            state,
            (name, resource_name, namespace, resource_type),
            (operation, success, error),
        )

    def on_resource_drift_detected(
        self, name, resource_name, namespace, resource_type, drift_fields: List[str]
    ) -> None:
        self._broadcast(
            "on_resource_drift_detected",
            name,
            resource_name,
            namespace,
            resource_type,
            drift_fields,
        )

    def on_status_update(self, name, namespace, update_fields: List[str]) -> None:
        self._broadcast("on_status_update", name, namespace, update_fields)

"""ImmortalDB Operator Sensor Framework.

Non-invasive instrumentation of reconciliation passes through a hook-based
pattern.

Key components:
- OperatorSensor: Base class defining lifecycle hooks (all no-ops)
- SensorDelegate: Fan-out of events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from immortaldb.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from immortaldb.sensors.base import OperatorSensor
from immortaldb.sensors.delegate import SensorDelegate
from immortaldb.sensors.prometheus import PrometheusMonitor
from immortaldb.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]

"""Limitador Operator Sensor Framework.

A hook-based instrumentation layer for the operator. Handlers and resources
report lifecycle events to a sensor; sensors turn them into metrics or logs.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out of events to several sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from limitador.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from limitador.sensors.base import OperatorSensor
from limitador.sensors.delegate import SensorDelegate
from limitador.sensors.prometheus import PrometheusMonitor
from limitador.sensors.server import init_metrics_server

__all__ = [
    "OperatorSensor",
    "SensorDelegate",
    "PrometheusMonitor",
    "init_metrics_server",
]

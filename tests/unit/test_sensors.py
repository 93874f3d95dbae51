"""Unit tests for the sensor framework."""

import pytest
from unittest.mock import Mock
from prometheus_client import CollectorRegistry
from limitador.sensors import OperatorSensor, PrometheusMonitor, SensorDelegate


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def monitor(registry):
    return PrometheusMonitor(registry=registry)


class TestSensorDelegate:
    def test_fan_out(self):
        first, second = Mock(spec=OperatorSensor), Mock(spec=OperatorSensor)
        delegate = SensorDelegate()
        delegate.add(first)
        delegate.add(second)

        delegate.on_migration_complete("test", "ns", "v0.7.0")

        first.on_migration_complete.assert_called_once_with("test", "ns", "v0.7.0")
        second.on_migration_complete.assert_called_once_with("test", "ns", "v0.7.0")

    def test_state_routed_per_sensor(self):
        first, second = Mock(spec=OperatorSensor), Mock(spec=OperatorSensor)
        first.on_reconcile_start.return_value = {"sensor": 1}
        second.on_reconcile_start.return_value = None
        delegate = SensorDelegate()
        delegate.add(first)
        delegate.add(second)

        state = delegate.on_reconcile_start("test", "ns", 1, "timer")
        delegate.on_reconcile_complete("test", "ns", state, True)

        first.on_reconcile_complete.assert_called_once_with(
            "test", "ns", {"sensor": 1}, True, None
        )
        second.on_reconcile_complete.assert_called_once_with(
            "test", "ns", None, True, None
        )

    def test_failing_sensor_does_not_stop_others(self):
        broken, healthy = Mock(spec=OperatorSensor), Mock(spec=OperatorSensor)
        broken.on_status_update.side_effect = RuntimeError("boom")
        delegate = SensorDelegate()
        delegate.add(broken)
        delegate.add(healthy)

        delegate.on_status_update("test", "ns", True, "Ready")

        healthy.on_status_update.assert_called_once_with("test", "ns", True, "Ready")

    def test_empty_delegate(self):
        delegate = SensorDelegate()

        assert delegate.on_reconcile_start("test", "ns", 1, "timer") is None

    def test_remove(self):
        sensor = Mock(spec=OperatorSensor)
        delegate = SensorDelegate()
        delegate.add(sensor)
        delegate.remove(sensor)

        delegate.on_reconcile_requeued("test", "ns", "pods")

        sensor.on_reconcile_requeued.assert_not_called()


class TestPrometheusMonitor:
    def test_reconcile_metrics(self, monitor, registry):
        state = monitor.on_reconcile_start("test", "ns", 1, "timer")
        monitor.on_reconcile_complete("test", "ns", state, False, ValueError("x"))

        labels = {
            "limitador_name": "test",
            "namespace": "ns",
            "trigger_source": "timer",
            "result": "failure",
        }
        assert registry.get_sample_value("limitadorop_reconcile_total", labels) == 1
        assert (
            registry.get_sample_value(
                "limitadorop_reconcile_errors_total",
                {"limitador_name": "test", "namespace": "ns", "error_type": "ValueError"},
            )
            == 1
        )

    def test_drift_counted_per_field(self, monitor, registry):
        monitor.on_resource_drift_detected(
            "test",
            "limitador-test",
            "limitador-test",
            "ns",
            "Deployment",
            ["deployment_image_mutator", "deployment_replicas_mutator"],
        )

        value = registry.get_sample_value(
            "limitadorop_resource_drift_detected_total",
            {
                "limitador_name": "test",
                "resource_type": "Deployment",
                "namespace": "ns",
                "drift_field": "deployment_image_mutator",
            },
        )
        assert value == 1

    def test_ready_gauge(self, monitor, registry):
        labels = {"limitador_name": "test", "namespace": "ns"}

        monitor.on_status_update("test", "ns", True, "Ready")
        assert registry.get_sample_value("limitadorop_ready", labels) == 1

        monitor.on_status_update("test", "ns", False, "NotAvailable")
        assert registry.get_sample_value("limitadorop_ready", labels) == 0

    def test_limit_push(self, monitor, registry):
        monitor.on_limit_push("rl", "ns", "create", True)

        value = registry.get_sample_value(
            "limitadorop_limit_pushes_total",
            {
                "ratelimit_name": "rl",
                "namespace": "ns",
                "operation": "create",
                "result": "success",
            },
        )
        assert value == 1

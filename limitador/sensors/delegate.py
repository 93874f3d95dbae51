"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to several monitoring backends at once.
Each backend receives the same events and keeps its own state, so metrics and
logging sensors can run side by side.
"""

from typing import Set, Dict, List, Optional, Any
import logging

from limitador.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    State tracking is handled per-sensor: start hooks return a dict mapping each
    sensor to its own state, and complete hooks hand every sensor its state back.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("limitador", "default", 5, "timer")
        delegate.on_reconcile_complete("limitador", "default", state, True)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _start(self, hook: str, *args: Any) -> Optional[Dict[OperatorSensor, Any]]:
        if not self._sensors:
            return None
        states = {}
        for sensor in self._sensors:
            try:
                state = getattr(sensor, hook)(*args)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )
        return states if states else None

    def _fan_out(self, hook: str, *args: Any, **kwargs: Any) -> None:
        for sensor in self._sensors:
            try:
                getattr(sensor, hook)(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    def _complete(
        self, hook: str, state: Optional[Dict[OperatorSensor, Any]], build_args
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                getattr(sensor, hook)(*build_args(sensor_state))
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        limitador_name: str,
        namespace: str,
        generation: int,
        trigger_source: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        return self._start(
            "on_reconcile_start", limitador_name, namespace, generation, trigger_source
        )

    def on_reconcile_complete(
        self,
        limitador_name: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._complete(
            "on_reconcile_complete",
            state,
            lambda s: (limitador_name, namespace, s, success, error),
        )

    def on_reconcile_requeued(
        self, limitador_name: str, namespace: str, reason: str
    ) -> None:
        self._fan_out("on_reconcile_requeued", limitador_name, namespace, reason)

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        return self._start(
            "on_resource_sync_start",
            limitador_name,
            component_name,
            resource_name,
            namespace,
            resource_type,
        )

    def on_resource_sync_complete(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._complete(
            "on_resource_sync_complete",
            state,
            lambda s: (
                limitador_name,
                component_name,
                resource_name,
                namespace,
                resource_type,
                s,
                operation,
                success,
                error,
            ),
        )

    def on_resource_drift_detected(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        self._fan_out(
            "on_resource_drift_detected",
            limitador_name,
            component_name,
            resource_name,
            namespace,
            resource_type,
            drift_fields,
        )

    # =============================================================================
    # Status, Migration and Limit Hooks
    # =============================================================================

    def on_status_update(
        self, limitador_name: str, namespace: str, ready: bool, reason: str
    ) -> None:
        self._fan_out("on_status_update", limitador_name, namespace, ready, reason)

    def on_migration_complete(
        self, limitador_name: str, namespace: str, version: str
    ) -> None:
        self._fan_out("on_migration_complete", limitador_name, namespace, version)

    def on_limit_push(
        self, ratelimit_name: str, namespace: str, operation: str, success: bool
    ) -> None:
        self._fan_out("on_limit_push", ratelimit_name, namespace, operation, success)

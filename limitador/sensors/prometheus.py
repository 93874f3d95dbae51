"""Prometheus monitoring backend for the limitador operator.

PrometheusMonitor turns operator lifecycle events into Prometheus metrics:

1. Reconciliation loop health - duration, throughput, errors, requeues
2. Owned resource sync - operation counts, latency, drift per mutator
3. Status writes, legacy migrations and limit pushes

All metrics carry labels for the Limitador name and namespace.
"""

from typing import Dict, List, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram, Gauge, REGISTRY, CollectorRegistry

from limitador.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the limitador operator.

    Metrics are organized into:
    - limitadorop_reconcile_* - Reconciliation loop metrics
    - limitadorop_resource_* - Kubernetes resource sync metrics
    - limitadorop_status_* / limitadorop_migrations_* / limitadorop_limit_* -
      status, migration and limit push metrics

    Example:
        monitor = PrometheusMonitor()
        state = monitor.on_reconcile_start("limitador", "default", 5, "timer")
        monitor.on_reconcile_complete("limitador", "default", state, True)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            "limitadorop_reconcile_duration_seconds",
            "Time spent in reconciliation passes",
            labelnames=["limitador_name", "namespace", "trigger_source", "result"],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            "limitadorop_reconcile_total",
            "Total number of reconciliation passes",
            labelnames=["limitador_name", "namespace", "trigger_source", "result"],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            "limitadorop_reconcile_errors_total",
            "Total number of reconciliation errors",
            labelnames=["limitador_name", "namespace", "error_type"],
            registry=registry,
        )

        self.reconcile_requeues = Counter(
            "limitadorop_reconcile_requeues_total",
            "Total number of passes retried because they were not finished",
            labelnames=["limitador_name", "namespace", "reason"],
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            "limitadorop_resource_sync_duration_seconds",
            "Time spent writing owned Kubernetes resources",
            labelnames=["limitador_name", "resource_type", "namespace", "operation", "result"],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            "limitadorop_resource_sync_total",
            "Total number of owned resource writes",
            labelnames=["limitador_name", "resource_type", "namespace", "operation", "result"],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            "limitadorop_resource_sync_errors_total",
            "Total number of owned resource write errors",
            labelnames=["limitador_name", "resource_type", "namespace", "error_type"],
            registry=registry,
        )

        self.resource_drift_detected = Counter(
            "limitadorop_resource_drift_detected_total",
            "Total number of drifted fields corrected by mutators",
            labelnames=["limitador_name", "resource_type", "namespace", "drift_field"],
            registry=registry,
        )

        # =============================================================================
        # Status, Migration and Limit Metrics
        # =============================================================================

        self.status_updates = Counter(
            "limitadorop_status_updates_total",
            "Total number of status writes",
            labelnames=["limitador_name", "namespace", "reason"],
            registry=registry,
        )

        self.ready = Gauge(
            "limitadorop_ready",
            "Whether the Limitador reports Ready (1) or not (0)",
            labelnames=["limitador_name", "namespace"],
            registry=registry,
        )

        self.migrations_total = Counter(
            "limitadorop_migrations_total",
            "Total number of completed legacy resource migrations",
            labelnames=["limitador_name", "namespace", "version"],
            registry=registry,
        )

        self.limit_pushes_total = Counter(
            "limitadorop_limit_pushes_total",
            "Total number of RateLimit pushes to limitador servers",
            labelnames=["ratelimit_name", "namespace", "operation", "result"],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        limitador_name: str,
        namespace: str,
        generation: int,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            "start_time": time.time(),
            "trigger_source": trigger_source,
        }

    def on_reconcile_complete(
        self,
        limitador_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state["start_time"]
            trigger_source = state["trigger_source"]
            result = "success" if success else "failure"

            self.reconcile_duration.labels(
                limitador_name=limitador_name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                limitador_name=limitador_name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                limitador_name=limitador_name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    def on_reconcile_requeued(
        self, limitador_name: str, namespace: str, reason: str
    ) -> None:
        self.reconcile_requeues.labels(
            limitador_name=limitador_name, namespace=namespace, reason=reason
        ).inc()

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
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {"start_time": time.time()}

    def on_resource_sync_complete(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and result."""
        result = "success" if success else "failure"
        if state:
            self.resource_sync_duration.labels(
                limitador_name=limitador_name,
                resource_type=resource_type,
                namespace=namespace,
                operation=operation,
                result=result,
            ).observe(time.time() - state["start_time"])

        self.resource_sync_total.labels(
            limitador_name=limitador_name,
            resource_type=resource_type,
            namespace=namespace,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                limitador_name=limitador_name,
                resource_type=resource_type,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    def on_resource_drift_detected(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Count each drifted field."""
        for field in drift_fields:
            self.resource_drift_detected.labels(
                limitador_name=limitador_name,
                resource_type=resource_type,
                namespace=namespace,
                drift_field=field,
            ).inc()

    # =============================================================================
    # Status, Migration and Limit Hooks
    # =============================================================================

    def on_status_update(
        self, limitador_name: str, namespace: str, ready: bool, reason: str
    ) -> None:
        self.status_updates.labels(
            limitador_name=limitador_name, namespace=namespace, reason=reason
        ).inc()
        self.ready.labels(limitador_name=limitador_name, namespace=namespace).set(
            1 if ready else 0
        )

    def on_migration_complete(
        self, limitador_name: str, namespace: str, version: str
    ) -> None:
        self.migrations_total.labels(
            limitador_name=limitador_name, namespace=namespace, version=version
        ).inc()

    def on_limit_push(
        self, ratelimit_name: str, namespace: str, operation: str, success: bool
    ) -> None:
        self.limit_pushes_total.labels(
            ratelimit_name=ratelimit_name,
            namespace=namespace,
            operation=operation,
            result="success" if success else "failure",
        ).inc()

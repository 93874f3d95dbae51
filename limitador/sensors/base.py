"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

The hook pattern:
- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
- All hooks are optional
"""

from typing import Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for limitador operator monitoring.

    This class defines lifecycle hooks for:
    1. Reconciliation passes of a Limitador
    2. Owned resource operations (create, update, delete, drift)
    3. Status writes, legacy resource migrations and limit pushes

    All methods are no-ops by default.

    Example:
        class LoggingSensor(OperatorSensor):
            def on_reconcile_start(self, name, namespace, generation, trigger_source):
                return {'start_time': time.time()}

            def on_reconcile_complete(self, name, namespace, state, success, error=None):
                duration = time.time() - state['start_time']
                logger.info(f"Reconciled {name} in {duration}s")
    """

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
        """Called when a reconciliation pass begins.

        Args:
            limitador_name: Limitador resource name
            namespace: Kubernetes namespace
            generation: Resource generation number
            trigger_source: What triggered reconciliation (create, update, timer, ...)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        limitador_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            limitador_name: Limitador resource name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            success: Whether the pass succeeded
            error: Exception if the pass failed
        """
        pass

    def on_reconcile_requeued(
        self,
        limitador_name: str,
        namespace: str,
        reason: str,
    ) -> None:
        """Called when a pass asks to be retried later.

        Args:
            limitador_name: Limitador resource name
            namespace: Kubernetes namespace
            reason: Why the pass is not finished (pods, status, migration, conflict)
        """
        pass

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
        """Called when a write to an owned resource begins.

        Args:
            limitador_name: Limitador resource name
            component_name: Name of the limitador component (the deployment)
            resource_name: Actual K8s resource name being written
            namespace: Kubernetes namespace
            resource_type: Kind of resource (Deployment, Service, ConfigMap, ...)

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called when a write to an owned resource completes.

        Args:
            limitador_name: Limitador resource name
            component_name: Name of the limitador component (the deployment)
            resource_name: Actual K8s resource name written
            namespace: Kubernetes namespace
            resource_type: Kind of resource
            state: State dict returned from on_resource_sync_start
            operation: Operation performed (create, update, delete)
            success: Whether operation succeeded
            error: Exception if operation failed
        """
        pass

    def on_resource_drift_detected(
        self,
        limitador_name: str,
        component_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Called when mutators find an owned resource out of its desired state.

        Args:
            limitador_name: Limitador resource name
            component_name: Name of the limitador component (the deployment)
            resource_name: Actual K8s resource name with drift
            namespace: Kubernetes namespace
            resource_type: Kind of resource with drift
            drift_fields: Names of the mutators that changed the resource
        """
        pass

    # =============================================================================
    # Status, Migration and Limit Hooks
    # =============================================================================

    def on_status_update(
        self,
        limitador_name: str,
        namespace: str,
        ready: bool,
        reason: str,
    ) -> None:
        """Called after the status subresource has been written.

        Args:
            limitador_name: Limitador resource name
            namespace: Kubernetes namespace
            ready: Status of the Ready condition
            reason: Reason of the Ready condition
        """
        pass

    def on_migration_complete(
        self,
        limitador_name: str,
        namespace: str,
        version: str,
    ) -> None:
        """Called when legacy resources of an older operator version are removed.

        Args:
            limitador_name: Limitador resource name
            namespace: Kubernetes namespace
            version: Operator version the migration upgrades to
        """
        pass

    def on_limit_push(
        self,
        ratelimit_name: str,
        namespace: str,
        operation: str,
        success: bool,
    ) -> None:
        """Called when a RateLimit is pushed to or removed from a limitador server.

        Args:
            ratelimit_name: RateLimit resource name
            namespace: Kubernetes namespace
            operation: create or delete
            success: Whether the limitador API accepted the call
        """
        pass

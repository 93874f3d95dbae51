"""Status aggregation for Limitador instances.

The Ready condition is derived on every pass from the error of the spec phase
(if any) and the Available condition of the owned deployment. Condition history
is merged by type so lastTransitionTime only moves when the status flips.
"""

from typing import Any, Dict, List, Optional
from kubernetes_asyncio.client import ApiException, V1Deployment
from limitador.types.models.limitador_resources import LimitadorResources
from limitador.utils.helpers import upsert_condition, find_condition, deep_compare_dict
from limitador.utils.errors import describe_api_exception

READY = "Ready"
AVAILABLE = "Available"

REASON_RECONCILIATION_ERROR = "ReconciliationError"
REASON_NOT_AVAILABLE = "NotAvailable"
REASON_READY = "Ready"

READY_MESSAGE = "Limitador is ready"
AVAILABLE_NOT_FOUND_MESSAGE = "Available condition not found"


def deployment_not_found_message(deployment_name: str) -> str:
    return f'deployments.apps "{deployment_name}" not found'


def error_message(error: Exception) -> str:
    if isinstance(error, ApiException):
        return describe_api_exception(error)
    return str(error)


def ready_condition(
    spec_error: Optional[Exception],
    deployment: Optional[V1Deployment],
    deployment_name: str,
) -> Dict[str, str]:
    """Compute the Ready condition, without timestamps.

    An error of the spec phase always wins. Otherwise the deployment must
    exist and report Available=True.
    """
    if spec_error is not None:
        return _condition(
            "False", REASON_RECONCILIATION_ERROR, error_message(spec_error)
        )

    if deployment is None:
        return _condition(
            "False",
            REASON_NOT_AVAILABLE,
            deployment_not_found_message(deployment_name),
        )

    conditions = getattr(deployment.status, "conditions", None) if deployment.status else None
    available = find_condition(conditions, AVAILABLE)
    if available is None:
        return _condition("False", REASON_NOT_AVAILABLE, AVAILABLE_NOT_FOUND_MESSAGE)

    if _condition_field(available, "status") != "True":
        return _condition(
            "False", REASON_NOT_AVAILABLE, _condition_field(available, "message") or ""
        )

    return _condition("True", REASON_READY, READY_MESSAGE)


def _condition(status: str, reason: str, message: str) -> Dict[str, str]:
    return {"type": READY, "status": status, "reason": reason, "message": message}


def _condition_field(condition: Any, field: str) -> Any:
    if isinstance(condition, dict):
        return condition.get(field)
    return getattr(condition, field, None)


def service_status(name: str, namespace: str, http_port: int, grpc_port: int) -> Dict:
    return {
        "host": LimitadorResources.qualified_service_name(name, namespace),
        "ports": {"http": http_port, "grpc": grpc_port},
    }


def calculate_status(
    name: str,
    namespace: str,
    generation: int,
    current: Optional[Dict[str, Any]],
    spec_error: Optional[Exception],
    deployment: Optional[V1Deployment],
    http_port: int,
    grpc_port: int,
) -> Dict[str, Any]:
    """Build the full status of an instance from scratch.

    Only the conditions of the current status are reused, so that transition
    times survive passes that do not change them.
    """
    current = current or {}
    condition = ready_condition(
        spec_error, deployment, LimitadorResources.deployment_name(name)
    )
    return {
        "observedGeneration": generation,
        "conditions": upsert_condition(current.get("conditions"), condition),
        "service": service_status(name, namespace, http_port, grpc_port),
    }


def _comparable_conditions(conditions: Optional[List[Dict]]) -> List[Dict]:
    stripped = [
        {k: v for k, v in c.items() if k != "lastTransitionTime"}
        for c in conditions or []
    ]
    return sorted(stripped, key=lambda c: c.get("type") or "")


def status_equals(current: Optional[Dict[str, Any]], new: Dict[str, Any]) -> bool:
    """True when writing `new` would not change anything meaningful."""
    current = current or {}
    if current.get("observedGeneration") != new.get("observedGeneration"):
        return False
    if not deep_compare_dict(current.get("service"), new.get("service")):
        return False
    return deep_compare_dict(
        _comparable_conditions(current.get("conditions")),
        _comparable_conditions(new.get("conditions")),
    )


def is_ready(status: Optional[Dict[str, Any]]) -> bool:
    condition = find_condition((status or {}).get("conditions"), READY)
    return condition is not None and condition.get("status") == "True"


def ready_reason(status: Optional[Dict[str, Any]]) -> Optional[str]:
    condition = find_condition((status or {}).get("conditions"), READY)
    return condition.get("reason") if condition else None

"""Field-level mutators that bring an existing object in line with a desired one.

A mutator is a pure function ``(desired, existing) -> bool``. It copies the
field it owns from ``desired`` into ``existing`` when the two differ and
reports whether it changed anything. Fields no mutator owns keep whatever value
the cluster (or another controller) gave them.

Values are compared in a normalized form: models are serialized with
``to_dict()``, unset values are pruned and empty lists count as unset, so
server-side defaults that are absent from the desired object are not reported
as drift. Desired objects are built as models, never as raw API dicts.
"""
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import yaml
from kubernetes_asyncio.client import (
    V1ConfigMap,
    V1Container,
    V1Deployment,
    V1PodDisruptionBudget,
    V1Service,
)
from limitador.utils.helpers import prune_nulls, deep_compare_dict

Mutator = Callable[[Any, Any], bool]

CONFIG_HASH_KEY = "hash"


def normalize(value: Any) -> Any:
    """Return a comparable, plain representation of ``value``."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return [normalize(item) for item in value]
    if hasattr(value, "to_dict"):
        return prune_nulls(value.to_dict())
    if isinstance(value, dict):
        return prune_nulls(value)
    return value


def differs(desired: Any, existing: Any) -> bool:
    return not deep_compare_dict(normalize(desired), normalize(existing))


def merge_labels(
    desired: Optional[Dict[str, str]], existing: Optional[Dict[str, str]]
) -> Tuple[Dict[str, str], bool]:
    """Merge desired labels into existing ones without removing any key."""
    merged = dict(existing or {})
    changed = False
    for key, value in (desired or {}).items():
        if merged.get(key) != value:
            merged[key] = value
            changed = True
    return merged, changed


def _container(deployment: V1Deployment) -> V1Container:
    return deployment.spec.template.spec.containers[0]


# ---------------------------------------------------------------------------
# Deployment
# ---------------------------------------------------------------------------


def deployment_replicas_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if existing.spec.replicas != desired.spec.replicas:
        existing.spec.replicas = desired.spec.replicas
        return True
    return False


def deployment_containers_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    desired_containers = desired.spec.template.spec.containers or []
    existing_containers = existing.spec.template.spec.containers or []
    if len(existing_containers) != len(desired_containers):
        existing.spec.template.spec.containers = desired_containers
        return True
    return False


def deployment_image_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if _container(existing).image != _container(desired).image:
        _container(existing).image = _container(desired).image
        return True
    return False


def deployment_command_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if list(_container(existing).command or []) != list(_container(desired).command or []):
        _container(existing).command = _container(desired).command
        return True
    return False


def deployment_strategy_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(desired.spec.strategy, existing.spec.strategy):
        existing.spec.strategy = desired.spec.strategy
        return True
    return False


def deployment_affinity_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(desired.spec.template.spec.affinity, existing.spec.template.spec.affinity):
        existing.spec.template.spec.affinity = desired.spec.template.spec.affinity
        return True
    return False


def deployment_resources_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(_container(desired).resources, _container(existing).resources):
        _container(existing).resources = _container(desired).resources
        return True
    return False


def deployment_volumes_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if differs(desired.spec.template.spec.volumes, existing.spec.template.spec.volumes):
        existing.spec.template.spec.volumes = desired.spec.template.spec.volumes
        return True
    return False


def deployment_volume_mounts_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(_container(desired).volume_mounts, _container(existing).volume_mounts):
        _container(existing).volume_mounts = _container(desired).volume_mounts
        return True
    return False


def deployment_env_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if differs(_container(desired).env, _container(existing).env):
        _container(existing).env = _container(desired).env
        return True
    return False


def deployment_ports_mutator(desired: V1Deployment, existing: V1Deployment) -> bool:
    if differs(_container(desired).ports, _container(existing).ports):
        _container(existing).ports = _container(desired).ports
        return True
    return False


def deployment_liveness_probe_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(_container(desired).liveness_probe, _container(existing).liveness_probe):
        _container(existing).liveness_probe = _container(desired).liveness_probe
        return True
    return False


def deployment_readiness_probe_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(
        _container(desired).readiness_probe, _container(existing).readiness_probe
    ):
        _container(existing).readiness_probe = _container(desired).readiness_probe
        return True
    return False


def deployment_image_pull_secrets_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    if differs(
        desired.spec.template.spec.image_pull_secrets,
        existing.spec.template.spec.image_pull_secrets,
    ):
        existing.spec.template.spec.image_pull_secrets = (
            desired.spec.template.spec.image_pull_secrets
        )
        return True
    return False


def deployment_template_labels_mutator(
    desired: V1Deployment, existing: V1Deployment
) -> bool:
    merged, changed = merge_labels(
        desired.spec.template.metadata.labels, existing.spec.template.metadata.labels
    )
    if changed:
        existing.spec.template.metadata.labels = merged
    return changed


def object_labels_mutator(desired: Any, existing: Any) -> bool:
    merged, changed = merge_labels(desired.metadata.labels, existing.metadata.labels)
    if changed:
        existing.metadata.labels = merged
    return changed


def deployment_mutators(
    replicas_set: bool = False, image_pull_secrets_set: bool = False
) -> Tuple[Mutator, ...]:
    """Ordered deployment mutators.

    The replica count is only enforced when the spec sets it, so an external
    scaler keeps control otherwise. Pull secrets are only enforced when set.
    """
    mutators: List[Mutator] = []
    if replicas_set:
        mutators.append(deployment_replicas_mutator)
    mutators.extend(
        [
            deployment_containers_mutator,
            deployment_image_mutator,
            deployment_command_mutator,
            deployment_strategy_mutator,
            deployment_affinity_mutator,
            deployment_resources_mutator,
            deployment_volumes_mutator,
            deployment_volume_mounts_mutator,
            deployment_env_mutator,
            deployment_ports_mutator,
            deployment_liveness_probe_mutator,
            deployment_readiness_probe_mutator,
        ]
    )
    if image_pull_secrets_set:
        mutators.append(deployment_image_pull_secrets_mutator)
    mutators.extend([deployment_template_labels_mutator, object_labels_mutator])
    return tuple(mutators)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def service_ports_mutator(desired: V1Service, existing: V1Service) -> bool:
    if differs(desired.spec.ports, existing.spec.ports):
        existing.spec.ports = desired.spec.ports
        return True
    return False


SERVICE_MUTATORS: Tuple[Mutator, ...] = (service_ports_mutator, object_labels_mutator)


# ---------------------------------------------------------------------------
# Limits ConfigMap
# ---------------------------------------------------------------------------


def parse_limits(text: Optional[str]) -> Optional[List[Dict[str, Any]]]:
    """Parse a limits document, None when it is missing or unreadable."""
    if text is None:
        return None
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return None


def config_map_limits_mutator(desired: V1ConfigMap, existing: V1ConfigMap) -> bool:
    existing_data = dict(existing.data or {})
    changed = False
    for key, value in (desired.data or {}).items():
        if key == CONFIG_HASH_KEY:
            continue
        if not deep_compare_dict(
            parse_limits(value), parse_limits(existing_data.get(key))
        ):
            existing_data[key] = value
            changed = True
    if changed:
        if CONFIG_HASH_KEY in (desired.data or {}):
            existing_data[CONFIG_HASH_KEY] = desired.data[CONFIG_HASH_KEY]
        existing.data = existing_data
    return changed


CONFIG_MAP_MUTATORS: Tuple[Mutator, ...] = (
    config_map_limits_mutator,
    object_labels_mutator,
)


# ---------------------------------------------------------------------------
# PodDisruptionBudget
# ---------------------------------------------------------------------------


def pdb_max_unavailable_mutator(
    desired: V1PodDisruptionBudget, existing: V1PodDisruptionBudget
) -> bool:
    if existing.spec.max_unavailable != desired.spec.max_unavailable:
        existing.spec.max_unavailable = desired.spec.max_unavailable
        return True
    return False


def pdb_min_available_mutator(
    desired: V1PodDisruptionBudget, existing: V1PodDisruptionBudget
) -> bool:
    if existing.spec.min_available != desired.spec.min_available:
        existing.spec.min_available = desired.spec.min_available
        return True
    return False


POD_DISRUPTION_BUDGET_MUTATORS: Tuple[Mutator, ...] = (
    pdb_max_unavailable_mutator,
    pdb_min_available_mutator,
)


# The claim spec is immutable once bound, so an existing PVC is left untouched.
PERSISTENT_VOLUME_CLAIM_MUTATORS: Tuple[Mutator, ...] = ()


def apply_mutators(mutators: Sequence[Mutator], desired: Any, existing: Any) -> List[str]:
    """Run every mutator in order and return the names of those that changed
    ``existing``."""
    return [mutator.__name__ for mutator in mutators if mutator(desired, existing)]

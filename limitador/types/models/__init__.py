from .rate_limit import RateLimit
from .storage import (
    SecretRef,
    Redis,
    RedisCached,
    RedisCachedOptions,
    Disk,
    PersistentVolumeClaimGenericSpec,
    PersistentVolumeClaimResources,
    Storage,
)
from .resource_requirements import ResourceRequirements
from .limitador_spec import (
    LimitadorSpec,
    Listener,
    TransportProtocol,
    PodDisruptionBudgetSpec,
    LocalObjectReference,
)
from .limitador_resources import LimitadorResources

__all__ = [
    "RateLimit",
    "SecretRef",
    "Redis",
    "RedisCached",
    "RedisCachedOptions",
    "Disk",
    "PersistentVolumeClaimGenericSpec",
    "PersistentVolumeClaimResources",
    "Storage",
    "ResourceRequirements",
    "LimitadorSpec",
    "Listener",
    "TransportProtocol",
    "PodDisruptionBudgetSpec",
    "LocalObjectReference",
    "LimitadorResources",
]

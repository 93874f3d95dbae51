from .rate_limit import RateLimitSchema
from .storage import (
    SecretRefSchema,
    RedisSchema,
    RedisCachedSchema,
    RedisCachedOptionsSchema,
    DiskSchema,
    PersistentVolumeClaimGenericSpecSchema,
    PersistentVolumeClaimResourcesSchema,
    StorageSchema,
)
from .resource_requirements import ResourceRequirementsSchema
from .limitador_spec import (
    LimitadorSpecSchema,
    ListenerSchema,
    TransportProtocolSchema,
    PodDisruptionBudgetSpecSchema,
    LocalObjectReferenceSchema,
)

__all__ = [
    "RateLimitSchema",
    "SecretRefSchema",
    "RedisSchema",
    "RedisCachedSchema",
    "RedisCachedOptionsSchema",
    "DiskSchema",
    "PersistentVolumeClaimGenericSpecSchema",
    "PersistentVolumeClaimResourcesSchema",
    "StorageSchema",
    "ResourceRequirementsSchema",
    "LimitadorSpecSchema",
    "ListenerSchema",
    "TransportProtocolSchema",
    "PodDisruptionBudgetSpecSchema",
    "LocalObjectReferenceSchema",
]

from typing import Optional
from limitador.types.base import BaseModel


class SecretRef(BaseModel):
    """Reference to the secret holding storage connection settings."""

    name: str
    namespace: Optional[str]


class RedisCachedOptions(BaseModel):
    """Tuning flags of the cached redis backend."""

    ttl: Optional[int]
    ratio: Optional[int]
    flush_period: Optional[int]
    max_cached: Optional[int]
    response_timeout: Optional[int]
    batch_size: Optional[int]


class Redis(BaseModel):
    config_secret_ref: Optional[SecretRef]


class RedisCached(BaseModel):
    config_secret_ref: Optional[SecretRef]
    options: Optional[RedisCachedOptions]


class PersistentVolumeClaimResources(BaseModel):
    requests: str


class PersistentVolumeClaimGenericSpec(BaseModel):
    storage_class_name: Optional[str]
    resources: Optional[PersistentVolumeClaimResources]
    volume_name: Optional[str]


class Disk(BaseModel):
    persistent_volume_claim: Optional[PersistentVolumeClaimGenericSpec]
    optimize: Optional[str]


class Storage(BaseModel):
    """Limitador storage configuration, at most one backend is set."""

    redis: Optional[Redis]
    redis_cached: Optional[RedisCached]
    disk: Optional[Disk]

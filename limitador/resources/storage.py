"""Storage strategy resolution.

Maps the storage section of a Limitador spec onto the pieces of the
deployment that depend on it: launch arguments, volumes, volume mounts and the
rollout strategy. Redis backends also validate their connection secret.
"""
from typing import List, Optional
from kubernetes_asyncio.client import (
    V1DeploymentStrategy,
    V1RollingUpdateDeployment,
    V1Volume,
    V1VolumeMount,
    V1PersistentVolumeClaimVolumeSource,
    V1EnvVar,
    V1EnvVarSource,
    V1SecretKeySelector,
)
from limitador.types.base import BaseModel
from limitador.types.models.storage import (
    Storage,
    Disk,
    RedisCachedOptions,
    SecretRef,
)
from limitador.resources.kinds import ResourceKind, SECRET
from limitador.utils.errors import ConfigurationError, ResourceNotFoundError

MEMORY = "memory"
REDIS = "redis"
REDIS_CACHED = "redis_cached"
DISK = "disk"

STORAGE_VOLUME_NAME = "storage"
DISK_PATH = "/var/lib/limitador/data"
REDIS_URL_SECRET_KEY = "URL"
DEFAULT_MAX_SURGE = "25%"
DEFAULT_MAX_UNAVAILABLE = "25%"

# Order of the cached redis flags on the command line.
REDIS_CACHED_FLAGS = (
    ("ttl", "--ttl"),
    ("ratio", "--ratio"),
    ("flush_period", "--flush-period"),
    ("max_cached", "--max-cached"),
    ("response_timeout", "--response-timeout"),
    ("batch_size", "--batch-size"),
)


class StorageStrategy(BaseModel):
    """Deployment pieces derived from the storage configuration."""

    command: List[str]
    volume_mounts: List[V1VolumeMount]
    volumes: List[V1Volume]
    strategy: V1DeploymentStrategy


def storage_mode(storage: Optional[Storage]) -> str:
    """Return which backend the storage section selects, in-memory when unset."""
    if storage is None:
        return MEMORY
    selected = [
        mode
        for mode, value in (
            (REDIS, getattr(storage, "redis", None)),
            (REDIS_CACHED, getattr(storage, "redis_cached", None)),
            (DISK, getattr(storage, "disk", None)),
        )
        if value is not None
    ]
    if len(selected) > 1:
        raise ConfigurationError(
            f"only one storage backend may be set, got {', '.join(selected)}"
        )
    return selected[0] if selected else MEMORY


def rolling_update_strategy() -> V1DeploymentStrategy:
    return V1DeploymentStrategy(
        type="RollingUpdate",
        rolling_update=V1RollingUpdateDeployment(
            max_surge=DEFAULT_MAX_SURGE,
            max_unavailable=DEFAULT_MAX_UNAVAILABLE,
        ),
    )


def recreate_strategy() -> V1DeploymentStrategy:
    # A disk volume can only be mounted by one pod at a time.
    return V1DeploymentStrategy(type="Recreate", rolling_update=None)


def memory_strategy() -> StorageStrategy:
    return StorageStrategy(
        command=[MEMORY],
        volume_mounts=[],
        volumes=[],
        strategy=rolling_update_strategy(),
    )


def disk_strategy(disk: Disk, claim_name: str) -> StorageStrategy:
    command = [DISK]
    if getattr(disk, "optimize", None):
        command.extend(["--optimize", disk.optimize])
    command.append(DISK_PATH)
    return StorageStrategy(
        command=command,
        volume_mounts=[
            V1VolumeMount(name=STORAGE_VOLUME_NAME, mount_path=DISK_PATH)
        ],
        volumes=[
            V1Volume(
                name=STORAGE_VOLUME_NAME,
                persistent_volume_claim=V1PersistentVolumeClaimVolumeSource(
                    claim_name=claim_name
                ),
            )
        ],
        strategy=recreate_strategy(),
    )


def redis_strategy(url_env_name: str) -> StorageStrategy:
    return StorageStrategy(
        command=[REDIS, f"$({url_env_name})"],
        volume_mounts=[],
        volumes=[],
        strategy=rolling_update_strategy(),
    )


def redis_cached_strategy(
    options: Optional[RedisCachedOptions], url_env_name: str
) -> StorageStrategy:
    command = [REDIS_CACHED, f"$({url_env_name})"]
    for attr, flag in REDIS_CACHED_FLAGS:
        value = getattr(options, attr, None) if options is not None else None
        if value is not None:
            command.extend([flag, str(value)])
    return StorageStrategy(
        command=command,
        volume_mounts=[],
        volumes=[],
        strategy=rolling_update_strategy(),
    )


def redis_secret_ref(storage: Optional[Storage]) -> Optional[SecretRef]:
    mode = storage_mode(storage)
    if mode == REDIS:
        return storage.redis.config_secret_ref
    if mode == REDIS_CACHED:
        return storage.redis_cached.config_secret_ref
    return None


async def validate_redis_secret(
    secret_ref: Optional[SecretRef], namespace: str, secrets: ResourceKind
) -> None:
    """Check that the redis connection secret exists and carries a URL.

    The pod reads the URL through a secretKeyRef, which only resolves in the
    pod namespace, so the secret must live next to the instance.
    """
    if secret_ref is None:
        raise ConfigurationError("there's no ConfigSecretRef set")
    if secret_ref.namespace and secret_ref.namespace != namespace:
        raise ConfigurationError(
            f"the storage config Secret must be in the `{namespace}` namespace, "
            f"not `{secret_ref.namespace}`"
        )
    secret = await secrets.fetch(secret_ref.name, namespace)
    if secret is None:
        raise ResourceNotFoundError(SECRET, secret_ref.name, namespace)
    data = {**(secret.data or {}), **(secret.string_data or {})}
    if REDIS_URL_SECRET_KEY not in data:
        raise ConfigurationError(
            "the storage config Secret doesn't have the `URL` field"
        )


async def resolve_storage(
    storage: Optional[Storage],
    namespace: str,
    claim_name: str,
    secrets: ResourceKind,
    url_env_name: str,
) -> StorageStrategy:
    """Resolve the storage section into deployment pieces.

    Args:
        storage: The storage section of the spec, None for in-memory.
        namespace: Namespace of the Limitador, default namespace of the secret.
        claim_name: Name of the instance PVC, used by disk storage.
        secrets: Secret kind used to validate redis connection secrets.
        url_env_name: Env var the redis URL is exposed through.
    Raises:
        ConfigurationError: The storage section cannot be used as is.
        ResourceNotFoundError: The redis connection secret does not exist.
    """
    mode = storage_mode(storage)
    if mode == REDIS:
        await validate_redis_secret(
            storage.redis.config_secret_ref, namespace, secrets
        )
        return redis_strategy(url_env_name)
    if mode == REDIS_CACHED:
        await validate_redis_secret(
            storage.redis_cached.config_secret_ref, namespace, secrets
        )
        return redis_cached_strategy(storage.redis_cached.options, url_env_name)
    if mode == DISK:
        return disk_strategy(storage.disk, claim_name)
    return memory_strategy()


def storage_env(
    storage: Optional[Storage], url_env_name: str
) -> Optional[List[V1EnvVar]]:
    """Env vars the storage backend needs, None when it needs none."""
    secret_ref = redis_secret_ref(storage)
    if secret_ref is None:
        return None
    return [
        V1EnvVar(
            name=url_env_name,
            value_from=V1EnvVarSource(
                secret_key_ref=V1SecretKeySelector(
                    key=REDIS_URL_SECRET_KEY,
                    name=secret_ref.name,
                )
            ),
        )
    ]

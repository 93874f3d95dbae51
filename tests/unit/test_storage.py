"""Unit tests for storage strategy resolution."""

import asyncio
import pytest
from kubernetes_asyncio.client import V1Secret, V1ObjectMeta
from limitador.types.schemas import StorageSchema
from limitador.resources.kinds import SECRET
from limitador.resources.storage import (
    MEMORY,
    DISK,
    REDIS,
    REDIS_CACHED,
    DISK_PATH,
    STORAGE_VOLUME_NAME,
    resolve_storage,
    storage_env,
    storage_mode,
)
from limitador.utils.errors import ConfigurationError, ResourceNotFoundError

URL_ENV = "LIMITADOR_OPERATOR_REDIS_URL"
CLAIM = "limitador-test"


def load_storage(data):
    return StorageSchema().load(data)


def resolve(storage, registry, namespace="default"):
    return asyncio.run(
        resolve_storage(storage, namespace, CLAIM, registry[SECRET], URL_ENV)
    )


def redis_secret(name="redis-config", data=None):
    return V1Secret(
        metadata=V1ObjectMeta(name=name),
        data=data if data is not None else {"URL": "cmVkaXM6Ly9yZWRpczo2Mzc5"},
    )


class TestStorageMode:
    def test_none_is_memory(self):
        assert storage_mode(None) == MEMORY

    def test_empty_section_is_memory(self):
        assert storage_mode(load_storage({})) == MEMORY

    def test_single_backend(self):
        assert storage_mode(load_storage({"disk": {}})) == DISK
        assert storage_mode(load_storage({"redis": {}})) == REDIS
        assert storage_mode(load_storage({"redis-cached": {}})) == REDIS_CACHED

    def test_two_backends_rejected(self):
        storage = load_storage({"disk": {}, "redis": {}})
        with pytest.raises(ConfigurationError, match="only one storage backend"):
            storage_mode(storage)


class TestMemoryStorage:
    def test_memory_uses_rolling_update(self, registry):
        strategy = resolve(None, registry)

        assert strategy.command == ["memory"]
        assert strategy.volumes == []
        assert strategy.volume_mounts == []
        assert strategy.strategy.type == "RollingUpdate"
        assert strategy.strategy.rolling_update.max_surge == "25%"
        assert strategy.strategy.rolling_update.max_unavailable == "25%"


class TestDiskStorage:
    def test_disk_uses_recreate(self, registry):
        strategy = resolve(load_storage({"disk": {}}), registry)

        assert strategy.command == ["disk", DISK_PATH]
        assert strategy.strategy.type == "Recreate"
        assert strategy.strategy.rolling_update is None

    def test_disk_mounts_claim(self, registry):
        strategy = resolve(load_storage({"disk": {}}), registry)

        assert [v.name for v in strategy.volumes] == [STORAGE_VOLUME_NAME]
        assert strategy.volumes[0].persistent_volume_claim.claim_name == CLAIM
        assert strategy.volume_mounts[0].mount_path == DISK_PATH

    def test_disk_optimize_flag(self, registry):
        strategy = resolve(load_storage({"disk": {"optimize": "throughput"}}), registry)

        assert strategy.command == ["disk", "--optimize", "throughput", DISK_PATH]


class TestRedisStorage:
    def test_redis_reads_url_through_env(self, registry):
        registry[SECRET].seed("default", redis_secret())
        storage = load_storage({"redis": {"configSecretRef": {"name": "redis-config"}}})

        strategy = resolve(storage, registry)

        assert strategy.command == ["redis", f"$({URL_ENV})"]
        assert strategy.strategy.type == "RollingUpdate"

    def test_redis_env_references_secret(self):
        storage = load_storage({"redis": {"configSecretRef": {"name": "redis-config"}}})

        env = storage_env(storage, URL_ENV)

        assert len(env) == 1
        assert env[0].name == URL_ENV
        assert env[0].value_from.secret_key_ref.name == "redis-config"
        assert env[0].value_from.secret_key_ref.key == "URL"

    def test_no_env_for_memory(self):
        assert storage_env(None, URL_ENV) is None

    def test_secret_in_other_namespace_rejected(self, registry):
        registry[SECRET].seed("shared", redis_secret())
        storage = load_storage(
            {"redis": {"configSecretRef": {"name": "redis-config", "namespace": "shared"}}}
        )

        with pytest.raises(ConfigurationError, match="`default` namespace, not `shared`"):
            resolve(storage, registry, namespace="default")

    def test_secret_namespace_matching_instance(self, registry):
        registry[SECRET].seed("default", redis_secret())
        storage = load_storage(
            {"redis": {"configSecretRef": {"name": "redis-config", "namespace": "default"}}}
        )

        strategy = resolve(storage, registry, namespace="default")

        assert strategy.command[0] == "redis"

    def test_missing_secret_ref(self, registry):
        storage = load_storage({"redis": {}})

        with pytest.raises(ConfigurationError, match="ConfigSecretRef"):
            resolve(storage, registry)

    def test_secret_not_found(self, registry):
        storage = load_storage({"redis": {"configSecretRef": {"name": "missing"}}})

        with pytest.raises(ResourceNotFoundError, match='"missing" not found'):
            resolve(storage, registry)

    def test_secret_without_url(self, registry):
        registry[SECRET].seed("default", redis_secret(data={"HOST": "cmVkaXM="}))
        storage = load_storage({"redis": {"configSecretRef": {"name": "redis-config"}}})

        with pytest.raises(ConfigurationError, match="URL"):
            resolve(storage, registry)


class TestRedisCachedStorage:
    def test_options_appended_when_set(self, registry):
        registry[SECRET].seed("default", redis_secret())
        storage = load_storage(
            {
                "redis-cached": {
                    "configSecretRef": {"name": "redis-config"},
                    "options": {"ttl": 1, "flush-period": 3, "batch-size": 50},
                }
            }
        )

        strategy = resolve(storage, registry)

        assert strategy.command == [
            "redis_cached",
            f"$({URL_ENV})",
            "--ttl",
            "1",
            "--flush-period",
            "3",
            "--batch-size",
            "50",
        ]
        assert strategy.strategy.type == "RollingUpdate"

    def test_no_options(self, registry):
        registry[SECRET].seed("default", redis_secret())
        storage = load_storage(
            {"redis-cached": {"configSecretRef": {"name": "redis-config"}}}
        )

        strategy = resolve(storage, registry)

        assert strategy.command == ["redis_cached", f"$({URL_ENV})"]

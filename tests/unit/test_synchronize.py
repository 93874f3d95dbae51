"""Unit tests for reconciliation passes against an in-memory API."""

import asyncio
import pytest
from unittest.mock import Mock
from kubernetes_asyncio.client import V1ObjectMeta, V1Pod, V1Secret
from limitador.resources import Limitador
from limitador.resources.kinds import (
    DEPLOYMENT,
    SERVICE,
    CONFIG_MAP,
    POD_DISRUPTION_BUDGET,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
    POD,
)
from limitador.common.models.labels import Labels
from limitador.types.schemas import LimitadorSpecSchema
from limitador.utils.errors import ConfigurationError, ResourceNotFoundError

NAME = "test"
NAMESPACE = "test-namespace"
OWNER = {
    "apiVersion": "limitador.kuadrant.io/v1alpha1",
    "kind": "Limitador",
    "metadata": {"name": NAME, "namespace": NAMESPACE, "uid": "uid-1234"},
}


@pytest.fixture
def sync(registry, conf):
    def _sync(spec=None):
        limitador = Limitador.from_spec(
            NAME,
            NAMESPACE,
            LimitadorSpecSchema().load(spec or {}),
            owner=OWNER,
            registry=registry,
            logger=Mock(),
            conf=conf,
        )
        return asyncio.run(limitador.synchronize())

    return _sync


def pod(name):
    return V1Pod(
        metadata=V1ObjectMeta(
            name=name, labels=Labels.generate_default_labels(NAME).as_dict()
        )
    )


def stored_deployment(registry):
    return registry[DEPLOYMENT].get(NAMESPACE, "limitador-test")


class TestIdempotence:
    @pytest.mark.parametrize(
        "spec",
        [
            {},
            {
                "replicas": 2,
                "version": "v1.0.0",
                "listener": {"http": {"port": 9000}},
                "limits": [
                    {"conditions": [], "max_value": 1, "namespace": "ns", "seconds": 1, "variables": []}
                ],
                "pdb": {"maxUnavailable": 1},
                "rateLimitHeaders": "DRAFT_VERSION_03",
                "affinity": {"podAntiAffinity": {}},
                "resourceRequirements": {"requests": {"cpu": "1"}},
                "imagePullSecrets": [{"name": "regcred"}],
            },
            {"storage": {"disk": {"optimize": "disk"}}},
            {
                "affinity": {
                    "podAntiAffinity": {
                        "requiredDuringSchedulingIgnoredDuringExecution": [
                            {
                                "labelSelector": {"matchLabels": {"appName": "limitador"}},
                                "topologyKey": "kubernetes.io/hostname",
                            }
                        ]
                    }
                }
            },
        ],
    )
    def test_second_pass_writes_nothing(self, sync, registry, writes, spec):
        sync(spec)
        first = writes(registry)

        assert (DEPLOYMENT, "create", "limitador-test") in first

        sync(spec)

        assert writes(registry) == first

    def test_first_pass_creates_owned_resources(self, sync, registry, writes):
        sync({"pdb": {"minAvailable": 1}})

        assert sorted(writes(registry)) == sorted(
            [
                (SERVICE, "create", "limitador-test"),
                (DEPLOYMENT, "create", "limitador-test"),
                (CONFIG_MAP, "create", "limitador-limits-config-test"),
                (POD_DISRUPTION_BUDGET, "create", "limitador-test"),
            ]
        )


class TestStorageTransitions:
    def test_memory_to_disk_and_back(self, sync, registry):
        sync({})
        assert stored_deployment(registry).spec.strategy.type == "RollingUpdate"
        assert registry[PERSISTENT_VOLUME_CLAIM].objects == {}

        sync({"storage": {"disk": {}}})
        deployment = stored_deployment(registry)
        assert deployment.spec.strategy.type == "Recreate"
        assert deployment.spec.strategy.rolling_update is None
        assert registry[PERSISTENT_VOLUME_CLAIM].get(NAMESPACE, "limitador-test")

        sync({})
        deployment = stored_deployment(registry)
        assert deployment.spec.strategy.type == "RollingUpdate"
        assert deployment.spec.strategy.rolling_update.max_surge == "25%"
        assert registry[PERSISTENT_VOLUME_CLAIM].objects == {}


class TestStorageErrors:
    def test_secret_without_url_never_creates_deployment(self, sync, registry):
        registry[SECRET].seed(
            NAMESPACE,
            V1Secret(metadata=V1ObjectMeta(name="redis"), data={"HOST": "eA=="}),
        )

        with pytest.raises(ConfigurationError, match="URL"):
            sync({"storage": {"redis": {"configSecretRef": {"name": "redis"}}}})

        assert registry[DEPLOYMENT].objects == {}

    def test_secret_not_found(self, sync, registry):
        with pytest.raises(ResourceNotFoundError):
            sync({"storage": {"redis": {"configSecretRef": {"name": "redis"}}}})

        assert registry[DEPLOYMENT].objects == {}

    def test_secret_in_other_namespace_never_creates_deployment(self, sync, registry):
        registry[SECRET].seed(
            "shared",
            V1Secret(metadata=V1ObjectMeta(name="redis"), data={"URL": "eA=="}),
        )

        with pytest.raises(ConfigurationError, match="not `shared`"):
            sync(
                {
                    "storage": {
                        "redis": {"configSecretRef": {"name": "redis", "namespace": "shared"}}
                    }
                }
            )

        assert registry[DEPLOYMENT].objects == {}


class TestPodDisruptionBudget:
    def test_removed_from_spec_is_deleted(self, sync, registry):
        sync({"pdb": {"maxUnavailable": 1}})
        assert registry[POD_DISRUPTION_BUDGET].get(NAMESPACE, "limitador-test")

        sync({})

        assert registry[POD_DISRUPTION_BUDGET].objects == {}


class TestPodAnnotations:
    def test_requeue_without_pods(self, sync):
        assert sync({}) is True

    def test_requeue_while_scaling(self, sync, registry):
        registry[POD].seed(NAMESPACE, pod("limitador-test-a"))

        assert sync({"replicas": 2}) is True

    def test_pods_receive_config_map_version(self, sync, registry):
        registry[POD].seed(NAMESPACE, pod("limitador-test-a"))
        registry[POD].seed(NAMESPACE, pod("limitador-test-b"))

        assert sync({"replicas": 2}) is False

        version = registry[CONFIG_MAP].get(
            NAMESPACE, "limitador-limits-config-test"
        ).metadata.resource_version
        for name in ("limitador-test-a", "limitador-test-b"):
            annotations = registry[POD].get(NAMESPACE, name).metadata.annotations
            assert annotations[Labels.CONFIG_MAP_RESOURCE_VERSION_ANNOTATION] == version

    def test_limits_change_moves_annotation(self, sync, registry):
        registry[POD].seed(NAMESPACE, pod("limitador-test-a"))
        sync({})
        before = registry[POD].get(NAMESPACE, "limitador-test-a").metadata.annotations

        sync(
            {
                "limits": [
                    {"conditions": [], "max_value": 3, "namespace": "ns", "seconds": 1, "variables": []}
                ]
            }
        )
        after = registry[POD].get(NAMESPACE, "limitador-test-a").metadata.annotations

        key = Labels.CONFIG_MAP_RESOURCE_VERSION_ANNOTATION
        assert after[key] != before[key]

    def test_pods_of_other_instances_untouched(self, sync, registry):
        registry[POD].seed(NAMESPACE, pod("limitador-test-a"))
        registry[POD].seed(
            NAMESPACE,
            V1Pod(
                metadata=V1ObjectMeta(
                    name="other",
                    labels=Labels.generate_default_labels("other").as_dict(),
                )
            ),
        )

        sync({})

        assert registry[POD].get(NAMESPACE, "other").metadata.annotations is None


class TestCleanup:
    def test_deletes_every_owned_kind(self, sync, registry, conf):
        sync({"storage": {"disk": {}}, "pdb": {"maxUnavailable": 1}})
        limitador = Limitador.from_spec(
            NAME,
            NAMESPACE,
            LimitadorSpecSchema().load({}),
            registry=registry,
            logger=Mock(),
            conf=conf,
        )

        deleted = asyncio.run(limitador.cleanup())

        assert sorted(deleted) == sorted(
            [DEPLOYMENT, SERVICE, CONFIG_MAP, POD_DISRUPTION_BUDGET, PERSISTENT_VOLUME_CLAIM]
        )
        assert asyncio.run(limitador.cleanup()) == []

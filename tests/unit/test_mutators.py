"""Unit tests for the field-level mutators."""

import copy
import pytest
from kubernetes_asyncio.client import (
    V1Affinity,
    V1ConfigMap,
    V1Container,
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1NodeAffinity,
    V1ObjectMeta,
    V1PodAffinityTerm,
    V1PodAntiAffinity,
    V1PodDisruptionBudget,
    V1PodDisruptionBudgetSpec,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
)
from limitador.resources.storage import recreate_strategy, rolling_update_strategy
from limitador.resources import mutators


def deployment(**container_fields):
    replicas = container_fields.pop("replicas", 1)
    strategy = container_fields.pop("strategy", rolling_update_strategy())
    affinity = container_fields.pop("affinity", None)
    container_fields.setdefault("name", "limitador")
    container_fields.setdefault("image", "quay.io/kuadrant/limitador:latest")
    return V1Deployment(
        metadata=V1ObjectMeta(name="limitador-test", labels={"app": "limitador"}),
        spec=V1DeploymentSpec(
            replicas=replicas,
            selector=V1LabelSelector(match_labels={"app": "limitador"}),
            strategy=strategy,
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(labels={"app": "limitador"}),
                spec=V1PodSpec(
                    affinity=affinity, containers=[V1Container(**container_fields)]
                ),
            ),
        ),
    )


def spread_affinity(match_labels):
    return V1Affinity(
        pod_anti_affinity=V1PodAntiAffinity(
            required_during_scheduling_ignored_during_execution=[
                V1PodAffinityTerm(
                    label_selector=V1LabelSelector(match_labels=match_labels),
                    topology_key="kubernetes.io/hostname",
                )
            ]
        )
    )


class TestDeploymentMutators:
    def test_identical_objects_need_no_update(self):
        desired = deployment(command=["limitador-server", "memory"])
        existing = copy.deepcopy(desired)

        changed = mutators.apply_mutators(
            mutators.deployment_mutators(replicas_set=True), desired, existing
        )

        assert changed == []

    def test_image_drift(self):
        desired = deployment(image="quay.io/kuadrant/limitador:v1")
        existing = deployment(image="quay.io/kuadrant/limitador:v0")

        assert mutators.deployment_image_mutator(desired, existing)
        assert existing.spec.template.spec.containers[0].image.endswith(":v1")

    def test_replicas_only_when_set(self):
        desired = deployment(replicas=1)
        existing = deployment(replicas=5)

        changed = mutators.apply_mutators(
            mutators.deployment_mutators(replicas_set=False), desired, existing
        )

        assert changed == []
        assert existing.spec.replicas == 5

        changed = mutators.apply_mutators(
            mutators.deployment_mutators(replicas_set=True), desired, existing
        )

        assert changed == ["deployment_replicas_mutator"]
        assert existing.spec.replicas == 1

    def test_strategy_switch(self):
        desired = deployment(strategy=recreate_strategy())
        existing = deployment(strategy=rolling_update_strategy())

        assert mutators.deployment_strategy_mutator(desired, existing)
        assert existing.spec.strategy.type == "Recreate"
        assert existing.spec.strategy.rolling_update is None

    def test_resources_drift(self):
        desired = deployment(resources=V1ResourceRequirements(requests={"cpu": "1"}))
        existing = deployment(resources=V1ResourceRequirements(requests={"cpu": "2"}))

        assert mutators.deployment_resources_mutator(desired, existing)
        assert existing.spec.template.spec.containers[0].resources.requests == {"cpu": "1"}

    def test_affinity_label_key_drift(self):
        desired = deployment(affinity=spread_affinity({"appName": "limitador"}))
        existing = deployment(affinity=spread_affinity({"app_name": "limitador"}))

        assert mutators.deployment_affinity_mutator(desired, existing)
        assert existing.spec.template.spec.affinity == desired.spec.template.spec.affinity

    def test_affinity_unset_fields_ignored(self):
        desired = deployment(affinity=V1Affinity(node_affinity=V1NodeAffinity()))
        existing = deployment(affinity={"node_affinity": {}})

        assert not mutators.deployment_affinity_mutator(desired, existing)

    def test_unowned_fields_preserved(self):
        desired = deployment(command=["limitador-server", "disk"])
        existing = deployment(command=["limitador-server", "memory"])
        existing.spec.template.spec.containers[0].termination_message_path = "/dev/log"
        existing.spec.template.spec.service_account_name = "custom"

        mutators.apply_mutators(mutators.deployment_mutators(), desired, existing)

        assert existing.spec.template.spec.containers[0].command[-1] == "disk"
        assert existing.spec.template.spec.containers[0].termination_message_path == "/dev/log"
        assert existing.spec.template.spec.service_account_name == "custom"

    def test_labels_merged_not_replaced(self):
        desired = deployment()
        existing = deployment()
        existing.metadata.labels = {"team": "edge"}

        assert mutators.object_labels_mutator(desired, existing)
        assert existing.metadata.labels == {"team": "edge", "app": "limitador"}

    def test_container_list_shape(self):
        desired = deployment()
        existing = deployment()
        existing.spec.template.spec.containers.append(V1Container(name="sidecar"))

        assert mutators.deployment_containers_mutator(desired, existing)
        assert len(existing.spec.template.spec.containers) == 1


class TestServiceMutators:
    def service(self, port):
        return V1Service(
            metadata=V1ObjectMeta(name="limitador-test"),
            spec=V1ServiceSpec(
                cluster_ip="10.0.0.1",
                ports=[V1ServicePort(name="http", port=port, target_port="http")],
            ),
        )

    def test_ports(self):
        desired = self.service(9000)
        existing = self.service(8080)

        assert mutators.service_ports_mutator(desired, existing)
        assert existing.spec.ports[0].port == 9000
        assert existing.spec.cluster_ip == "10.0.0.1"


class TestConfigMapMutators:
    def config_map(self, document, digest="abc"):
        return V1ConfigMap(
            metadata=V1ObjectMeta(name="limitador-limits-config-test"),
            data={"limitador-config.yaml": document, "hash": digest},
        )

    def test_same_limits_different_formatting(self):
        desired = self.config_map("- max_value: 1\n  seconds: 2\n")
        existing = self.config_map("[{seconds: 2, max_value: 1}]", digest="old")

        assert not mutators.config_map_limits_mutator(desired, existing)
        assert existing.data["hash"] == "old"

    def test_changed_limits_update_hash(self):
        desired = self.config_map("- max_value: 5\n", digest="new")
        existing = self.config_map("- max_value: 1\n", digest="old")

        assert mutators.config_map_limits_mutator(desired, existing)
        assert existing.data["limitador-config.yaml"] == "- max_value: 5\n"
        assert existing.data["hash"] == "new"

    def test_empty_list_is_a_value(self):
        desired = self.config_map("[]\n")
        existing = self.config_map("- max_value: 1\n")

        assert mutators.config_map_limits_mutator(desired, existing)
        assert existing.data["limitador-config.yaml"] == "[]\n"


class TestPodDisruptionBudgetMutators:
    def pdb(self, max_unavailable=None, min_available=None):
        return V1PodDisruptionBudget(
            metadata=V1ObjectMeta(name="limitador-test"),
            spec=V1PodDisruptionBudgetSpec(
                max_unavailable=max_unavailable, min_available=min_available
            ),
        )

    @pytest.mark.parametrize(
        "desired,existing,changed",
        [
            ((1, None), (1, None), []),
            ((2, None), (1, None), ["pdb_max_unavailable_mutator"]),
            (
                (None, "50%"),
                (1, None),
                ["pdb_max_unavailable_mutator", "pdb_min_available_mutator"],
            ),
        ],
    )
    def test_thresholds(self, desired, existing, changed):
        desired_pdb = self.pdb(*desired)
        existing_pdb = self.pdb(*existing)

        assert (
            mutators.apply_mutators(
                mutators.POD_DISRUPTION_BUDGET_MUTATORS, desired_pdb, existing_pdb
            )
            == changed
        )
        assert existing_pdb.spec.max_unavailable == desired_pdb.spec.max_unavailable
        assert existing_pdb.spec.min_available == desired_pdb.spec.min_available

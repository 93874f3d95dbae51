import kopf
import yaml
import logging
from logging import Logger
from typing import Any, Dict, List, Mapping, Optional
from kubernetes_asyncio.client import (
    V1ObjectMeta,
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1PodTemplateSpec,
    V1PodSpec,
    V1Container,
    V1ContainerPort,
    V1Volume,
    V1VolumeMount,
    V1ConfigMapVolumeSource,
    V1ConfigMap,
    V1Service,
    V1ServiceSpec,
    V1ServicePort,
    V1Probe,
    V1HTTPGetAction,
    V1ResourceRequirements,
    V1LocalObjectReference,
    V1PodDisruptionBudget,
    V1PodDisruptionBudgetSpec,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1VolumeResourceRequirements,
    V1Affinity,
)
from limitador.utils.objects import cached_property
from kubernetes_asyncio.client import ApiException
from limitador.utils.errors import ConfigurationError, describe_api_exception
from limitador.utils.helpers import to_model
from limitador.types.settings import Settings
from limitador.types.models.limitador_spec import (
    LimitadorSpec,
    PodDisruptionBudgetSpec,
    LocalObjectReference,
)
from limitador.types.models.rate_limit import RateLimit
from limitador.types.models.storage import Storage
from limitador.types.models.resource_requirements import ResourceRequirements
from limitador.types.models.limitador_resources import LimitadorResources
from limitador.common.models.labels import Labels
from limitador.resources.base import (
    BaseResource,
    UPDATED,
    tag_object_to_delete,
)
from limitador.resources.kinds import (
    KindRegistry,
    DEPLOYMENT,
    SERVICE,
    CONFIG_MAP,
    POD_DISRUPTION_BUDGET,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
    POD,
    LIMITADOR,
)
from limitador.resources import mutators
from limitador.resources.storage import (
    StorageStrategy,
    DISK,
    resolve_storage,
    storage_env,
    storage_mode,
)


class Limitador(BaseResource):
    """Limitador kubernetes resource."""

    conf: Settings = Settings()

    KIND = "Limitador"
    GROUP_NAME = "limitador.kuadrant.io"
    GROUP_VERSION = "v1alpha1"
    PLURAL_NAME = "limitadors"
    CONTAINER_NAME = "limitador"
    HTTP_PORT_NAME = "http"
    GRPC_PORT_NAME = "grpc"
    CONFIG_VOLUME_NAME = "config-file"
    CONFIG_MOUNT_PATH = "/home/limitador/etc"
    STATUS_PATH = "/status"

    DEFAULT_REPLICAS = 1
    DEFAULT_HTTP_PORT = 8080
    DEFAULT_GRPC_PORT = 8081
    DEFAULT_PVC_STORAGE_REQUEST = "1Gi"
    # 0644
    DEFAULT_CONFIG_FILE_MODE = 420

    owner: Optional[Mapping[str, Any]] = None

    replicas: int
    replicas_set: bool
    version: Optional[str]
    http_port: int
    grpc_port: int
    limits: List[RateLimit]
    storage: Optional[Storage]
    rate_limit_headers: Optional[str]
    telemetry: Optional[str]
    verbosity: Optional[int]
    pdb: Optional[PodDisruptionBudgetSpec]
    resource_requirements: Optional[ResourceRequirements]
    affinity: Optional[Dict]
    image_pull_secrets: Optional[List[LocalObjectReference]]

    deployment_name: str
    service_name: str
    limits_config_map_name: str
    pod_disruption_budget_name: str
    persistent_volume_claim_name: str

    storage_strategy: Optional[StorageStrategy] = None

    def __init__(
        self,
        name: str,
        namespace: str,
        registry: Optional[KindRegistry] = None,
    ):
        super().__init__(
            cluster=name,
            namespace=namespace,
            component_name=LimitadorResources.component_name(name),
            labels=Labels.generate_default_labels(name),
            registry=registry,
        )

    @classmethod
    def from_spec(
        self,
        name: str,
        namespace: str,
        spec: LimitadorSpec,
        owner: Optional[Mapping[str, Any]] = None,
        registry: Optional[KindRegistry] = None,
        logger: Logger = None,
        conf: Settings = None,
    ) -> "Limitador":
        limitador = Limitador(name, namespace, registry=registry)
        limitador.logger = logger or logging.getLogger(__name__)
        if conf is not None:
            limitador.conf = conf
        limitador.owner = owner
        limitador.deployment_name = LimitadorResources.deployment_name(name)
        limitador.service_name = LimitadorResources.service_name(name)
        limitador.limits_config_map_name = LimitadorResources.limits_config_map_name(
            name
        )
        limitador.pod_disruption_budget_name = (
            LimitadorResources.pod_disruption_budget_name(name)
        )
        limitador.persistent_volume_claim_name = (
            LimitadorResources.persistent_volume_claim_name(name)
        )
        limitador.replicas_set = spec.replicas is not None
        limitador.replicas = (
            spec.replicas if spec.replicas is not None else self.DEFAULT_REPLICAS
        )
        limitador.version = spec.version
        listener = spec.listener
        http = getattr(listener, "http", None)
        grpc = getattr(listener, "grpc", None)
        limitador.http_port = getattr(http, "port", None) or self.DEFAULT_HTTP_PORT
        limitador.grpc_port = getattr(grpc, "port", None) or self.DEFAULT_GRPC_PORT
        limitador.limits = list(spec.limits or [])
        limitador.storage = spec.storage
        limitador.rate_limit_headers = spec.rate_limit_headers
        limitador.telemetry = spec.telemetry
        limitador.verbosity = spec.verbosity
        limitador.pdb = spec.pdb
        limitador.resource_requirements = spec.resource_requirements
        limitador.affinity = spec.affinity
        limitador.image_pull_secrets = spec.image_pull_secrets
        return limitador

    async def synchronize(self) -> bool:
        """Bring every owned resource to its desired state.

        Resources are reconciled in a fixed order, and the first error stops the
        pass. Returns True when the pass must be retried because the pods have
        not caught up yet.
        """
        await self.reconcile_resource(SERVICE, self.service, mutators.SERVICE_MUTATORS)
        await self.reconcile_resource(
            PERSISTENT_VOLUME_CLAIM,
            self.persistent_volume_claim,
            mutators.PERSISTENT_VOLUME_CLAIM_MUTATORS,
        )
        await self.resolve_storage_strategy()
        await self.reconcile_resource(
            DEPLOYMENT,
            self.deployment,
            mutators.deployment_mutators(
                replicas_set=self.replicas_set,
                image_pull_secrets_set=bool(self.image_pull_secrets),
            ),
        )
        await self.reconcile_resource(
            CONFIG_MAP, self.limits_config_map, mutators.CONFIG_MAP_MUTATORS
        )
        await self.reconcile_resource(
            POD_DISRUPTION_BUDGET,
            self.pod_disruption_budget,
            mutators.POD_DISRUPTION_BUDGET_MUTATORS,
        )
        return await self.sync_pod_annotations()

    async def resolve_storage_strategy(self) -> StorageStrategy:
        self.storage_strategy = await resolve_storage(
            self.storage,
            self.namespace,
            self.persistent_volume_claim_name,
            self.kind(SECRET),
            self.conf.redis_url_env_name,
        )
        return self.storage_strategy

    async def sync_pod_annotations(self) -> bool:
        """Stamp the limits ConfigMap resourceVersion on every instance pod.

        Changing a pod annotation makes the kubelet refresh the mounted limits
        file right away instead of waiting for its periodic sync.
        Returns True when the pods or the ConfigMap are not there yet.
        """
        pods = await self.kind(POD).list(self.namespace, self.labels.as_str())
        if not pods:
            self.logger.info("No limitador pods yet, retrying later.")
            return True
        if self.replicas_set and len(pods) != self.replicas:
            self.logger.info(
                f"Found {len(pods)} limitador pods, expecting {self.replicas}, retrying later."
            )
            return True

        config_map = await self.fetch_resource(CONFIG_MAP, self.limits_config_map_name)
        if config_map is None:
            self.logger.info(
                f"ConfigMap `{self.limits_config_map_name}` not found yet, retrying later."
            )
            return True

        resource_version = config_map.metadata.resource_version
        annotation = Labels.CONFIG_MAP_RESOURCE_VERSION_ANNOTATION
        for pod in pods:
            annotations = pod.metadata.annotations or {}
            if annotations.get(annotation) == resource_version:
                continue
            patch = {
                "metadata": {
                    "annotations": {annotation: resource_version},
                    "resourceVersion": pod.metadata.resource_version,
                }
            }
            await self._sync(
                POD,
                pod.metadata.name,
                UPDATED,
                self.kind(POD).patch(pod.metadata.name, self.namespace, patch),
            )
            self.logger.debug(
                f"Annotated pod `{pod.metadata.name}` with limits version {resource_version}."
            )
        return False

    async def fetch_deployment(self) -> Optional[V1Deployment]:
        return await self.fetch_resource(DEPLOYMENT, self.deployment_name)

    async def write_status(self, status: Dict[str, Any], resource_version: str) -> Any:
        """Replace the status subresource, guarded by the given resourceVersion."""
        body = {
            "apiVersion": f"{self.GROUP_NAME}/{self.GROUP_VERSION}",
            "kind": self.KIND,
            "metadata": {
                "name": self.cluster,
                "namespace": self.namespace,
                "resourceVersion": resource_version,
            },
            "status": status,
        }
        return await self.kind(LIMITADOR).replace_status(
            self.cluster, self.namespace, body
        )

    async def cleanup(self) -> List[str]:
        """Delete every owned resource, returning the kinds that were removed.

        Deletion is best effort: failures are logged and the remaining kinds
        are still attempted, ownership garbage collection covers the rest.
        """
        deleted = []
        for kind, name in (
            (DEPLOYMENT, self.deployment_name),
            (SERVICE, self.service_name),
            (CONFIG_MAP, self.limits_config_map_name),
            (POD_DISRUPTION_BUDGET, self.pod_disruption_budget_name),
            (PERSISTENT_VOLUME_CLAIM, self.persistent_volume_claim_name),
        ):
            try:
                if await self.delete_resource(kind, name):
                    deleted.append(kind)
            except ApiException as ex:
                self.logger.warning(
                    f"Failed to delete {kind} `{name}`: {describe_api_exception(ex)}"
                )
        return deleted

    def unite(self, children: List[Any]) -> None:
        """Ensure child resources are owned by the Limitador."""
        if self.owner is not None:
            kopf.adopt(children, owner=self.owner)

    def prepare_image(self) -> str:
        if self.version:
            return f"{self.conf.limitador_image_repository}:{self.version}"
        return self.conf.default_image

    def prepare_command(self) -> List[str]:
        command = ["limitador-server"]
        if self.rate_limit_headers:
            command.extend(["--rate-limit-headers", self.rate_limit_headers])
        if self.telemetry == "exhaustive":
            command.append("--limit-name-in-labels")
        if self.verbosity:
            command.append("-" + "v" * self.verbosity)
        command.extend(["--http-port", str(self.http_port)])
        command.extend(["--rls-port", str(self.grpc_port)])
        command.append(f"{self.CONFIG_MOUNT_PATH}/{self.conf.config_file_name}")
        command.extend(self.storage_strategy.command)
        return command

    def prepare_container_ports(self) -> List[V1ContainerPort]:
        return [
            V1ContainerPort(
                name=self.HTTP_PORT_NAME, container_port=self.http_port, protocol="TCP"
            ),
            V1ContainerPort(
                name=self.GRPC_PORT_NAME, container_port=self.grpc_port, protocol="TCP"
            ),
        ]

    def prepare_probe(self, timeout_seconds: int) -> V1Probe:
        return V1Probe(
            http_get=V1HTTPGetAction(
                path=self.STATUS_PATH, port=self.http_port, scheme="HTTP"
            ),
            initial_delay_seconds=5,
            timeout_seconds=timeout_seconds,
            period_seconds=10,
            success_threshold=1,
            failure_threshold=3,
        )

    def prepare_liveness_probe(self) -> V1Probe:
        return self.prepare_probe(timeout_seconds=2)

    def prepare_readiness_probe(self) -> V1Probe:
        return self.prepare_probe(timeout_seconds=5)

    def prepare_resource_requirements(self) -> V1ResourceRequirements:
        """An explicit empty section means no requests and no limits,
        an absent one means the operator defaults."""
        if self.resource_requirements is None:
            return V1ResourceRequirements(**self.conf.default_resources)
        return V1ResourceRequirements(
            requests=getattr(self.resource_requirements, "requests", None) or None,
            limits=getattr(self.resource_requirements, "limits", None) or None,
        )

    def prepare_volumes(self) -> List[V1Volume]:
        config_volume = V1Volume(
            name=self.CONFIG_VOLUME_NAME,
            config_map=V1ConfigMapVolumeSource(
                name=self.limits_config_map_name,
                default_mode=self.DEFAULT_CONFIG_FILE_MODE,
            ),
        )
        return [config_volume, *self.storage_strategy.volumes]

    def prepare_volume_mounts(self) -> List[V1VolumeMount]:
        config_mount = V1VolumeMount(
            name=self.CONFIG_VOLUME_NAME, mount_path=self.CONFIG_MOUNT_PATH
        )
        return [config_mount, *self.storage_strategy.volume_mounts]

    def prepare_image_pull_secrets(self) -> Optional[List[V1LocalObjectReference]]:
        if not self.image_pull_secrets:
            return None
        return [V1LocalObjectReference(name=s.name) for s in self.image_pull_secrets]

    def prepare_limitador_container(self) -> V1Container:
        return V1Container(
            name=self.CONTAINER_NAME,
            image=self.prepare_image(),
            image_pull_policy="IfNotPresent",
            command=self.prepare_command(),
            ports=self.prepare_container_ports(),
            env=storage_env(self.storage, self.conf.redis_url_env_name),
            liveness_probe=self.prepare_liveness_probe(),
            readiness_probe=self.prepare_readiness_probe(),
            resources=self.prepare_resource_requirements(),
            volume_mounts=self.prepare_volume_mounts(),
        )

    def prepare_affinity(self) -> Optional[V1Affinity]:
        try:
            return to_model(self.affinity, "V1Affinity")
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid affinity: {e}") from e

    def prepare_deployment(self) -> V1Deployment:
        if self.storage_strategy is None:
            raise RuntimeError("Storage strategy must be resolved before the deployment.")
        labels = self.labels.as_dict()
        deployment = V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=V1ObjectMeta(
                name=self.deployment_name,
                namespace=self.namespace,
                labels=labels,
            ),
            spec=V1DeploymentSpec(
                replicas=self.replicas,
                selector=V1LabelSelector(match_labels=self.labels.as_dict()),
                strategy=self.storage_strategy.strategy,
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(labels=self.labels.as_dict()),
                    spec=V1PodSpec(
                        affinity=self.prepare_affinity(),
                        containers=[self.prepare_limitador_container()],
                        volumes=self.prepare_volumes(),
                        image_pull_secrets=self.prepare_image_pull_secrets(),
                    ),
                ),
            ),
        )
        self.unite([deployment])
        return deployment

    def prepare_service(self) -> V1Service:
        service = V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                name=self.service_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
            spec=V1ServiceSpec(
                type="ClusterIP",
                selector=self.labels.as_dict(),
                ports=[
                    V1ServicePort(
                        name=self.HTTP_PORT_NAME,
                        port=self.http_port,
                        protocol="TCP",
                        target_port=self.HTTP_PORT_NAME,
                    ),
                    V1ServicePort(
                        name=self.GRPC_PORT_NAME,
                        port=self.grpc_port,
                        protocol="TCP",
                        target_port=self.GRPC_PORT_NAME,
                    ),
                ],
            ),
        )
        self.unite([service])
        return service

    def prepare_limits_document(self) -> str:
        """Serialize the limits as the YAML list limitador reads.
        Keys are sorted and the order of the limits is kept."""
        records = [limit.as_limit_record() for limit in self.limits]
        return yaml.safe_dump(records, default_flow_style=False, sort_keys=True)

    def prepare_limits_config_map(self) -> V1ConfigMap:
        document = self.prepare_limits_document()
        config_map = V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=V1ObjectMeta(
                name=self.limits_config_map_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
            data={
                self.conf.config_file_name: document,
                mutators.CONFIG_HASH_KEY: self.compute_hash(document),
            },
        )
        self.unite([config_map])
        return config_map

    def prepare_pod_disruption_budget(self) -> V1PodDisruptionBudget:
        pdb = V1PodDisruptionBudget(
            api_version="policy/v1",
            kind="PodDisruptionBudget",
            metadata=V1ObjectMeta(
                name=self.pod_disruption_budget_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
            spec=V1PodDisruptionBudgetSpec(
                selector=V1LabelSelector(match_labels=self.labels.as_dict()),
            ),
        )
        if self.pdb is None:
            return tag_object_to_delete(pdb)
        max_unavailable = getattr(self.pdb, "max_unavailable", None)
        min_available = getattr(self.pdb, "min_available", None)
        if max_unavailable is not None and min_available is not None:
            raise ConfigurationError(
                "pdb spec invalid, maxunavailable and minavailable are mutually exclusive"
            )
        pdb.spec.max_unavailable = max_unavailable
        pdb.spec.min_available = min_available
        self.unite([pdb])
        return pdb

    def prepare_persistent_volume_claim(self) -> V1PersistentVolumeClaim:
        pvc = V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=V1ObjectMeta(
                name=self.persistent_volume_claim_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
        )
        if storage_mode(self.storage) != DISK:
            return tag_object_to_delete(pvc)
        claim = getattr(self.storage.disk, "persistent_volume_claim", None)
        requests = getattr(getattr(claim, "resources", None), "requests", None)
        pvc.spec = V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=V1VolumeResourceRequirements(
                requests={"storage": requests or self.DEFAULT_PVC_STORAGE_REQUEST}
            ),
            storage_class_name=getattr(claim, "storage_class_name", None),
            volume_name=getattr(claim, "volume_name", None),
        )
        self.unite([pvc])
        return pvc

    @cached_property
    def deployment(self) -> V1Deployment:
        return self.prepare_deployment()

    @cached_property
    def service(self) -> V1Service:
        return self.prepare_service()

    @cached_property
    def limits_config_map(self) -> V1ConfigMap:
        return self.prepare_limits_config_map()

    @cached_property
    def pod_disruption_budget(self) -> V1PodDisruptionBudget:
        return self.prepare_pod_disruption_budget()

    @cached_property
    def persistent_volume_claim(self) -> V1PersistentVolumeClaim:
        return self.prepare_persistent_volume_claim()

import mmh3
import hashlib
from logging import Logger
from typing import Any, Optional, Sequence
from limitador.utils.helpers import canonicalize_dict
from limitador.common.models.labels import Labels
from limitador.resources.kinds import KindRegistry, ResourceKind
from limitador.resources.mutators import Mutator, apply_mutators
from limitador.sensors import OperatorSensor

# Outcomes of a single reconcile_resource call
CREATED = "create"
UPDATED = "update"
DELETED = "delete"
NOOP = "no-op"


def tag_object_to_delete(obj: Any) -> Any:
    """Mark a desired object as one that must not exist."""
    annotations = dict(obj.metadata.annotations or {})
    annotations[Labels.DELETE_ANNOTATION] = "true"
    obj.metadata.annotations = annotations
    return obj


def is_tagged_to_delete(obj: Any) -> bool:
    annotations = obj.metadata.annotations or {}
    return annotations.get(Labels.DELETE_ANNOTATION) == "true"


class BaseResource:
    """Base resource model."""

    LIMITADOR_OPERATOR_NAME = "limitador-operator"

    logger: Logger
    sensor: OperatorSensor = OperatorSensor()

    _cluster: str
    _namespace: str
    _component_name: str
    _labels: Labels
    _registry: KindRegistry

    def __init__(
        self,
        cluster: str,
        namespace: str,
        component_name: str,
        labels: Labels,
        registry: Optional[KindRegistry] = None,
    ):
        self._cluster = cluster
        self._namespace = namespace
        self._component_name = component_name
        self._labels = labels
        self._registry = registry or {}

    @property
    def cluster(self) -> str:
        return self._cluster

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def component_name(self) -> str:
        return self._component_name

    @property
    def labels(self) -> Labels:
        return self._labels

    @property
    def registry(self) -> KindRegistry:
        return self._registry

    def kind(self, kind: str) -> ResourceKind:
        try:
            return self._registry[kind]
        except KeyError:
            raise LookupError(f"Kind `{kind}` is not registered.") from None

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data.encode()
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        hash_obj = hashlib.sha256(mumur_str.encode("utf-8"))
        full_hash = hash_obj.hexdigest()

        # First 16 characters keep annotations and data keys readable
        return full_hash[:16]

    async def fetch_resource(self, kind: str, name: str) -> Optional[Any]:
        return await self.kind(kind).fetch(name, self.namespace)

    async def delete_resource(self, kind: str, name: str) -> bool:
        return await self.kind(kind).delete(name, self.namespace)

    async def reconcile_resource(
        self, kind: str, desired: Any, mutators: Sequence[Mutator]
    ) -> str:
        """Bring one object to its desired state.

        * absent and wanted: create it
        * absent and tagged to delete: nothing to do
        * present and tagged to delete: delete it
        * present and wanted: run the mutators and update only when one of
          them changed something, carrying the fetched resourceVersion

        Returns the operation performed.
        """
        resource_kind = self.kind(kind)
        name = desired.metadata.name
        existing = await resource_kind.fetch(name, self.namespace)

        if existing is None:
            if is_tagged_to_delete(desired):
                return NOOP
            await self._sync(kind, name, CREATED, resource_kind.create(self.namespace, desired))
            self.logger.info(f"Created {kind} `{name}`.")
            return CREATED

        if is_tagged_to_delete(desired):
            await self._sync(kind, name, DELETED, resource_kind.delete(name, self.namespace))
            self.logger.info(f"Deleted {kind} `{name}`.")
            return DELETED

        changed = apply_mutators(mutators, desired, existing)
        if not changed:
            return NOOP

        self.sensor.on_resource_drift_detected(
            self.cluster, self.component_name, name, self.namespace, kind, changed
        )
        await self._sync(kind, name, UPDATED, resource_kind.replace(name, self.namespace, existing))
        self.logger.info(f"Updated {kind} `{name}` ({', '.join(changed)}).")
        return UPDATED

    async def _sync(self, kind: str, name: str, operation: str, call) -> Any:
        sensor_state = self.sensor.on_resource_sync_start(
            self.cluster, self.component_name, name, self.namespace, kind
        )
        success = True
        error = None
        try:
            return await call
        except Exception as ex:
            success = False
            error = ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.cluster,
                self.component_name,
                name,
                self.namespace,
                kind,
                sensor_state,
                operation,
                success,
                error,
            )

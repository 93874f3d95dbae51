"""Registry of the Kubernetes kinds the operator reads and writes.

Each logical kind maps to a :class:`ResourceKind` that wraps the matching
kubernetes_asyncio API calls. The registry is built once at startup and handed
to every :class:`~limitador.resources.limitador.Limitador`, so tests can swap in
in-memory kinds without touching the API server.
"""
from typing import Any, Dict, List, Optional
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    PolicyV1Api,
)
from kubernetes_asyncio.client.api_client import ApiClient
from limitador.utils.errors import not_found_error

DEPLOYMENT = "Deployment"
SERVICE = "Service"
CONFIG_MAP = "ConfigMap"
POD_DISRUPTION_BUDGET = "PodDisruptionBudget"
PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
SECRET = "Secret"
POD = "Pod"
LIMITADOR = "Limitador"

LIMITADOR_GROUP = "limitador.kuadrant.io"
LIMITADOR_VERSION = "v1alpha1"
LIMITADOR_PLURAL = "limitadors"

KindRegistry = Dict[str, Any]


class ResourceKind:
    """Namespaced API operations for one kind of object."""

    kind: str

    def __init__(
        self,
        kind: str,
        api: Any,
        suffix: str,
    ) -> None:
        self.kind = kind
        self.api = api
        self._suffix = suffix

    def _call(self, verb: str):
        return getattr(self.api, f"{verb}_namespaced_{self._suffix}")

    async def fetch(self, name: str, namespace: str) -> Optional[Any]:
        """Retrieve the latest state of an object, None when it does not exist."""
        try:
            return await self._call("read")(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create(self, namespace: str, body: Any) -> Any:
        return await self._call("create")(namespace=namespace, body=body)

    async def replace(self, name: str, namespace: str, body: Any) -> Any:
        return await self._call("replace")(name=name, namespace=namespace, body=body)

    async def patch(self, name: str, namespace: str, body: Any) -> Any:
        return await self._call("patch")(name=name, namespace=namespace, body=body)

    async def delete(self, name: str, namespace: str) -> bool:
        """Delete an object. Returns False when it was already gone."""
        try:
            await self._call("delete")(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return False
            raise
        return True

    async def list(self, namespace: str, label_selector: str = None) -> List[Any]:
        result = await self._call("list")(
            namespace=namespace, label_selector=label_selector
        )
        return list(result.items or [])

    def __repr__(self) -> str:
        return f"ResourceKind<{self.kind}>"


class CustomResourceKind:
    """Read and status subresource operations of a custom resource."""

    def __init__(
        self, kind: str, api: CustomObjectsApi, group: str, version: str, plural: str
    ) -> None:
        self.kind = kind
        self.api = api
        self.group = group
        self.version = version
        self.plural = plural

    async def fetch(self, name: str, namespace: str) -> Optional[Dict[str, Any]]:
        """Read the custom object as a dict, None when it does not exist."""
        try:
            return await self.api.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
                name=name,
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def replace_status(
        self, name: str, namespace: str, body: Dict[str, Any]
    ) -> Any:
        """Replace the status subresource. The body must carry the resourceVersion
        the status was computed from, so a concurrent change fails with 409."""
        return await self.api.replace_namespaced_custom_object_status(
            group=self.group,
            version=self.version,
            namespace=namespace,
            plural=self.plural,
            name=name,
            body=body,
        )

    def __repr__(self) -> str:
        return f"CustomResourceKind<{self.kind}>"


def build_registry(api_client: ApiClient) -> KindRegistry:
    """Build the kind registry on top of a shared API client."""
    apps_v1_api = AppsV1Api(api_client)
    core_v1_api = CoreV1Api(api_client)
    policy_v1_api = PolicyV1Api(api_client)
    return {
        DEPLOYMENT: ResourceKind(DEPLOYMENT, apps_v1_api, "deployment"),
        SERVICE: ResourceKind(SERVICE, core_v1_api, "service"),
        CONFIG_MAP: ResourceKind(CONFIG_MAP, core_v1_api, "config_map"),
        POD_DISRUPTION_BUDGET: ResourceKind(
            POD_DISRUPTION_BUDGET, policy_v1_api, "pod_disruption_budget"
        ),
        PERSISTENT_VOLUME_CLAIM: ResourceKind(
            PERSISTENT_VOLUME_CLAIM, core_v1_api, "persistent_volume_claim"
        ),
        SECRET: ResourceKind(SECRET, core_v1_api, "secret"),
        POD: ResourceKind(POD, core_v1_api, "pod"),
        LIMITADOR: CustomResourceKind(
            LIMITADOR,
            CustomObjectsApi(api_client),
            LIMITADOR_GROUP,
            LIMITADOR_VERSION,
            LIMITADOR_PLURAL,
        ),
    }

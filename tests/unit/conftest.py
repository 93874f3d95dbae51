"""Shared fixtures: an in-memory stand-in for the Kubernetes API."""

import copy
import json
import pytest
from types import SimpleNamespace
from kubernetes_asyncio.client import ApiException
from limitador.resources.kinds import (
    DEPLOYMENT,
    SERVICE,
    CONFIG_MAP,
    POD_DISRUPTION_BUDGET,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
    POD,
    LIMITADOR,
)
from limitador.types.settings import Settings


def api_exception(status: int, reason: str) -> ApiException:
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps({"reason": reason, "message": f"{reason} error"})
    return ex


class FakeKind:
    """Keeps objects in a dict and checks resourceVersions like the API server."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.objects = {}
        self.writes = []
        self._version = 0

    def _bump(self, obj) -> None:
        self._version += 1
        obj.metadata.resource_version = str(self._version)

    def seed(self, namespace: str, obj) -> None:
        """Store an object without recording a write."""
        obj = copy.deepcopy(obj)
        obj.metadata.namespace = namespace
        self._bump(obj)
        self.objects[(namespace, obj.metadata.name)] = obj

    def get(self, namespace: str, name: str):
        return self.objects.get((namespace, name))

    async def fetch(self, name, namespace):
        obj = self.objects.get((namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    async def create(self, namespace, body):
        key = (namespace, body.metadata.name)
        if key in self.objects:
            raise api_exception(409, "AlreadyExists")
        obj = copy.deepcopy(body)
        obj.metadata.namespace = namespace
        self._bump(obj)
        self.objects[key] = obj
        self.writes.append(("create", body.metadata.name))
        return copy.deepcopy(obj)

    async def replace(self, name, namespace, body):
        current = self.objects.get((namespace, name))
        if current is None:
            raise api_exception(404, "NotFound")
        if body.metadata.resource_version != current.metadata.resource_version:
            raise api_exception(409, "Conflict")
        obj = copy.deepcopy(body)
        self._bump(obj)
        self.objects[(namespace, name)] = obj
        self.writes.append(("replace", name))
        return copy.deepcopy(obj)

    async def patch(self, name, namespace, body):
        current = self.objects.get((namespace, name))
        if current is None:
            raise api_exception(404, "NotFound")
        metadata = body.get("metadata", {})
        expected = metadata.get("resourceVersion")
        if expected is not None and expected != current.metadata.resource_version:
            raise api_exception(409, "Conflict")
        annotations = dict(current.metadata.annotations or {})
        annotations.update(metadata.get("annotations", {}))
        current.metadata.annotations = annotations
        self._bump(current)
        self.writes.append(("patch", name))
        return copy.deepcopy(current)

    async def delete(self, name, namespace):
        if self.objects.pop((namespace, name), None) is None:
            return False
        self.writes.append(("delete", name))
        return True

    async def list(self, namespace, label_selector=None):
        wanted = dict(
            pair.split("=", 1) for pair in (label_selector or "").split(",") if pair
        )
        return [
            copy.deepcopy(obj)
            for (ns, _), obj in sorted(self.objects.items())
            if ns == namespace
            and all(
                (obj.metadata.labels or {}).get(k) == v for k, v in wanted.items()
            )
        ]


class FakeCustomResourceKind:
    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.statuses = {}
        self.writes = []
        self.error = None

    def seed(self, namespace, name, status):
        self.statuses[(namespace, name)] = status

    async def fetch(self, name, namespace):
        if self.error is not None:
            raise self.error
        if (namespace, name) not in self.statuses:
            return None
        return {
            "metadata": {"name": name, "namespace": namespace},
            "status": self.statuses[(namespace, name)],
        }

    async def replace_status(self, name, namespace, body):
        if self.error is not None:
            raise self.error
        self.statuses[(namespace, name)] = body["status"]
        self.writes.append(body)
        return body


@pytest.fixture
def registry():
    return {
        DEPLOYMENT: FakeKind(DEPLOYMENT),
        SERVICE: FakeKind(SERVICE),
        CONFIG_MAP: FakeKind(CONFIG_MAP),
        POD_DISRUPTION_BUDGET: FakeKind(POD_DISRUPTION_BUDGET),
        PERSISTENT_VOLUME_CLAIM: FakeKind(PERSISTENT_VOLUME_CLAIM),
        SECRET: FakeKind(SECRET),
        POD: FakeKind(POD),
        LIMITADOR: FakeCustomResourceKind(LIMITADOR),
    }


@pytest.fixture
def conf():
    return Settings(default_image="quay.io/kuadrant/limitador:latest")


@pytest.fixture
def memo(registry, conf):
    return SimpleNamespace(registry=registry, conf=conf)


def all_writes(registry):
    """Every write recorded by the fake kinds, as (kind, verb, name)."""
    return [
        (kind, verb, name)
        for kind, fake in registry.items()
        if isinstance(fake, FakeKind)
        for verb, name in fake.writes
    ]


@pytest.fixture
def writes():
    return all_writes

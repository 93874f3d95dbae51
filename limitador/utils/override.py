"""
Teach kopf to recognise kubernetes_asyncio models.

kopf only detects models of the synchronous ``kubernetes`` client when it adopts
children (owner references, namespaces, labels). The operator builds every child
as a kubernetes_asyncio ``V1*`` model, so kopf's ``kopf._cogs.helpers.thirdparty``
module is replaced in ``sys.modules`` before kopf loads it. See
https://github.com/nolar/kopf/pull/809.

This module MUST be imported before any kopf imports.
"""
import abc
import sys
import types
from typing import Any, Optional

from kubernetes_asyncio.client import V1ObjectMeta, V1OwnerReference

THIRDPARTY_MODULE = "kopf._cogs.helpers.thirdparty"


def patch_kopf_thirdparty():
    """Patch kopf's thirdparty detection before it loads."""

    existing = sys.modules.get(THIRDPARTY_MODULE)
    if existing is not None and hasattr(existing, "_limitador_patched"):
        return

    # pykube is not used, kopf only needs a class nothing is an instance of.
    class PykubeObject:
        pass

    class KubernetesModel(abc.ABC):
        @classmethod
        def __subclasshook__(cls, subcls: Any) -> Any:
            if cls is KubernetesModel:
                if any(
                    C.__module__.startswith("kubernetes.client.models.")
                    or C.__module__.startswith("kubernetes_asyncio.client.models.")
                    for C in subcls.__mro__
                ):
                    return True
            return NotImplemented

        @property
        def metadata(self) -> Optional[V1ObjectMeta]:
            raise NotImplementedError

        @metadata.setter
        def metadata(self, _: Optional[V1ObjectMeta]) -> None:
            raise NotImplementedError

    thirdparty_module = types.ModuleType("thirdparty")
    thirdparty_module.PykubeObject = PykubeObject
    thirdparty_module.KubernetesModel = KubernetesModel
    thirdparty_module.V1ObjectMeta = V1ObjectMeta
    thirdparty_module.V1OwnerReference = V1OwnerReference
    thirdparty_module._limitador_patched = True

    sys.modules[THIRDPARTY_MODULE] = thirdparty_module

    print("[limitador] Applied kopf thirdparty patch for kubernetes_asyncio support")


patch_kopf_thirdparty()

"""Migration of resources created under older naming schemes.

Before v0.7.0 the deployment was named after the Limitador itself and the limits
ConfigMap was `limits-config-<name>`. The replacements are created by the normal
pass; the legacy objects are only removed once the new deployment is available.
"""

from typing import Any, Mapping, Optional
from limitador.types.models.limitador_resources import LimitadorResources
from limitador.utils.helpers import find_condition
from limitador.resources.kinds import DEPLOYMENT, CONFIG_MAP
from limitador.resources.base import BaseResource

V0_7_0 = "v0.7.0"


def owned_by(obj: Any, owner_uid: Optional[str]) -> bool:
    """True when one of the owner references of `obj` points to `owner_uid`."""
    if obj is None or owner_uid is None:
        return False
    for ref in obj.metadata.owner_references or []:
        uid = ref.get("uid") if isinstance(ref, Mapping) else getattr(ref, "uid", None)
        if uid == owner_uid:
            return True
    return False


async def needs_v0_7_0_upgrade(resource: BaseResource, owner_uid: Optional[str]) -> bool:
    """Check for legacy objects that belong to this instance."""
    name = resource.cluster
    legacy_deployment = await resource.fetch_resource(
        DEPLOYMENT, LimitadorResources.legacy_deployment_name(name)
    )
    if owned_by(legacy_deployment, owner_uid):
        return True
    legacy_config_map = await resource.fetch_resource(
        CONFIG_MAP, LimitadorResources.legacy_limits_config_map_name(name)
    )
    return owned_by(legacy_config_map, owner_uid)


async def upgrade_v0_7_0(resource: BaseResource) -> bool:
    """Remove the legacy deployment and ConfigMap once the new deployment is
    available.

    Returns True when the migration has to be retried later.
    """
    name = resource.cluster
    deployment = await resource.fetch_resource(
        DEPLOYMENT, LimitadorResources.deployment_name(name)
    )
    if deployment is None:
        resource.logger.info("New deployment not found yet, waiting to migrate.")
        return True

    conditions = deployment.status.conditions if deployment.status else None
    available = find_condition(conditions, "Available")
    if available is None:
        resource.logger.info("New deployment has no Available condition yet.")
        return True
    if available.status != "True":
        resource.logger.info("New deployment is not available yet.")
        return True

    await resource.delete_resource(
        DEPLOYMENT, LimitadorResources.legacy_deployment_name(name)
    )
    await resource.delete_resource(
        CONFIG_MAP, LimitadorResources.legacy_limits_config_map_name(name)
    )
    resource.logger.info(f"Removed resources of the naming scheme before {V0_7_0}.")
    resource.sensor.on_migration_complete(name, resource.namespace, V0_7_0)
    return False


async def upgrade(resource: BaseResource, owner_uid: Optional[str]) -> bool:
    """Run every pending migration. Returns True when one must be retried."""
    if await needs_v0_7_0_upgrade(resource, owner_uid):
        return await upgrade_v0_7_0(resource)
    return False

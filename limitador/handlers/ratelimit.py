import asyncio
import kopf
from logging import Logger
from limitador.types.models import RateLimit, LimitadorResources
from limitador.types.schemas import RateLimitSchema
from limitador.resources import Limitador
from limitador.resources.kinds import LIMITADOR
from limitador.web import LimitadorClient, LimitadorAPIError
from aiohttp import ClientError
from kubernetes_asyncio.client import ApiException

RATELIMIT_KIND = "RateLimit"

CREATE = "create"
DELETE = "delete"


async def limitador_url(memo, namespace: str) -> str:
    """URL of the limitador HTTP API that serves the namespace.

    The port is read from the instance status, the default port is assumed
    until the instance has published one.
    """
    name = memo.conf.ratelimit_limitador_name
    target = await memo.registry[LIMITADOR].fetch(name, namespace)
    status = (target or {}).get("status") or {}
    ports = (status.get("service") or {}).get("ports") or {}
    return LimitadorResources.url(
        name, namespace, ports.get("http") or Limitador.DEFAULT_HTTP_PORT
    )


async def push_limit(
    name: str,
    namespace: str,
    limit: RateLimit,
    operation: str,
    memo,
    logger: Logger,
) -> None:
    """Create or delete one limit on the limitador server of the namespace."""
    client: LimitadorClient = memo.limitador_client
    try:
        url = await limitador_url(memo, namespace)
    except ApiException as e:
        raise kopf.TemporaryError(
            f"Failed to read limitador `{memo.conf.ratelimit_limitador_name}`: {e.reason}",
            delay=memo.conf.requeue_delay_seconds,
        ) from e
    sensor = getattr(Limitador, "sensor", None)
    try:
        if operation == CREATE:
            await client.create_limit(url, limit)
        else:
            await client.delete_limit(url, limit)
    except (LimitadorAPIError, ClientError, asyncio.TimeoutError) as e:
        if sensor:
            sensor.on_limit_push(name, namespace, operation, False)
        raise kopf.TemporaryError(
            f"Failed to {operation} limit in limitador at {url}: {e}",
            delay=memo.conf.requeue_delay_seconds,
        ) from e
    if sensor:
        sensor.on_limit_push(name, namespace, operation, True)
    logger.info(f"Limit {operation} pushed to {url}.")


@kopf.on.resume(kind=RATELIMIT_KIND)
@kopf.on.create(kind=RATELIMIT_KIND)
async def on_create(name, namespace, spec, memo, logger: Logger, **kwargs):
    """Push the limit to the limitador server."""
    limit = RateLimitSchema().load(spec)
    await push_limit(name, namespace, limit, CREATE, memo, logger)


@kopf.on.update(kind=RATELIMIT_KIND, field="spec")
async def on_update(name, namespace, old, new, memo, logger: Logger, **kwargs):
    """The limitador API has no update, the old limit is replaced by the new one."""
    if old:
        try:
            await push_limit(
                name, namespace, RateLimitSchema().load(old), DELETE, memo, logger
            )
        except kopf.TemporaryError as e:
            # A stale limit left behind must not block the new one.
            logger.warning(f"Could not remove previous limit: {e}")
    await push_limit(name, namespace, RateLimitSchema().load(new), CREATE, memo, logger)


@kopf.on.delete(kind=RATELIMIT_KIND)
async def on_delete(name, namespace, spec, memo, logger: Logger, **kwargs):
    """Remove the limit from the limitador server."""
    limit = RateLimitSchema().load(spec)
    await push_limit(name, namespace, limit, DELETE, memo, logger)

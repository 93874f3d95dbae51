import asyncio
import kopf
from logging import Logger
from collections import defaultdict
from typing import Any, Dict, Optional, Tuple
from marshmallow import ValidationError
from kubernetes_asyncio.client import ApiException
from limitador.types.settings import RESYNC_INTERVAL_SECONDS
from limitador.types.models import LimitadorSpec
from limitador.types.schemas import LimitadorSpecSchema
from limitador.resources import Limitador
from limitador.resources.upgrades import upgrade
from limitador.resources.status import (
    calculate_status,
    status_equals,
    is_ready,
    ready_reason,
)
from limitador.utils.errors import (
    ConfigurationError,
    ResourceNotFoundError,
    already_exists_error,
    conflict_error,
)

LIMITADOR_KIND = "Limitador"

# Serializes passes of the same instance started by different handlers
reconciliation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def get_sensor():
    """Get sensor from Limitador class.

    Returns:
        Sensor instance or None
    """
    return getattr(Limitador, "sensor", None)


def _key(name: str, namespace: str) -> str:
    return f"{namespace}/{name}"


def load_spec(spec) -> Tuple[LimitadorSpec, Optional[ConfigurationError]]:
    """Load the spec, falling back to an empty one when it does not validate.

    The fallback keeps the status computable (service host and ports) while
    the error is reported through the Ready condition.
    """
    try:
        return LimitadorSpecSchema().load(spec or {}), None
    except ValidationError as e:
        return LimitadorSpecSchema().load({}), ConfigurationError(
            f"invalid spec: {e.messages}"
        )


def build_limitador(
    name: str, namespace: str, spec_model: LimitadorSpec, body, memo, logger: Logger
) -> Limitador:
    return Limitador.from_spec(
        name,
        namespace,
        spec_model,
        owner=body,
        registry=memo.registry,
        logger=logger,
        conf=memo.conf,
    )


def requeue(name: str, namespace: str, reason: str, delay: float) -> kopf.TemporaryError:
    sensor = get_sensor()
    if sensor:
        sensor.on_reconcile_requeued(name, namespace, reason)
    return kopf.TemporaryError(f"Reconciliation not finished: {reason}.", delay=delay)


async def update_status(
    limitador: Limitador,
    meta,
    status,
    spec_error: Optional[Exception],
    logger: Logger,
) -> Dict[str, Any]:
    """Recompute the status and write it when it changed.

    Returns the computed status.
    """
    deployment = None
    if spec_error is None:
        deployment = await limitador.fetch_deployment()

    new_status = calculate_status(
        limitador.cluster,
        limitador.namespace,
        meta.get("generation", 0),
        dict(status or {}),
        spec_error,
        deployment,
        limitador.http_port,
        limitador.grpc_port,
    )
    if status_equals(status, new_status):
        return new_status

    try:
        await limitador.write_status(new_status, meta.get("resourceVersion"))
    except ApiException as e:
        if conflict_error(e):
            logger.info("Status changed concurrently, requeueing.")
            raise requeue(
                limitador.cluster,
                limitador.namespace,
                "conflict",
                limitador.conf.requeue_delay_seconds,
            ) from None
        raise

    sensor = get_sensor()
    if sensor:
        sensor.on_status_update(
            limitador.cluster,
            limitador.namespace,
            is_ready(new_status),
            ready_reason(new_status),
        )
    return new_status


async def _reconcile(
    name, namespace, spec, meta, status, body, memo, logger: Logger
) -> None:
    spec_model, spec_error = load_spec(spec)
    limitador = build_limitador(name, namespace, spec_model, body, memo, logger)
    delay = limitador.conf.requeue_delay_seconds

    pending = None
    if spec_error is None:
        try:
            logger.debug(f"Reconciling {LIMITADOR_KIND}/{name} in {namespace} namespace.")
            if await limitador.synchronize():
                pending = "pods"
            if await upgrade(limitador, meta.get("uid")):
                pending = pending or "migration"
            logger.debug(f"Reconciled {LIMITADOR_KIND}/{name} in {namespace} namespace.")
        except ApiException as e:
            if conflict_error(e) or already_exists_error(e):
                logger.info(f"Object changed concurrently ({e.reason}), requeueing.")
                raise requeue(name, namespace, "conflict", delay) from None
            spec_error = e
        except (ConfigurationError, ResourceNotFoundError) as e:
            spec_error = e

    new_status = await update_status(limitador, meta, status, spec_error, logger)

    if isinstance(spec_error, ConfigurationError):
        # Nothing changes until the spec does, the resync timer retries it.
        logger.error(f"Invalid configuration: {spec_error}")
        return
    if spec_error is not None:
        logger.error(f"Failed to reconcile: {spec_error}")
        raise requeue(name, namespace, "error", delay) from spec_error
    if pending:
        raise requeue(name, namespace, pending, delay)
    if not is_ready(new_status):
        raise requeue(name, namespace, "not-ready", delay)
    logger.info("Successfully reconciled.")


async def reconcile(
    name,
    namespace,
    spec,
    meta,
    status,
    body,
    memo,
    logger: Logger,
    trigger_source: str = "manual",
    **kwargs,
):
    """Reconcile the Limitador."""
    sensor = get_sensor()
    generation = meta.get("generation", 0)
    sensor_state = None
    if sensor:
        sensor_state = sensor.on_reconcile_start(name, namespace, generation, trigger_source)

    success = True
    error = None
    try:
        async with reconciliation_locks[_key(name, namespace)]:
            await _reconcile(name, namespace, spec, meta, status, body, memo, logger)
    except kopf.TemporaryError as e:
        if e.__cause__ is not None:
            success = False
            error = e.__cause__
        raise
    except Exception as e:
        success = False
        error = e
        logger.error(f"Unexpected error during reconcilation: {e}")
        logger.exception(e)
        raise
    finally:
        if sensor:
            sensor.on_reconcile_complete(name, namespace, sensor_state, success, error)


@kopf.on.resume(kind=LIMITADOR_KIND)
@kopf.on.create(kind=LIMITADOR_KIND)
async def on_create(name, namespace, spec, meta, status, body, memo, logger: Logger, **kwargs):
    """Creates Limitador resources."""
    await reconcile(
        name, namespace, spec, meta, status, body, memo, logger, trigger_source="create"
    )


@kopf.on.update(kind=LIMITADOR_KIND, field="spec")
async def on_update(name, namespace, spec, meta, status, body, memo, logger: Logger, **kwargs):
    await reconcile(
        name, namespace, spec, meta, status, body, memo, logger, trigger_source="update"
    )


@kopf.timer(LIMITADOR_KIND, initial_delay=RESYNC_INTERVAL_SECONDS, interval=RESYNC_INTERVAL_SECONDS)
async def periodic_reconciliation(
    name, namespace, spec, meta, status, body, memo, logger: Logger, **kwargs
):
    """Reconcile Limitador resources."""
    await reconcile(
        name, namespace, spec, meta, status, body, memo, logger, trigger_source="timer"
    )


@kopf.on.delete(kind=LIMITADOR_KIND)
async def on_delete(name, namespace, memo, logger: Logger, **kwargs):
    """Handle deletion of Limitador resources."""
    key = _key(name, namespace)
    limitador = Limitador.from_spec(
        name,
        namespace,
        LimitadorSpecSchema().load({}),
        registry=memo.registry,
        logger=logger,
        conf=memo.conf,
    )
    async with reconciliation_locks[key]:
        deleted = await limitador.cleanup()
    reconciliation_locks.pop(key, None)
    logger.info(f"Deleted owned resources: {', '.join(deleted) or 'none'}.")

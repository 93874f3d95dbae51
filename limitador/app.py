import kopf
import logging
import limitador.handlers.limitador as limitador_handlers
import limitador.handlers.ratelimit as ratelimit_handlers
import limitador.handlers.probes as probes
from limitador.types.settings import Settings
from limitador.resources import Limitador
from limitador.resources.kinds import build_registry
from limitador.web import LimitadorClient
from limitador.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    Limitador.conf = memo.conf

    # One API client shared by every kind to prevent connection leaks
    memo.api_client = ApiClient()
    memo.registry = build_registry(memo.api_client)
    logger.info(f"Kind registry initialized: {', '.join(sorted(memo.registry))}")

    memo.limitador_client = LimitadorClient(
        timeout=memo.conf.limitador_api_timeout_seconds
    )

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    Limitador.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    # Initialize Prometheus metrics server
    try:
        init_metrics_server()
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logger.warning("Continuing without metrics server")

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = memo.conf.worker_limit

    # Post events to the Kubernetes API for warnings and errors only
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    # Keep handler progress in annotations, the status belongs to the operator
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix="limitador.kuadrant.io"
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix="limitador.kuadrant.io"
    )


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    api_client = getattr(memo, "api_client", None)
    if api_client:
        await api_client.close()
        logger.info("Shared API client closed")

    limitador_client = getattr(memo, "limitador_client", None)
    if limitador_client:
        await limitador_client.close()
        logger.info("Limitador client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "limitador_handlers",
    "ratelimit_handlers",
    "probes",
]

import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Repository of the limitador server image, used when an instance pins a version
LIMITADOR_IMAGE_REPOSITORY = _getenv(
    "LIMITADOR_IMAGE_REPOSITORY", "quay.io/kuadrant/limitador"
)

#: Image used when an instance does not pin a version
RELATED_IMAGE_LIMITADOR = _getenv(
    "RELATED_IMAGE_LIMITADOR", f"{LIMITADOR_IMAGE_REPOSITORY}:latest"
)

#: Name of the limits file mounted into the limitador container
LIMITADOR_CONFIG_FILE_NAME = _getenv(
    "LIMITADOR_CONFIG_FILE_NAME", "limitador-config.yaml"
)

#: Env var that carries the redis URL into the limitador container
REDIS_URL_ENV_NAME = _getenv("REDIS_URL_ENV_NAME", "LIMITADOR_OPERATOR_REDIS_URL")

#: Operator default container resources, used when an instance sets none
DEFAULT_CPU_REQUEST = _getenv("DEFAULT_CPU_REQUEST", "250m")
DEFAULT_MEMORY_REQUEST = _getenv("DEFAULT_MEMORY_REQUEST", "32Mi")
DEFAULT_CPU_LIMIT = _getenv("DEFAULT_CPU_LIMIT", "500m")
DEFAULT_MEMORY_LIMIT = _getenv("DEFAULT_MEMORY_LIMIT", "64Mi")

#: Seconds between periodic reconciliations of every Limitador
RESYNC_INTERVAL_SECONDS = float(_getenv("RESYNC_INTERVAL_SECONDS", 60.0))

#: Seconds to wait before retrying a pass that is not finished yet
REQUEUE_DELAY_SECONDS = int(_getenv("REQUEUE_DELAY_SECONDS", 5))

#: Maximum number of concurrent kopf workers
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 2))

#: Limitador instance that RateLimit resources are pushed to, in their own namespace.
#: Its HTTP port is taken from the instance status.
RATELIMIT_LIMITADOR_NAME = _getenv("RATELIMIT_LIMITADOR_NAME", "limitador")

#: Seconds to wait for the limitador HTTP API to answer
LIMITADOR_API_TIMEOUT_SECONDS = float(_getenv("LIMITADOR_API_TIMEOUT_SECONDS", 10.0))


class Settings:
    """Operator settings"""

    limitador_image_repository: str = LIMITADOR_IMAGE_REPOSITORY
    default_image: str = RELATED_IMAGE_LIMITADOR
    config_file_name: str = LIMITADOR_CONFIG_FILE_NAME
    redis_url_env_name: str = REDIS_URL_ENV_NAME
    default_cpu_request: str = DEFAULT_CPU_REQUEST
    default_memory_request: str = DEFAULT_MEMORY_REQUEST
    default_cpu_limit: str = DEFAULT_CPU_LIMIT
    default_memory_limit: str = DEFAULT_MEMORY_LIMIT
    resync_interval_seconds: float = RESYNC_INTERVAL_SECONDS
    requeue_delay_seconds: int = REQUEUE_DELAY_SECONDS
    worker_limit: int = WORKER_LIMIT
    ratelimit_limitador_name: str = RATELIMIT_LIMITADOR_NAME
    limitador_api_timeout_seconds: float = LIMITADOR_API_TIMEOUT_SECONDS

    def __init__(
        self,
        *args,
        limitador_image_repository: str = None,
        default_image: str = None,
        config_file_name: str = None,
        redis_url_env_name: str = None,
        default_cpu_request: str = None,
        default_memory_request: str = None,
        default_cpu_limit: str = None,
        default_memory_limit: str = None,
        resync_interval_seconds: float = None,
        requeue_delay_seconds: int = None,
        worker_limit: int = None,
        ratelimit_limitador_name: str = None,
        limitador_api_timeout_seconds: float = None,
        **kwargs,
    ):
        if limitador_image_repository is not None:
            self.limitador_image_repository = limitador_image_repository

        if default_image is not None:
            self.default_image = default_image

        if config_file_name is not None:
            self.config_file_name = config_file_name

        if redis_url_env_name is not None:
            self.redis_url_env_name = redis_url_env_name

        if default_cpu_request is not None:
            self.default_cpu_request = default_cpu_request

        if default_memory_request is not None:
            self.default_memory_request = default_memory_request

        if default_cpu_limit is not None:
            self.default_cpu_limit = default_cpu_limit

        if default_memory_limit is not None:
            self.default_memory_limit = default_memory_limit

        if resync_interval_seconds is not None:
            self.resync_interval_seconds = resync_interval_seconds

        if requeue_delay_seconds is not None:
            self.requeue_delay_seconds = requeue_delay_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit

        if ratelimit_limitador_name is not None:
            self.ratelimit_limitador_name = ratelimit_limitador_name

        if limitador_api_timeout_seconds is not None:
            self.limitador_api_timeout_seconds = limitador_api_timeout_seconds

    @property
    def default_resources(self):
        return {
            "requests": {
                "cpu": self.default_cpu_request,
                "memory": self.default_memory_request,
            },
            "limits": {
                "cpu": self.default_cpu_limit,
                "memory": self.default_memory_limit,
            },
        }

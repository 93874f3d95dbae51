# Kopf must be patched before any of its internal modules are loaded.
# The patch replaces kopf._cogs.helpers.thirdparty in sys.modules so that
# kubernetes_asyncio models are recognized as Kubernetes objects.
from limitador.utils.override import patch_kopf_thirdparty
patch_kopf_thirdparty()

try:
    import os
    from dotenv import load_dotenv, find_dotenv

    env_file = os.environ.get("ENV_FILE", ".env")
    path = find_dotenv(filename=env_file, raise_error_if_not_found=True)
    print(f"Loading environment variables from {path}")
    load_dotenv(dotenv_path=path)

except Exception:
    # No file to set environment variables
    pass

# Now safe to import handlers (which import kopf)  # noqa: E402
from limitador.handlers import (  # noqa: E402
    probes,
    limitador,
    ratelimit,
)

__all__ = [
    "probes",
    "limitador",
    "ratelimit",
]

__version__ = "0.1.0"

import json
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"
_CONFLICT = "conflict"


class ConfigurationError(Exception):
    """The Limitador spec cannot be turned into a desired state."""


class ResourceNotFoundError(Exception):
    """A resource referenced by the Limitador spec does not exist."""

    def __init__(self, kind: str, name: str, namespace: str = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(f'{kind} "{name}" not found')


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    return (err.get("reason") or "").lower()


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) == _ALREADY_EXISTS


def not_found_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404 or _reason(ex) == _NOT_FOUND


def conflict_error(ex: Exception) -> bool:
    """True for optimistic concurrency failures, which only mean 'try again'."""
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) != _ALREADY_EXISTS


def describe_api_exception(ex: kubernetes_asyncio.client.ApiException) -> str:
    """Return a short, serializable description of an API error."""
    error_msg = f"Kubernetes API error ({ex.status}): {ex.reason}"
    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                error_msg = f"{error_msg} - {body['message']}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        pass
    return error_msg

"""Limitador HTTP API client."""
from typing import Any, Union
from yarl import URL
from limitador.types.models.rate_limit import RateLimit
from .session import SessionManager

LIMITS_URL = "/limits"


class LimitadorClient(SessionManager):
    """Client for the HTTP API of a running limitador server."""

    def __init__(self, **kwargs: Any) -> None:
        headers = kwargs.pop("headers", None) or {}
        headers["Content-Type"] = "application/json"
        super().__init__(headers=headers, **kwargs)

    async def create_limit(self, endpoint: Union[str, URL], limit: RateLimit) -> Any:
        """Push a limit to the limitador server."""
        url = URL(str(endpoint)).with_path(LIMITS_URL)
        return await self.post(url, data=limit.as_limit_record())

    async def delete_limit(self, endpoint: Union[str, URL], limit: RateLimit) -> Any:
        """Remove a limit from the limitador server.
        The server matches the limit by its full body."""
        url = URL(str(endpoint)).with_path(LIMITS_URL)
        return await self.delete(url, data=limit.as_limit_record())

import json
import aiohttp
from typing import Any, Mapping, Optional, Union
from marshmallow import Schema

from yarl import URL

from limitador.types.base import JSON, BaseModel

from .error import AuthenticationError, InvalidLimitError, LimitadorAPIError, NotFoundError

HEADERS = {
    "Accept": "*/*",
    "Accept-Encoding": "gzip, deflate",
    "Content-Type": "application/json; charset=utf-8",
    "Connection": "keep-alive",
}

"""Default timeout in seconds"""
TIMEOUT: float = 10


class SessionManager(BaseModel):
    """Thin wrapper around an aiohttp session speaking JSON."""

    def __init__(self, headers: Optional[Mapping] = None, **kwargs: Any) -> None:
        merged_headers = dict(**HEADERS)
        merged_headers.update(headers or {})

        self.headers = merged_headers
        self.timeout = kwargs.pop("timeout", TIMEOUT)
        self._session: Optional[aiohttp.ClientSession] = None
        super().__init__(**kwargs)

    @property
    def session(self) -> aiohttp.ClientSession:
        # Created lazily so the session binds to the running event loop.
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def post(
        self,
        url: Union[str, URL],
        data: Optional[JSON] = None,
        headers: Optional[Mapping] = None,
        schema: Optional[Schema] = None,
        many: bool = False,
    ) -> Any:
        """Run a wrapped session HTTP POST request.
        Args:
            url: The url to post to.
            data: The JSON payload to POST to the endpoint.
            headers: A dict adding to and overriding the session headers.
            schema: An instance of a `marshmallow.Schema` that represents the object
                to build.
            many: Whether to treat the output as a list of the passed schema.
        Returns:
            The decoded JSON body, a constructed object if a schema is passed, or
            None when the response has no body.
        Raises:
            ValueError: If the schema is a class instead of an instance.
        """
        return await self._request("POST", url, data, headers, schema, many)

    async def delete(
        self,
        url: Union[str, URL],
        data: Optional[JSON] = None,
        headers: Optional[Mapping] = None,
        schema: Optional[Schema] = None,
        many: bool = False,
    ) -> Any:
        """Run a wrapped session HTTP DELETE request. Same contract as `post`."""
        return await self._request("DELETE", url, data, headers, schema, many)

    async def get(
        self,
        url: Union[str, URL],
        headers: Optional[Mapping] = None,
        schema: Optional[Schema] = None,
        many: bool = False,
    ) -> Any:
        return await self._request("GET", url, None, headers, schema, many)

    async def _request(
        self,
        method: str,
        url: Union[str, URL],
        data: Optional[JSON],
        headers: Optional[Mapping],
        schema: Optional[Schema],
        many: bool,
    ) -> Any:
        # Guard against common gotcha, passing schema class instead of instance.
        if isinstance(schema, type):
            raise ValueError("Passed Schema should be an instance not a class.")

        res: aiohttp.ClientResponse = await self.session.request(
            method,
            str(url),
            json=data,
            headers=dict(headers or {}),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        async with res:
            text = await res.text()
            if res.status == 401:
                raise AuthenticationError("Unauthorized", res.status)
            if res.status == 403:
                raise AuthenticationError("Forbidden", res.status)
            if res.status == 404:
                raise NotFoundError("Not found", res.status)
            if res.status in (400, 422):
                raise InvalidLimitError(text or res.reason, res.status)
            if res.status >= 400:
                raise LimitadorAPIError(
                    f"{method} {url} failed: {res.status} {res.reason}", res.status
                )

            if not text:
                return None
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                return text
            return body if schema is None else schema.load(body, many=many)

    def __repr__(self) -> str:
        return f"SessionManager<timeout={self.timeout}>"

    async def close(self) -> None:
        """Close the underlying session"""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


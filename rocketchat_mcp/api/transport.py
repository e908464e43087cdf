"""HTTP transport for the Rocket.Chat REST API"""
import logging
from contextlib import asynccontextmanager
from typing import Dict, Any, Optional, AsyncIterator

import httpx

from rocketchat_mcp.api.exceptions import APIError, DownloadError
from rocketchat_mcp.api.models import Credentials

logger = logging.getLogger(__name__)


class HttpTransport:
    """Authenticated async HTTP access to one Rocket.Chat server.

    Every request carries the ``X-Auth-Token`` / ``X-User-Id`` pair. A non-2xx
    status or a JSON body with ``success: false`` is raised as ``APIError``
    carrying the server's ``error`` string when there is one. Nothing is
    retried here.
    """

    API_PREFIX = "/api/v1"

    def __init__(self, credentials: Credentials, timeout: float = 30,
                 verify_ssl: bool = True,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize transport"""
        self.credentials = credentials
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            headers={
                "X-Auth-Token": credentials.auth_token,
                "X-User-Id": credentials.user_id,
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            verify=verify_ssl,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def api_url(self, path: str) -> str:
        return f"{self.credentials.base_url}{self.API_PREFIX}/{path.lstrip('/')}"

    def file_url(self, path: str) -> str:
        return f"{self.credentials.base_url}/{path.lstrip('/')}"

    async def call(self, path: str, method: str = "GET",
                   params: Optional[Dict[str, Any]] = None,
                   json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make a JSON request against the REST API"""
        logger.debug(f"{method} {path} params={params}")
        try:
            response = await self._client.request(
                method,
                self.api_url(path),
                params=self._clean(params),
                json=json,
            )
        except httpx.HTTPError as e:
            raise APIError(f"Request failed: {e}") from e
        return self._parse(response)

    async def upload(self, path: str, files: Dict[str, Any],
                     data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a multipart form body"""
        logger.debug(f"POST {path} (multipart)")
        try:
            response = await self._client.post(
                self.api_url(path),
                files=files,
                data=self._clean(data),
            )
        except httpx.HTTPError as e:
            raise APIError(f"Upload failed: {e}") from e
        return self._parse(response, action="Upload")

    @asynccontextmanager
    async def stream(self, path: str) -> AsyncIterator[httpx.Response]:
        """Stream a binary body from outside the REST prefix"""
        logger.debug(f"GET {path} (stream)")
        try:
            async with self._client.stream("GET", self.file_url(path)) as response:
                if response.is_error:
                    raise DownloadError(f"Download failed: {response.reason_phrase}")
                yield response
        except httpx.HTTPError as e:
            raise DownloadError(f"Download failed: {e}") from e

    @staticmethod
    def _clean(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if values is None:
            return None
        return {k: v for k, v in values.items() if v is not None}

    @staticmethod
    def _parse(response: httpx.Response, action: str = "Request") -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise APIError(message or f"{action} failed: {response.reason_phrase}")

        if not isinstance(data, dict):
            raise APIError(f"{action} failed: response is not a JSON object")

        if not data.get("success"):
            raise APIError(data.get("error") or f"{action} was not successful")

        return data

"""
HTTP transport for the sandbox API.

Every remote call made by the library goes through ``APIClient``: it adds
the workspace headers, decodes JSON, turns error statuses into typed
exceptions and streams newline-delimited JSON for watch subscriptions.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from remote_sandbox.auth.credentials import Credential
from remote_sandbox.errors import (
    APIError,
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    SandboxError,
)

logger = logging.getLogger(__name__)

__all__ = ["APIClient", "error_from_response"]

API_VERSION = "v0"


def error_from_response(
    status: int,
    payload: Optional[Dict[str, Any]] = None,
    operation: Optional[str] = None,
    resource: Optional[str] = None,
) -> SandboxError:
    """
    Map an error status and body to the matching exception.

    Args:
        status: HTTP status code (>= 400)
        payload: Decoded error body, if any
        operation: "METHOD /path" that failed
        resource: Human readable resource, e.g. "sandbox 'web'"

    Returns:
        The exception to raise
    """
    payload = payload or {}
    message = payload.get("message") or payload.get("error") or f"HTTP {status}"
    resource = resource or "resource"

    if status in (401, 403):
        return AuthenticationError(
            message=f"{operation or 'request'} rejected: {message}",
            details={"operation": operation, "resource": resource, "status": status},
        )
    if status == 404:
        return NotFoundError(resource=resource, operation=operation)
    if status == 409:
        return ConflictError(resource=resource, operation=operation, message=message)
    if status in (400, 422):
        return InvalidRequestError(
            field=payload.get("field", "body"),
            value=payload.get("value"),
            reason=message,
        )
    return APIError(
        message=message,
        status=status,
        error_code=payload.get("error_code"),
        details={
            "operation": operation,
            "resource": resource,
            **(payload.get("details") or {}),
        },
    )


class APIClient:
    """
    Authenticated aiohttp client for the sandbox API.

    Attributes:
        endpoint: The API endpoint URL
        credential: Workspace credential sent with every request
        timeout: Request timeout in seconds

    Example:
        >>> async with APIClient("https://api.sandbox.dev/v0", credential) as api:
        ...     sandboxes = await api.request("GET", "/sandboxes")
    """

    def __init__(
        self,
        endpoint: str,
        credential: Credential,
        timeout: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.credential = credential
        self.timeout = timeout
        self._session = session
        self._own_session = session is None

        logger.debug(f"APIClient initialized with endpoint: {self.endpoint}")

    @property
    def _default_headers(self) -> Dict[str, str]:
        """Generate default request headers"""
        return {
            "Content-Type": "application/json",
            "X-API-Version": API_VERSION,
            "X-Sandbox-Workspace": self.credential.workspace,
            "Authorization": f"Bearer {self.credential.api_key}",
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self._default_headers,
            )
            self._own_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying aiohttp session"""
        if self._own_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None
            logger.debug("APIClient session closed")

    async def __aenter__(self) -> "APIClient":
        await self._get_session()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _build_url(self, path: str) -> str:
        return f"{self.endpoint}{path}"

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        resource: Optional[str] = None,
    ) -> Any:
        """
        Make one HTTP request.

        Transport failures are not retried; they surface as APIError.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path (e.g., "/sandboxes")
            json: JSON body
            params: Query parameters
            resource: Resource description used in error messages

        Returns:
            Decoded JSON body, or {"content": text} for non-JSON bodies

        Raises:
            SandboxError: On API errors
        """
        url = self._build_url(path)
        operation = f"{method} {path}"
        session = await self._get_session()

        try:
            logger.debug(operation)
            async with session.request(
                method, url, json=json, params=_encode_params(params)
            ) as response:
                await self._check_response(response, operation, resource)

                if response.status == 204:
                    return {}
                if response.content_type == "application/json":
                    return await response.json()
                return {"content": await response.text()}

        except aiohttp.ClientError as e:
            raise APIError(
                message=f"{operation} failed: {e}",
                details={"operation": operation, "resource": resource},
            ) from e
        except asyncio.TimeoutError as e:
            raise APIError(
                message=f"{operation} timed out after {self.timeout}s",
                details={"operation": operation, "resource": resource},
            ) from e

    async def stream(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        resource: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream a newline-delimited JSON response, one object per line.

        The request is sent without a total timeout since the stream is
        expected to stay open until the caller stops iterating.
        """
        url = self._build_url(path)
        operation = f"{method} {path}"
        session = await self._get_session()

        try:
            async with session.request(
                method,
                url,
                params=_encode_params(params),
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.timeout),
            ) as response:
                await self._check_response(response, operation, resource)
                async for raw in response.content:
                    line = raw.decode("utf-8").strip()
                    if line:
                        yield json.loads(line)

        except aiohttp.ClientError as e:
            raise APIError(
                message=f"{operation} stream failed: {e}",
                details={"operation": operation, "resource": resource},
            ) from e
        except asyncio.TimeoutError as e:
            raise APIError(
                message=f"{operation} stream timed out connecting after {self.timeout}s",
                details={"operation": operation, "resource": resource},
            ) from e

    async def _check_response(
        self,
        response: aiohttp.ClientResponse,
        operation: str,
        resource: Optional[str],
    ) -> None:
        """
        Check response for errors.

        Raises:
            SandboxError: On API errors
        """
        if response.status < 400:
            return

        try:
            payload = await response.json(content_type=None)
        except (ValueError, aiohttp.ClientError):
            payload = {"message": f"HTTP {response.status}: {response.reason}"}
        if not isinstance(payload, dict):
            payload = {"message": str(payload)}

        raise error_from_response(response.status, payload, operation, resource)


def _encode_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """Drop None values and render booleans/lists the way the API expects."""
    if not params:
        return None
    encoded = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            encoded[key] = ",".join(str(v) for v in value)
        else:
            encoded[key] = str(value)
    return encoded

"""
HTTP API Client for the session client.

This module provides an aiohttp-based client that attaches the current bearer
token to every request and recovers from expired access tokens by refreshing
once and replaying the rejected requests.
"""

import asyncio
import json
import logging
from typing import Optional, Dict, Any, Union

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError

from shared.exceptions import (
    ErrorCode, HTTPStatusError, NetworkError, UnauthorizedError
)
from shared.interfaces import IAPIClient, IConfigurationManager
from shared.logging_config import AuditLogger
from shared.models import APIResponse, ClientSettings, PendingRequest
from session_client.auth.authenticator import RequestAuthenticator
from session_client.auth.context import AuthContext, TokenProvider, SessionTerminator, TokenRefreshedHook
from session_client.auth.refresh_coordinator import RefreshCoordinator
from session_client.config import ClientConfiguration

logger = logging.getLogger(__name__)


class SessionAPIClient(IAPIClient):
    """
    HTTP API client with bearer authentication and token refresh.

    Every request goes through the request authenticator and, when the server
    answers 401, through the refresh coordinator. Pass a shared ``context`` to
    make several clients refresh as one; by default each client gets its own.
    """

    def __init__(
        self,
        settings: Optional[Union[ClientSettings, IConfigurationManager]] = None,
        context: Optional[AuthContext] = None,
        session: Optional[ClientSession] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        if isinstance(settings, IConfigurationManager):
            settings = settings.to_settings()
        self.settings = settings or ClientSettings()
        self.context = context or AuthContext()
        self.timeout = ClientTimeout(total=self.settings.timeout)

        self._session = session
        self._owns_session = session is None

        self.authenticator = RequestAuthenticator(self.context)
        self.refresh_coordinator = RefreshCoordinator(
            self.context,
            refresh=self.refresh_access_token,
            replay=self._dispatch,
            refresh_path=self.settings.refresh_path,
            access_token_field=self.settings.access_token_field,
            audit_logger=audit_logger
        )

        logger.info(f"API client initialized for server: {self.settings.base_url}")

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            if self.settings.with_credentials:
                cookie_jar = aiohttp.CookieJar(unsafe=True)
            else:
                cookie_jar = aiohttp.DummyCookieJar()

            self._session = ClientSession(
                timeout=self.timeout,
                cookie_jar=cookie_jar
            )
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def set_auth_helpers(
        self,
        get_token: TokenProvider,
        logout: SessionTerminator,
        on_token_refreshed: Optional[TokenRefreshedHook] = None
    ) -> None:
        """Bind the host's token provider and session terminator."""
        self.context.set_auth_helpers(get_token, logout, on_token_refreshed)

    def get_refresh_state(self) -> Dict[str, Any]:
        """Snapshot of the refresh bookkeeping, for diagnostics."""
        return self.context.refresh_state.snapshot()

    def _build_url(self, path: str) -> str:
        if path.startswith(('http://', 'https://')):
            return path
        return self.settings.base_url.rstrip('/') + '/' + path.lstrip('/')

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> APIResponse:
        """
        Send a request through the authenticated pipeline.

        Args:
            method: HTTP method
            path: Path relative to the base URL, or an absolute URL
            params: Query parameters
            json: JSON body
            data: Raw body
            headers: Extra headers for this request

        Returns:
            The response, after a transparent refresh and replay if needed

        Raises:
            HTTPStatusError: On a non-2xx response (UnauthorizedError for 401)
            TokenRefreshError: If the access token could not be refreshed
            NetworkError: On transport failures and timeouts
        """
        pending = PendingRequest(
            method=method,
            path=path,
            headers=dict(headers or {}),
            params=params,
            json=json,
            data=data
        )

        try:
            return await self._dispatch(pending)
        except UnauthorizedError as error:
            if not self.refresh_coordinator.should_refresh(pending, error):
                raise
            return await self.refresh_coordinator.handle_unauthorized(pending, error)

    async def get(self, path: str, **kwargs) -> APIResponse:
        return await self.request('GET', path, **kwargs)

    async def post(self, path: str, **kwargs) -> APIResponse:
        return await self.request('POST', path, **kwargs)

    async def put(self, path: str, **kwargs) -> APIResponse:
        return await self.request('PUT', path, **kwargs)

    async def patch(self, path: str, **kwargs) -> APIResponse:
        return await self.request('PATCH', path, **kwargs)

    async def delete(self, path: str, **kwargs) -> APIResponse:
        return await self.request('DELETE', path, **kwargs)

    async def _dispatch(self, request: PendingRequest) -> APIResponse:
        """Authenticate and send a request, raising on non-2xx responses."""
        self.authenticator.apply(request)
        response = await self._send(request)
        if not response.ok:
            raise self._status_error(response)
        return response

    async def refresh_access_token(self) -> Any:
        """
        Call the refresh endpoint directly.

        The call skips the authenticator and the refresh coordinator and goes
        out on the same session, so it carries the same cookies as every
        other request.

        Returns:
            The decoded refresh payload
        """
        request = PendingRequest(method='POST', path=self.settings.refresh_path, json={})
        logger.debug(f"Requesting new access token from {self.settings.refresh_url}")

        response = await self._send(request)
        if not response.ok:
            raise self._status_error(response)
        return response.data

    async def _send(self, request: PendingRequest) -> APIResponse:
        """Send a request over the transport."""
        await self._ensure_session()

        url = self._build_url(request.path)
        headers = {**self.settings.default_headers, **request.headers}

        logger.debug(f"Making {request.method} request to {url}")
        try:
            async with self._session.request(
                method=request.method,
                url=url,
                params=request.params,
                json=request.json,
                data=request.data,
                headers=headers,
                timeout=self.timeout
            ) as response:
                body = await self._read_body(response)
                return APIResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    data=body,
                    request=request
                )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Request to {url} timed out",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                cause=e
            ) from e
        except ClientError as e:
            raise NetworkError(f"Request to {url} failed: {e}", cause=e) from e

    async def _read_body(self, response) -> Any:
        """
        Decode a response body.

        JSON bodies are parsed, other bodies are returned as text, and bodies
        that are not valid text in their charset come back as raw bytes.
        Empty bodies give None.
        """
        raw = await response.read()
        if not raw:
            return None

        try:
            text = raw.decode(response.charset or 'utf-8')
        except (UnicodeDecodeError, LookupError):
            return raw

        content_type = response.content_type or ''
        if content_type == 'application/json' or content_type.endswith('+json'):
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text

    def _status_error(self, response: APIResponse) -> HTTPStatusError:
        detail = None
        if isinstance(response.data, dict):
            detail = response.data.get('detail') or response.data.get('message')
        elif isinstance(response.data, str):
            detail = response.data

        if response.status == 401:
            return UnauthorizedError(
                f"Unauthorized: {detail or 'authentication required'}",
                response=response
            )
        return HTTPStatusError(
            f"Request failed ({response.status}): {detail or 'Unknown error'}",
            status=response.status,
            response=response
        )


def create_api_client(
    config_file: Optional[str] = None,
    context: Optional[AuthContext] = None,
    **overrides
) -> SessionAPIClient:
    """
    Build a client from configuration file, environment and overrides.

    Recognised overrides: base_url, timeout, with_credentials, refresh_path,
    access_token_field.
    """
    override_keys = {
        'base_url': 'server.url',
        'timeout': 'server.timeout',
        'with_credentials': 'server.with_credentials',
        'refresh_path': 'auth.refresh_path',
        'access_token_field': 'auth.access_token_field',
    }

    config = ClientConfiguration(config_file)
    for name, value in overrides.items():
        if name not in override_keys:
            raise TypeError(f"Unknown client option: {name}")
        config.set_override(override_keys[name], value)

    return SessionAPIClient(config, context=context)

"""Asynchronous request engine with authenticated retry."""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import httpx

from .auth.bearer import BearerAuth
from .config import APIConfig
from .endpoint import APIEndpoint
from .events import SessionEvents
from .exceptions import (
    CustomAPIError,
    ForbiddenError,
    InvalidResponseError,
    NoInternetError,
    NotConfiguredError,
    TokenRefreshFailedError,
    UnauthorizedError,
)
from .http import HttpResponse, build_url, decode, send
from .network import NetworkMonitor
from .storage import TokenStorage

logger = logging.getLogger(__name__)


class APIService:
    """Perform typed API calls against a configured base URL.

    A ``401`` on an endpoint that requires auth triggers one token refresh
    through the configured `RefreshTokenHandler`, after which the call is
    retried exactly once. Concurrent calls share a single in-flight refresh.
    Unrecoverable auth failures notify `session_expired` listeners.

    Usage::

        service = APIService(APIConfig(base_url="https://api.example.com"))
        service.session_expired.subscribe(show_login)
        profile = await service.perform(Endpoint("/me"), Profile)
    """

    def __init__(
        self,
        config: APIConfig | None = None,
        *,
        token_storage: TokenStorage | None = None,
        events: SessionEvents | None = None,
        network_monitor: NetworkMonitor | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config: APIConfig | None = None
        self.tokens = token_storage if token_storage is not None else TokenStorage()
        self.session_expired = events if events is not None else SessionEvents()
        self.network_monitor = network_monitor
        self._auth = BearerAuth(self.tokens)
        self._client = http_client
        self._owns_client = http_client is None
        self._refresh_task: asyncio.Task[None] | None = None
        if config is not None:
            self.configure(config)

    # Context manager helpers -------------------------------------------------
    async def __aenter__(self) -> APIService:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # Configuration -----------------------------------------------------------
    def configure(self, config: APIConfig) -> None:
        if self._config is not None:
            raise CustomAPIError("API service is already configured.")
        self._config = config

    @property
    def is_configured(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> APIConfig:
        if self._config is None:
            raise NotConfiguredError()
        return self._config

    # Public API --------------------------------------------------------------
    async def perform(self, endpoint: APIEndpoint, response_type: Any = Any) -> Any:
        """Send ``endpoint`` and decode the response body into ``response_type``."""
        config = self.config
        return await self._perform(config, endpoint, response_type, retry_on_401=True)

    request = perform

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Internal helpers -------------------------------------------------------
    async def _perform(
        self,
        config: APIConfig,
        endpoint: APIEndpoint,
        response_type: Any,
        *,
        retry_on_401: bool,
    ) -> Any:
        request, sent_token = self._build_request(config, endpoint, attach_auth=endpoint.requires_auth)
        response = await self._execute(config, request)
        status = response.status_code

        if response.is_success:
            return decode(response.content, response_type)

        if status == 401 and endpoint.requires_auth and retry_on_401:
            await self._recover_from_401(config, sent_token)
            return await self._perform(config, endpoint, response_type, retry_on_401=False)

        if status == 401:
            if config.auto_logout_on_401:
                self._expire_session()
            raise UnauthorizedError(status_code=status, details=response.snippet())

        if status == 403:
            raise ForbiddenError(status_code=status, details=response.snippet())

        raise InvalidResponseError(status_code=status, details=response.snippet())

    def _build_request(
        self,
        config: APIConfig,
        endpoint: APIEndpoint,
        *,
        attach_auth: bool,
    ) -> tuple[httpx.Request, str | None]:
        url = build_url(config.base_url, endpoint.path, endpoint.query_items)
        headers = httpx.Headers(config.resolved_headers())
        for name, value in (endpoint.headers or {}).items():
            headers[name] = value
        token = self._auth.apply(headers) if attach_auth else None
        method = str(getattr(endpoint.method, "value", endpoint.method)).upper()
        request = self._http(config).build_request(
            method,
            url,
            headers=headers,
            content=endpoint.body,
        )
        return request, token

    async def _execute(self, config: APIConfig, request: httpx.Request) -> HttpResponse:
        if self.network_monitor is not None and self.network_monitor.is_offline:
            raise NoInternetError()
        if config.logging_enabled:
            logger.info("API request %s %s", request.method, request.url)
        response = await send(self._http(config), request)
        if config.logging_enabled:
            logger.info("API response [%s] for %s", response.status_code, response.url)
        return response

    async def _recover_from_401(self, config: APIConfig, sent_token: str | None) -> None:
        current = self.tokens.access_token
        if current is not None and current != sent_token:
            # Another call already rotated the token; the retry uses it as-is.
            logger.debug("Access token rotated while request was in flight")
            return
        await self._refresh_tokens(config)

    async def _refresh_tokens(self, config: APIConfig) -> None:
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_refresh(config))
            task.add_done_callback(self._refresh_finished)
            self._refresh_task = task
        await asyncio.shield(task)

    def _refresh_finished(self, task: asyncio.Task[None]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Waiters may all have been cancelled; mark the outcome as observed.
            task.exception()

    async def _run_refresh(self, config: APIConfig) -> None:
        refresh_token = self.tokens.refresh_token
        handler = config.refresh_handler
        if not refresh_token or handler is None:
            logger.warning(
                "Cannot refresh session: %s",
                "no refresh handler configured" if handler is None else "no refresh token stored",
            )
            if config.auto_logout_on_401:
                self._expire_session()
            raise TokenRefreshFailedError()

        endpoint = handler.build_endpoint(refresh_token)
        request, _ = self._build_request(config, endpoint, attach_auth=False)
        response = await self._execute(config, request)
        if response.status_code != 200:
            logger.warning("Token refresh rejected with status %s", response.status_code)
            self._expire_session()
            raise TokenRefreshFailedError(status_code=response.status_code, details=response.snippet())

        try:
            pair = handler.parse(response.content)
        except Exception as exc:
            logger.warning("Token refresh response could not be parsed: %s", exc)
            self._expire_session()
            raise TokenRefreshFailedError(details=str(exc)) from exc
        self.tokens.set_tokens(pair.access_token, pair.refresh_token)
        logger.info("Access token refreshed")

    def _expire_session(self) -> None:
        logger.info("Session expired; notifying %d listener(s)", len(self.session_expired))
        self.session_expired.emit()

    def _http(self, config: APIConfig) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=config.timeout, verify=_ssl_verify(config.verify_ssl))
            self._owns_client = True
        return self._client


def _ssl_verify(verify: bool | str) -> bool | ssl.SSLContext:
    if isinstance(verify, str):
        return ssl.create_default_context(cafile=verify)
    return verify

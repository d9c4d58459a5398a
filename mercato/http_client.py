# -*- coding: utf-8 -*-

# Mercato Client
# Copyright (C) 2025 Mercato Client contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
HTTP client for the marketplace API with transparent token renewal.

Every feature of the application performs its network calls through
MercatoHttpClient.call(). For each logical call it:
- enforces a per-call deadline (10s default, 30s for login/registration)
- attaches the bearer token and a JSON content type (unless multipart/binary)
- classifies the outcome:
    2xx: parsed JSON is returned as-is
    401 TOKEN_EXPIRED/INVALID_TOKEN on first attempt: renew and retry once
    other 401: credentials cleared, AuthExpiredError
    other non-2xx: HttpError
    timeout / transport failure: RequestTimeoutError / NetworkError

Nothing is retried except the single post-renewal retry. Retry policy for
timeouts and network errors belongs to the caller.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional

import httpx
from loguru import logger

from mercato.config import (
    API_BASE_URL,
    AUTH_TIMEOUT,
    DEFAULT_TIMEOUT,
    EXTENDED_TIMEOUT_ENDPOINTS,
    HTTP_KEEPALIVE_EXPIRY,
    HTTP_MAX_CONNECTIONS,
    HTTP_MAX_KEEPALIVE_CONNECTIONS,
    RENEWABLE_ERROR_CODES,
)
from mercato.credentials import CredentialStore
from mercato.exceptions import (
    AuthExpiredError,
    HttpError,
    MercatoError,
    NetworkError,
    RequestTimeoutError,
)
from mercato.network_errors import classify_network_error, get_short_error_message
from mercato.renewal import RenewalCoordinator


class Attempt(Enum):
    """
    Position of a request in its logical call.

    FIRST_ATTEMPT: may trigger one token renewal on an expired-token 401
    RETRY_AFTER_RENEWAL: already retried, any 401 is terminal
    """
    FIRST_ATTEMPT = "first_attempt"
    RETRY_AFTER_RENEWAL = "retry_after_renewal"


@dataclass(frozen=True)
class RequestAttempt:
    """Everything needed to (re)issue one request. Discarded once the call settles."""
    endpoint: str
    method: str = "GET"
    json: Any = None
    data: Optional[Mapping[str, Any]] = None
    files: Any = None
    content: Optional[bytes] = None
    params: Optional[Mapping[str, Any]] = None
    headers: Optional[Mapping[str, str]] = None
    timeout: Optional[float] = None
    attempt: Attempt = Attempt.FIRST_ATTEMPT

    @property
    def is_retry(self) -> bool:
        return self.attempt is Attempt.RETRY_AFTER_RENEWAL

    @property
    def path(self) -> str:
        return self.endpoint.split("?", 1)[0]

    @property
    def sends_raw_body(self) -> bool:
        """True for multipart/form/binary bodies whose content type httpx must set."""
        return self.files is not None or self.data is not None or self.content is not None


class MercatoHttpClient:
    """
    Request dispatcher for the marketplace API.

    Supports two modes of operation:
    1. Owned client: creates and owns its own httpx.AsyncClient
    2. Shared client: uses an application-level client (connection pooling)

    Attributes:
        base_url: API base URL prepended to every endpoint
        credential_store: Store holding the session tokens
        coordinator: Single-flight renewal coordinator for this session
        client: httpx HTTP client (owned or shared)

    Example:
        >>> store = CredentialStore()
        >>> async with MercatoHttpClient(store) as http:
        ...     products = await http.get("/vendor/products")
    """

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        coordinator: Optional[RenewalCoordinator] = None,
        base_url: str = API_BASE_URL,
        shared_client: Optional[httpx.AsyncClient] = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        auth_timeout: float = AUTH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initializes the dispatcher.

        Args:
            credential_store: Token store (default: in-memory store)
            coordinator: Renewal coordinator. If omitted, one is created that
                         shares this dispatcher's HTTP client.
            base_url: API base URL
            shared_client: Optional shared httpx.AsyncClient. It will NOT be
                           closed by close().
            default_timeout: Deadline for regular calls in seconds
            auth_timeout: Deadline for login/registration in seconds
            transport: Transport for the owned client (ignored with shared_client)
        """
        self.base_url = base_url.rstrip("/")
        self.credential_store = credential_store if credential_store is not None else CredentialStore()
        self.default_timeout = default_timeout
        self.auth_timeout = auth_timeout

        self._transport = transport
        self._shared_client = shared_client
        self._owns_client = shared_client is None
        self.client: Optional[httpx.AsyncClient] = shared_client

        if coordinator is None:
            coordinator = RenewalCoordinator(
                self.credential_store,
                base_url=self.base_url,
                client_provider=self._get_client,
            )
        self.coordinator = coordinator

    async def _get_client(self) -> httpx.AsyncClient:
        """
        Returns or creates the HTTP client.

        Owned clients get no httpx-level timeout: the per-call deadline is
        enforced around the whole request with asyncio.wait_for(), so a caller
        can extend it beyond any transport default.
        """
        if self._shared_client is not None:
            return self._shared_client

        if self.client is None or self.client.is_closed:
            limits = httpx.Limits(
                max_connections=HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=HTTP_MAX_KEEPALIVE_CONNECTIONS,
                keepalive_expiry=HTTP_KEEPALIVE_EXPIRY,
            )
            logger.debug(f"Creating HTTP client (max_connections={HTTP_MAX_CONNECTIONS})")
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(None),
                limits=limits,
                follow_redirects=True,
                transport=self._transport,
            )
        return self.client

    async def close(self) -> None:
        """
        Closes the HTTP client if this instance owns it.

        Errors during cleanup are logged, not raised, so they don't mask the
        original exception in finally blocks.
        """
        if not self._owns_client:
            return

        if self.client and not self.client.is_closed:
            try:
                await self.client.aclose()
            except Exception as e:
                logger.warning(f"Error closing HTTP client: {e}")

    def resolve_timeout(self, request: RequestAttempt) -> float:
        """Explicit per-call timeout, else the endpoint's default deadline."""
        if request.timeout is not None:
            return request.timeout
        if request.path in EXTENDED_TIMEOUT_ENDPOINTS:
            return self.auth_timeout
        return self.default_timeout

    def build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}"

    def build_headers(self, request: RequestAttempt, token: Optional[str] = None) -> httpx.Headers:
        """
        Builds request headers.

        Header names are case-insensitive, so a caller's "content-type" or
        "authorization" is never sent twice.

        Args:
            request: The request being sent
            token: Access token to use instead of the stored one (post-renewal retry)
        """
        headers = httpx.Headers(request.headers or {})

        # Multipart boundaries and binary types are set by httpx
        if not request.sends_raw_body and "Content-Type" not in headers:
            headers["Content-Type"] = "application/json"

        access_token = token if token is not None else self.credential_store.access_token
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        return headers

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        files: Any = None,
        content: Optional[bytes] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        attempt: Attempt = Attempt.FIRST_ATTEMPT,
    ) -> Any:
        """
        Performs one logical API call.

        Args:
            endpoint: Path relative to base_url (e.g. "/vendor/products")
            method: HTTP method
            json: JSON body
            data: Form fields (multipart when combined with files)
            files: Files for multipart upload
            content: Raw binary body
            params: Query parameters
            headers: Extra headers
            timeout: Deadline in seconds (default depends on endpoint)
            attempt: FIRST_ATTEMPT, or RETRY_AFTER_RENEWAL to forbid renewal

        Returns:
            Parsed JSON body of the 2xx response (None for an empty body)

        Raises:
            RequestTimeoutError: Deadline expired
            NetworkError: Transport failure
            HttpError: Non-2xx response
            AuthExpiredError: Session expired, credentials cleared
        """
        request = RequestAttempt(
            endpoint=endpoint,
            method=method.upper(),
            json=json,
            data=data,
            files=files,
            content=content,
            params=params,
            headers=headers,
            timeout=timeout,
            attempt=attempt,
        )

        try:
            return await self._dispatch(request)
        except HttpError as e:
            logger.warning(f"API error ({request.method} {endpoint}): {e.status_code} {e.message}")
            raise
        except MercatoError as e:
            logger.error(f"API error ({request.method} {endpoint}): [{e.code}] {e.message}")
            raise

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.call(endpoint, "GET", **kwargs)

    async def post(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.call(endpoint, "POST", **kwargs)

    async def put(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.call(endpoint, "PUT", **kwargs)

    async def patch(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.call(endpoint, "PATCH", **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.call(endpoint, "DELETE", **kwargs)

    async def _dispatch(self, request: RequestAttempt, token: Optional[str] = None) -> Any:
        """Sends one attempt under its own deadline and classifies the outcome."""
        timeout = self.resolve_timeout(request)

        try:
            response = await asyncio.wait_for(self._send(request, token), timeout=timeout)
        except asyncio.TimeoutError as e:
            error_info = classify_network_error(e)
            raise RequestTimeoutError(
                f"Request timed out after {timeout}s",
                endpoint=request.endpoint,
                timeout=timeout,
                info=error_info,
            ) from e
        except httpx.RequestError as e:
            error_info = classify_network_error(e)
            if error_info.is_timeout:
                raise RequestTimeoutError(
                    get_short_error_message(error_info),
                    endpoint=request.endpoint,
                    timeout=timeout,
                    info=error_info,
                ) from e
            raise NetworkError(
                get_short_error_message(error_info),
                endpoint=request.endpoint,
                info=error_info,
            ) from e

        if response.is_success:
            return self._parse_success(request, response)

        error_body = self._parse_error_body(response)

        if response.status_code == 401:
            return await self._handle_unauthorized(request, error_body)

        message = error_body.get("message") if isinstance(error_body, dict) else None
        raise HttpError(
            response.status_code,
            message if isinstance(message, str) and message else None,
            endpoint=request.endpoint,
            payload=error_body,
        )

    async def _send(self, request: RequestAttempt, token: Optional[str]) -> httpx.Response:
        client = await self._get_client()
        url = self.build_url(request.endpoint)
        headers = self.build_headers(request, token)

        logger.debug(f"Sending {request.method} {url} ({request.attempt.value})")
        return await client.request(
            request.method,
            url,
            json=request.json,
            data=request.data,
            files=request.files,
            content=request.content,
            params=request.params,
            headers=headers,
        )

    async def _handle_unauthorized(self, request: RequestAttempt, error_body: Any) -> Any:
        """
        Renews the token and retries once, or ends the session.

        Only a first attempt whose 401 blames the access token itself is
        eligible. The retry runs as RETRY_AFTER_RENEWAL, so it can never come
        back here for another renewal.
        """
        error_code = None
        if isinstance(error_body, dict):
            error_code = error_body.get("errorCode") or error_body.get("code")

        if not request.is_retry and error_code in RENEWABLE_ERROR_CODES:
            logger.info(f"Access token rejected ({error_code}) for {request.endpoint}, renewing...")
            new_token = await self.coordinator.renew()
            retry = replace(request, attempt=Attempt.RETRY_AFTER_RENEWAL)
            return await self._dispatch(retry, token=new_token)

        if request.is_retry:
            logger.warning(f"401 again after token renewal for {request.endpoint}, giving up")
        self.credential_store.clear()
        raise AuthExpiredError(endpoint=request.endpoint)

    @staticmethod
    def _parse_success(request: RequestAttempt, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise HttpError(
                response.status_code,
                "Invalid JSON response",
                endpoint=request.endpoint,
            ) from e

    @staticmethod
    def _parse_error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}

    async def __aenter__(self) -> "MercatoHttpClient":
        """Async context manager support."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Closes the client when exiting context."""
        await self.close()

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
Single-flight access token renewal.

Any number of concurrent requests may discover at the same moment that the
access token has expired. The coordinator collapses all of their renewal
demands into one round-trip to the refresh endpoint:

- The first caller starts a renewal episode (a background task).
- Callers arriving while the episode runs join its waiter list.
- When the episode settles, every waiter receives the same outcome: the new
  token, or the same AuthExpiredError. Then the list is emptied.

An episode runs in its own task, so a caller that times out or is cancelled
only abandons its own waiter and never aborts the renewal for the others.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import httpx
from loguru import logger

from mercato.config import API_BASE_URL, REFRESH_TIMEOUT, REFRESH_TOKEN_PATH
from mercato.credentials import CredentialStore, mask_token
from mercato.exceptions import AuthExpiredError


ClientProvider = Callable[[], Awaitable[httpx.AsyncClient]]


class RenewalCoordinator:
    """
    Guarantees at most one token renewal in flight at any time.

    One instance lives for the whole application session and is shared by
    every request dispatched through the same credential store.

    Attributes:
        credential_store: Store holding the token pair
        refresh_url: Full URL of the refresh endpoint
        timeout: Ceiling for the renewal round-trip in seconds

    Example:
        >>> coordinator = RenewalCoordinator(store, base_url="https://api.example.com/api")
        >>> token = await coordinator.renew()
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        base_url: str = API_BASE_URL,
        client_provider: Optional[ClientProvider] = None,
        timeout: float = REFRESH_TIMEOUT,
    ):
        """
        Initializes the coordinator.

        Args:
            credential_store: Store holding the token pair
            base_url: API base URL, the refresh path is appended to it
            client_provider: Coroutine returning a shared httpx.AsyncClient.
                             If omitted, each renewal uses a short-lived client.
            timeout: Ceiling for the renewal round-trip (default: REFRESH_TIMEOUT)
        """
        self.credential_store = credential_store
        self.refresh_url = f"{base_url.rstrip('/')}{REFRESH_TOKEN_PATH}"
        self.timeout = timeout
        self._client_provider = client_provider

        self._renewing = False
        self._waiters: List[asyncio.Future] = []
        self._episode: Optional[asyncio.Task] = None
        self._episode_count = 0

    @property
    def is_renewing(self) -> bool:
        """True while a renewal episode is in flight."""
        return self._renewing

    @property
    def pending_waiters(self) -> int:
        """Number of callers waiting on the current episode."""
        return len(self._waiters)

    @property
    def episode_count(self) -> int:
        """Number of renewal episodes started so far."""
        return self._episode_count

    async def renew(self) -> str:
        """
        Returns a fresh access token, renewing it if needed.

        Joins the running episode if there is one, otherwise starts a new
        one. There is no suspension point between checking the flag and
        enqueueing, so two callers can never both start an episode.

        Returns:
            The renewed access token

        Raises:
            AuthExpiredError: If the renewal failed. Credentials are cleared.
        """
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self._waiters.append(waiter)

        if self._renewing:
            logger.debug(f"Token renewal already in progress, waiting ({len(self._waiters)} waiters)")
        else:
            self._renewing = True
            self._episode_count += 1
            logger.info("Access token expired, starting token renewal...")
            self._episode = loop.create_task(self._run_episode())

        return await waiter

    async def _run_episode(self) -> None:
        """Performs the single renewal round-trip and settles all waiters."""
        token: Optional[str] = None
        error: Optional[AuthExpiredError] = None

        try:
            new_token = await asyncio.wait_for(self._request_new_token(), timeout=self.timeout)
            if self.credential_store.replace_access_token(new_token):
                token = new_token
                logger.info(f"Access token renewed: {mask_token(token)}")
            else:
                logger.warning("Credentials were cleared during token renewal, discarding the new token")
                error = AuthExpiredError()
        except asyncio.TimeoutError as e:
            logger.warning(f"Token renewal timed out after {self.timeout}s")
            error = self._fail(e)
        except Exception as e:
            logger.warning(f"Token renewal failed: {type(e).__name__}: {e}")
            error = self._fail(e)
        finally:
            if token is None and error is None:
                # Episode task was cancelled (event loop shutting down)
                error = AuthExpiredError("Token renewal was cancelled. Please log in again.")
            self._settle(token, error)

    def _fail(self, cause: BaseException) -> AuthExpiredError:
        self.credential_store.clear()
        error = AuthExpiredError()
        error.__cause__ = cause
        return error

    def _settle(self, token: Optional[str], error: Optional[AuthExpiredError]) -> None:
        """
        Releases every waiter of the episode exactly once.

        The flag and the waiter list are reset before anyone is woken up, so
        a caller arriving afterwards starts a new episode.
        """
        waiters, self._waiters = self._waiters, []
        self._renewing = False
        self._episode = None

        for waiter in waiters:
            # Caller gave up (timeout/cancellation), nothing to deliver
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(token)

        logger.debug(f"Token renewal settled for {len(waiters)} waiter(s), success={error is None}")

    async def _request_new_token(self) -> str:
        """
        Exchanges the refresh token for a new access token.

        Endpoint: {base}/auth/refresh-token
        Method: POST
        Body: {"refreshToken": "..."}
        Expected response: {"success": true, "data": {"token": "..."}}

        Raises:
            ValueError: If refresh token is not set or response is malformed
            httpx.HTTPStatusError: On non-2xx response
            httpx.RequestError: On transport failure
        """
        refresh_token = self.credential_store.refresh_token
        if not refresh_token:
            raise ValueError("No refresh token available")

        payload = {"refreshToken": refresh_token}
        headers = {"Content-Type": "application/json"}

        if self._client_provider is not None:
            client = await self._client_provider()
            response = await client.post(self.refresh_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.refresh_url, json=payload, headers=headers)

        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise ValueError("Invalid refresh response: body is not JSON") from e

        new_token = None
        if isinstance(data, dict) and data.get("success") is True:
            inner = data.get("data")
            if isinstance(inner, dict):
                new_token = inner.get("token")

        if not isinstance(new_token, str) or not new_token:
            raise ValueError("Invalid refresh response: no token in payload")

        return new_token

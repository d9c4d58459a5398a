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
Endpoint groups of the marketplace API.

Thin wrappers mapping application actions to MercatoHttpClient.call().
They hold no business logic. The only state they touch is the credential
pair on login, registration and logout.
"""

from typing import Any, Iterable, Mapping, Optional, Tuple

import httpx
from loguru import logger

from mercato.config import API_BASE_URL, CREDENTIALS_FILE, ENCRYPTION_KEY
from mercato.credentials import CredentialStore
from mercato.exceptions import (
    AuthExpiredError,
    HttpError,
    MercatoError,
    NetworkError,
    RequestTimeoutError,
)
from mercato.http_client import MercatoHttpClient
from mercato.storage import FileTokenStorage, TokenStorage


def describe_error(error: BaseException) -> str:
    """
    Turns a client error into a sentence for the end user.

    Branches on the error type, never on message text. Navigation (e.g. to
    a login screen) stays with the caller.
    """
    if isinstance(error, AuthExpiredError):
        return "Please log in to continue"
    if isinstance(error, RequestTimeoutError):
        return "The server took too long to respond. Please try again"
    if isinstance(error, NetworkError):
        return "Network error. Please check your internet connection"
    if isinstance(error, HttpError):
        return error.message
    if isinstance(error, MercatoError):
        return error.message
    return str(error) or "An unexpected error occurred"


class AuthAPI:
    """Login, registration and logout."""

    def __init__(self, http: MercatoHttpClient):
        self.http = http

    def _store_tokens(self, response: Any) -> None:
        if not isinstance(response, dict) or not response.get("success"):
            return
        data = response.get("data")
        if not isinstance(data, dict) or not data.get("token"):
            return
        self.http.credential_store.set(data["token"], data.get("refreshToken"))
        logger.info("Logged in, credentials stored")

    async def login(self, credentials: Mapping[str, Any]) -> Any:
        response = await self.http.post("/auth/login", json=dict(credentials))
        self._store_tokens(response)
        return response

    async def register(self, user_data: Mapping[str, Any]) -> Any:
        response = await self.http.post("/auth/register", json=dict(user_data))
        self._store_tokens(response)
        return response

    async def logout(self) -> None:
        """Notifies the backend, then clears credentials even if that failed."""
        try:
            await self.http.post("/auth/logout")
        finally:
            self.http.credential_store.clear()
            logger.info("Logged out, credentials cleared")

    def is_authenticated(self) -> bool:
        return self.http.credential_store.get() is not None

    def get_auth_token(self) -> Optional[str]:
        return self.http.credential_store.access_token


class VendorAPI:
    """Vendor back-office endpoints."""

    def __init__(self, http: MercatoHttpClient):
        self.http = http

    async def get_profile(self) -> Any:
        return await self.http.get("/vendor/profile")

    async def update_profile(self, profile_data: Mapping[str, Any]) -> Any:
        return await self.http.put("/vendor/profile", json=dict(profile_data))

    async def get_products(self, filters: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.http.get("/vendor/products", params=filters)

    async def create_product(self, product_data: Mapping[str, Any]) -> Any:
        return await self.http.post("/vendor/products", json=dict(product_data))

    async def update_product(self, product_id: str, product_data: Mapping[str, Any]) -> Any:
        return await self.http.put(f"/vendor/products/{product_id}", json=dict(product_data))

    async def delete_product(self, product_id: str) -> Any:
        return await self.http.delete(f"/vendor/products/{product_id}")

    async def get_orders(self, filters: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.http.get("/vendor/orders", params=filters)

    async def get_order(self, order_id: str) -> Any:
        return await self.http.get(f"/vendor/orders/{order_id}")

    async def update_order_status(self, order_id: str, status_data: Mapping[str, Any]) -> Any:
        return await self.http.put(f"/vendor/orders/{order_id}/status", json=dict(status_data))

    async def upload_product_images(self, files: Iterable[Tuple[str, bytes, str]]) -> Any:
        """
        Uploads product images as multipart form data.

        Args:
            files: (filename, content, content_type) tuples
        """
        multipart = [("productImages", (name, body, content_type)) for name, body, content_type in files]
        return await self.http.post("/vendor/upload/images", files=multipart)


class NotificationAPI:
    def __init__(self, http: MercatoHttpClient):
        self.http = http

    async def list(self, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.http.get("/notifications", params=params)

    async def unread_count(self) -> Any:
        return await self.http.get("/notifications/unread-count")

    async def mark_read(self, notification_id: str) -> Any:
        return await self.http.put(f"/notifications/{notification_id}/read")

    async def mark_all_read(self) -> Any:
        return await self.http.put("/notifications/mark-all-read")

    async def delete(self, notification_id: str) -> Any:
        return await self.http.delete(f"/notifications/{notification_id}")


class MercatoAPI:
    """
    Facade grouping all endpoint groups over one dispatcher.

    Example:
        >>> async with MercatoAPI.from_config() as api:
        ...     await api.auth.login({"email": "a@b.c", "password": "secret"})
        ...     orders = await api.vendor.get_orders({"status": "pending"})
    """

    def __init__(self, http: MercatoHttpClient):
        self.http = http
        self.auth = AuthAPI(http)
        self.vendor = VendorAPI(http)
        self.notifications = NotificationAPI(http)

    @classmethod
    def from_config(
        cls,
        storage: Optional[TokenStorage] = None,
        base_url: str = API_BASE_URL,
        shared_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "MercatoAPI":
        """
        Builds the API over the configured credentials file.

        Args:
            storage: Token storage (default: CREDENTIALS_FILE, encrypted with ENCRYPTION_KEY if set)
            base_url: API base URL
            shared_client: Optional shared httpx.AsyncClient
            transport: Optional transport for the owned client
        """
        if storage is None:
            storage = FileTokenStorage(CREDENTIALS_FILE, encryption_key=ENCRYPTION_KEY or None)
        store = CredentialStore(storage)
        http = MercatoHttpClient(store, base_url=base_url, shared_client=shared_client, transport=transport)
        return cls(http)

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "MercatoAPI":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

# -*- coding: utf-8 -*-

"""
Common fixtures and utilities for testing Mercato Client.

Provides test isolation from external services and global state.
All tests MUST be completely isolated from the network: backends are
simulated with httpx.MockTransport or an in-process ASGI app.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest

from mercato.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY
from mercato.credentials import CredentialStore
from mercato.http_client import MercatoHttpClient
from mercato.storage import MemoryTokenStorage


TEST_BASE_URL = "https://api.test/api"
OLD_ACCESS_TOKEN = "old_access_token_123456"
NEW_ACCESS_TOKEN = "new_access_token_abcdef"
REFRESH_TOKEN = "refresh_token_xyz789"


# =============================================================================
# Credential Fixtures
# =============================================================================

@pytest.fixture
def memory_storage():
    """Empty in-memory token storage."""
    return MemoryTokenStorage()


@pytest.fixture
def logged_in_store():
    """
    Credential store holding an (about to be rejected) access token
    and a valid refresh token.
    """
    print("Creating logged-in credential store...")
    storage = MemoryTokenStorage({ACCESS_TOKEN_KEY: OLD_ACCESS_TOKEN, REFRESH_TOKEN_KEY: REFRESH_TOKEN})
    return CredentialStore(storage)


@pytest.fixture
def empty_store():
    """Credential store with nobody logged in."""
    return CredentialStore(MemoryTokenStorage())


# =============================================================================
# Backend Fixtures
# =============================================================================

def json_response(status_code: int = 200, body: Any = None) -> httpx.Response:
    """Builds a JSON httpx.Response."""
    return httpx.Response(status_code, json=body if body is not None else {})


def token_expired_response() -> httpx.Response:
    return json_response(401, {"success": False, "errorCode": "TOKEN_EXPIRED", "message": "Token expired"})


def refresh_success_response(token: str = NEW_ACCESS_TOKEN) -> httpx.Response:
    return json_response(200, {"success": True, "data": {"token": token}})


class FakeMarketplace:
    """
    Scriptable stand-in for the marketplace backend.

    Routes requests to handlers registered per (method, path) and records
    every request it receives. Handlers may be sync or async.

    Example:
        >>> backend = FakeMarketplace()
        >>> backend.route("GET", "/vendor/products", lambda request: json_response(200, {"ok": True}))
    """

    def __init__(self, base_path: str = "/api"):
        self.base_path = base_path
        self.routes: Dict[tuple, Callable] = {}
        self.requests: List[httpx.Request] = []

    def route(self, method: str, path: str, handler: Callable) -> None:
        self.routes[(method.upper(), self.base_path + path)] = handler

    def requests_to(self, path: str, method: Optional[str] = None) -> List[httpx.Request]:
        full_path = self.base_path + path
        return [
            r for r in self.requests
            if r.url.path == full_path and (method is None or r.method == method.upper())
        ]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return json_response(404, {"success": False, "message": "Route not found"})
        result = handler(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def backend():
    """Fresh fake marketplace backend."""
    print("Creating fake marketplace backend...")
    return FakeMarketplace()


@pytest.fixture
def make_http_client(backend):
    """
    Factory for MercatoHttpClient instances wired to the fake backend.

    Use as an async context manager so the owned httpx client is closed.
    """
    def _create(store: Optional[CredentialStore] = None, **kwargs) -> MercatoHttpClient:
        print("Creating MercatoHttpClient over MockTransport...")
        return MercatoHttpClient(
            store if store is not None else CredentialStore(MemoryTokenStorage()),
            base_url=TEST_BASE_URL,
            transport=backend.transport,
            **kwargs,
        )

    return _create


# =============================================================================
# Global Network Blocking
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def block_all_network_calls():
    """
    CRITICAL FIXTURE: Globally blocks ALL real network calls.

    Mock and ASGI transports keep working. Anything that reaches the real
    connection pool fails loudly.
    """

    async def network_call_error(*args, **kwargs):
        raise RuntimeError(
            "🚨 CRITICAL ERROR: Real network request attempt detected! "
            "Test did not provide a mock transport. "
            "All HTTP calls must be explicitly mocked."
        )

    patcher = patch.object(httpx.AsyncHTTPTransport, "handle_async_request", new=network_call_error)
    patcher.start()
    print("🛡️ GLOBAL NETWORK BLOCKING ACTIVATED")

    yield

    patcher.stop()

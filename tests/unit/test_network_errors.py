# -*- coding: utf-8 -*-

"""
Unit tests for network error classification system.
Tests classify_network_error(), format_error_for_user(), and get_short_error_message().
"""

import asyncio
import socket
import pytest

import httpx

from mercato.network_errors import (
    ErrorCategory,
    NetworkErrorInfo,
    classify_network_error,
    format_error_for_user,
    get_short_error_message
)


class TestClassifyNetworkErrorDNS:
    """Tests for DNS resolution error classification."""

    def test_dns_error_with_socket_gaierror(self):
        """
        What it does: Verifies DNS errors are classified by the underlying cause.
        Purpose: Ensure socket.gaierror is detected as DNS_RESOLUTION.
        """
        print("Setup: Creating ConnectError with socket.gaierror (errno -2)...")
        dns_error = socket.gaierror(-2, "Name or service not known")
        connect_error = httpx.ConnectError("All connection attempts failed")
        connect_error.__cause__ = dns_error

        print("Action: Classifying error...")
        error_info = classify_network_error(connect_error)

        print(f"Comparing category: Expected {ErrorCategory.DNS_RESOLUTION}, Got {error_info.category}")
        assert error_info.category == ErrorCategory.DNS_RESOLUTION
        assert "DNS resolution failed" in error_info.user_message
        assert "-2" in error_info.technical_details
        assert error_info.is_timeout is False

    def test_dns_error_mentions_api_url_setting(self):
        """
        What it does: Verifies DNS troubleshooting points at the configured URL.
        Purpose: Ensure a misconfigured MERCATO_API_URL is easy to spot.
        """
        connect_error = httpx.ConnectError("Connection failed")
        connect_error.__cause__ = socket.gaierror(11001, "getaddrinfo failed")

        error_info = classify_network_error(connect_error)

        assert any("MERCATO_API_URL" in step for step in error_info.troubleshooting_steps)


class TestClassifyNetworkErrorConnection:
    """Tests for connection-level error classification."""

    @pytest.mark.parametrize("message, expected", [
        ("[Errno 111] Connection refused", ErrorCategory.CONNECTION_REFUSED),
        ("ECONNREFUSED", ErrorCategory.CONNECTION_REFUSED),
        ("Connection reset by peer", ErrorCategory.CONNECTION_RESET),
        ("ECONNRESET", ErrorCategory.CONNECTION_RESET),
        ("Network is unreachable", ErrorCategory.NETWORK_UNREACHABLE),
        ("No route to host", ErrorCategory.NETWORK_UNREACHABLE),
        ("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed", ErrorCategory.SSL_ERROR),
        ("TLS handshake failed", ErrorCategory.SSL_ERROR),
    ])
    def test_connect_error_subcategories(self, message, expected):
        """
        What it does: Verifies ConnectError messages map to subcategories.
        Purpose: Ensure users get specific guidance instead of a generic failure.
        """
        print(f"Setup: ConnectError({message!r})...")
        error_info = classify_network_error(httpx.ConnectError(message))

        print(f"Comparing category: Expected {expected}, Got {error_info.category}")
        assert error_info.category == expected
        assert error_info.troubleshooting_steps

    def test_generic_connect_error_classified_as_unknown(self):
        error_info = classify_network_error(httpx.ConnectError("Something went wrong"))

        assert error_info.category == ErrorCategory.UNKNOWN
        assert "Connection failed" in error_info.user_message


class TestClassifyNetworkErrorTimeout:
    """Tests for timeout classification."""

    def test_connect_timeout_error(self):
        """
        What it does: Verifies ConnectTimeout classification.
        Purpose: Ensure connect timeouts are reported as TIMEOUT_CONNECT.
        """
        error_info = classify_network_error(httpx.ConnectTimeout("Connection timed out"))

        assert error_info.category == ErrorCategory.TIMEOUT_CONNECT
        assert error_info.is_timeout is True

    def test_read_timeout_error(self):
        error_info = classify_network_error(httpx.ReadTimeout("Read timed out"))

        assert error_info.category == ErrorCategory.TIMEOUT_READ
        assert error_info.is_timeout is True

    def test_generic_timeout_error_treated_as_read(self):
        error_info = classify_network_error(httpx.TimeoutException("Timed out"))

        assert error_info.category == ErrorCategory.TIMEOUT_READ

    def test_deadline_timeout(self):
        """
        What it does: Verifies asyncio.TimeoutError from the per-call deadline.
        Purpose: Ensure an expired call deadline is its own category.
        """
        print("Action: Classifying asyncio.TimeoutError...")
        error_info = classify_network_error(asyncio.TimeoutError())

        print(f"Result: {error_info}")
        assert error_info.category == ErrorCategory.TIMEOUT_DEADLINE
        assert error_info.is_timeout is True
        assert "TimeoutError" in error_info.technical_details


class TestClassifyNetworkErrorOther:
    """Tests for proxy, redirect and unknown errors."""

    def test_proxy_error_detection(self):
        error_info = classify_network_error(httpx.ProxyError("Proxy connection failed"))

        assert error_info.category == ErrorCategory.PROXY_ERROR
        assert any("proxy" in step.lower() for step in error_info.troubleshooting_steps)

    def test_too_many_redirects_error(self):
        """
        What it does: Verifies redirect loops are detected.
        Purpose: Ensure a misconfigured base URL is reported clearly.
        """
        error_info = classify_network_error(httpx.TooManyRedirects("Exceeded maximum allowed redirects"))

        assert error_info.category == ErrorCategory.TOO_MANY_REDIRECTS
        assert "redirect" in error_info.user_message.lower()

    def test_generic_request_error_classified_as_unknown(self):
        error_info = classify_network_error(httpx.RequestError("Unknown failure"))

        assert error_info.category == ErrorCategory.UNKNOWN
        assert error_info.user_message == "Network error. Please check your internet connection."

    def test_non_httpx_error_classified_as_unknown(self):
        error_info = classify_network_error(ValueError("Not a network error"))

        assert error_info.category == ErrorCategory.UNKNOWN
        assert "ValueError" in error_info.technical_details


class TestFormatErrorForUser:
    """Tests for format_error_for_user() function."""

    def _error_info(self):
        return NetworkErrorInfo(
            category=ErrorCategory.CONNECTION_REFUSED,
            user_message="Connection refused",
            troubleshooting_steps=["Step 1", "Step 2"],
            technical_details="ConnectError: refused",
        )

    def test_format_includes_troubleshooting(self):
        """
        What it does: Verifies troubleshooting steps are numbered into the message.
        Purpose: Ensure the CLI can print actionable guidance.
        """
        print("Action: Formatting with troubleshooting...")
        formatted = format_error_for_user(self._error_info())

        print(f"Formatted: {formatted}")
        assert formatted["error"]["type"] == "connectivity_error"
        assert formatted["error"]["category"] == "connection_refused"
        assert "1. Step 1" in formatted["error"]["message"]
        assert "2. Step 2" in formatted["error"]["message"]
        assert formatted["error"]["technical_details"] == "ConnectError: refused"

    def test_format_without_troubleshooting(self):
        formatted = format_error_for_user(self._error_info(), include_troubleshooting=False)

        assert formatted["error"]["message"] == "Connection refused"


class TestGetShortErrorMessage:
    """Tests for get_short_error_message() function."""

    def test_short_message_is_user_message(self):
        error_info = classify_network_error(httpx.ConnectError("Connection refused"))

        message = get_short_error_message(error_info)

        assert message == error_info.user_message
        assert "\n" not in message

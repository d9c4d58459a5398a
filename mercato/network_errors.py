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
Network error classification and user-friendly message formatting.

Transport failures never carry an HTTP status, so the client classifies them
here into categories with a plain-language message and troubleshooting steps.

Architecture:
- ErrorCategory: Enum of all possible network error types
- NetworkErrorInfo: Structured information about an error
- classify_network_error(): Analyzes exceptions and returns NetworkErrorInfo
- format_error_for_user(): Formats errors as a JSON-friendly dict
"""

import asyncio
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

import httpx


class ErrorCategory(str, Enum):
    """
    Categories of network errors.

    Each category represents a distinct type of transport failure
    with specific troubleshooting steps.
    """
    DNS_RESOLUTION = "dns_resolution"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT_CONNECT = "timeout_connect"
    TIMEOUT_READ = "timeout_read"
    TIMEOUT_DEADLINE = "timeout_deadline"
    SSL_ERROR = "ssl_error"
    PROXY_ERROR = "proxy_error"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    UNKNOWN = "unknown"


@dataclass
class NetworkErrorInfo:
    """
    Structured information about a network error.

    Attributes:
        category: Error category for classification
        user_message: Clear, non-technical message for end users
        troubleshooting_steps: List of actionable steps to resolve the issue
        technical_details: Technical error details for logging and debugging
        is_timeout: Whether the failure is a timeout rather than a transport error
    """
    category: ErrorCategory
    user_message: str
    troubleshooting_steps: List[str]
    technical_details: str
    is_timeout: bool = False


def classify_network_error(error: BaseException) -> NetworkErrorInfo:
    """
    Classifies a network error and returns structured information.

    Analyzes the exception type, error message, and underlying cause
    to determine the specific type of failure.

    Args:
        error: The exception that occurred (httpx.RequestError or asyncio.TimeoutError)

    Returns:
        NetworkErrorInfo with classification and user-friendly details

    Example:
        >>> try:
        ...     response = await client.get("https://example.com")
        ... except httpx.RequestError as e:
        ...     error_info = classify_network_error(e)
        ...     logger.error(f"[{error_info.category}] {error_info.user_message}")
    """
    technical_details = f"{type(error).__name__}: {error}"

    # Per-call deadline expired (asyncio.wait_for)
    if isinstance(error, asyncio.TimeoutError):
        return NetworkErrorInfo(
            category=ErrorCategory.TIMEOUT_DEADLINE,
            user_message="Request timeout - the server did not answer in time.",
            troubleshooting_steps=[
                "Check your internet connection",
                "The server may be waking up from a cold start, try again in a few moments",
            ],
            technical_details=technical_details,
            is_timeout=True,
        )

    if isinstance(error, httpx.ConnectError):
        return _classify_connect_error(error, technical_details)

    if isinstance(error, httpx.TimeoutException):
        return _classify_timeout_error(error, technical_details)

    if isinstance(error, httpx.TooManyRedirects):
        return NetworkErrorInfo(
            category=ErrorCategory.TOO_MANY_REDIRECTS,
            user_message="Too many redirects - the server is redirecting in a loop.",
            troubleshooting_steps=[
                "This is likely a server-side configuration issue",
                "Check that the API base URL is correct",
            ],
            technical_details=technical_details,
        )

    if isinstance(error, httpx.ProxyError):
        return NetworkErrorInfo(
            category=ErrorCategory.PROXY_ERROR,
            user_message="Proxy connection failed - cannot connect through the configured proxy.",
            troubleshooting_steps=[
                "Check proxy configuration (HTTP_PROXY, HTTPS_PROXY environment variables)",
                "Verify proxy server is accessible",
                "Try disabling proxy temporarily",
            ],
            technical_details=technical_details,
        )

    return NetworkErrorInfo(
        category=ErrorCategory.UNKNOWN,
        user_message="Network error. Please check your internet connection.",
        troubleshooting_steps=[
            "Check your internet connection",
            "Verify firewall/antivirus settings",
            "Try again in a few moments",
        ],
        technical_details=technical_details,
    )


def _classify_connect_error(error: httpx.ConnectError, technical_details: str) -> NetworkErrorInfo:
    """
    Classifies httpx.ConnectError into specific subcategories.

    Args:
        error: The ConnectError exception
        technical_details: Technical error string for logging

    Returns:
        NetworkErrorInfo with specific classification
    """
    error_str = str(error)
    cause = error.__cause__

    if cause and isinstance(cause, socket.gaierror):
        errno = getattr(cause, "errno", None)
        return NetworkErrorInfo(
            category=ErrorCategory.DNS_RESOLUTION,
            user_message="DNS resolution failed - cannot resolve the marketplace server address.",
            troubleshooting_steps=[
                "Check your internet connection",
                "Verify MERCATO_API_URL points to an existing host",
                "Temporarily disable VPN if you're using one",
            ],
            technical_details=f"{technical_details} (errno: {errno})",
        )

    if "Connection refused" in error_str or "ECONNREFUSED" in error_str:
        return NetworkErrorInfo(
            category=ErrorCategory.CONNECTION_REFUSED,
            user_message="Connection refused - the server is not accepting connections.",
            troubleshooting_steps=[
                "The backend may be down or still starting",
                "Verify the port in MERCATO_API_URL",
                "Try again in a few moments",
            ],
            technical_details=technical_details,
        )

    if "Connection reset" in error_str or "ECONNRESET" in error_str:
        return NetworkErrorInfo(
            category=ErrorCategory.CONNECTION_RESET,
            user_message="Connection reset - the server closed the connection unexpectedly.",
            troubleshooting_steps=[
                "This is usually a temporary server issue",
                "Try again in a few moments",
            ],
            technical_details=technical_details,
        )

    if "Network is unreachable" in error_str or "No route to host" in error_str or "ENETUNREACH" in error_str:
        return NetworkErrorInfo(
            category=ErrorCategory.NETWORK_UNREACHABLE,
            user_message="Network unreachable - cannot reach the server's network.",
            troubleshooting_steps=[
                "Check your internet connection",
                "Verify network adapter is enabled and working",
                "Try disabling VPN temporarily",
            ],
            technical_details=technical_details,
        )

    if "SSL" in error_str or "TLS" in error_str or "certificate" in error_str.lower():
        return NetworkErrorInfo(
            category=ErrorCategory.SSL_ERROR,
            user_message="SSL/TLS error - secure connection could not be established.",
            troubleshooting_steps=[
                "Check system date and time (incorrect time causes SSL errors)",
                "Verify the server's SSL certificate is valid",
            ],
            technical_details=technical_details,
        )

    return NetworkErrorInfo(
        category=ErrorCategory.UNKNOWN,
        user_message="Connection failed - unable to establish connection to the server.",
        troubleshooting_steps=[
            "Check your internet connection",
            "Verify firewall/antivirus settings",
        ],
        technical_details=technical_details,
    )


def _classify_timeout_error(error: httpx.TimeoutException, technical_details: str) -> NetworkErrorInfo:
    """
    Classifies httpx.TimeoutException into specific subcategories.

    Args:
        error: The TimeoutException
        technical_details: Technical error string for logging

    Returns:
        NetworkErrorInfo with specific classification
    """
    if isinstance(error, httpx.ConnectTimeout):
        return NetworkErrorInfo(
            category=ErrorCategory.TIMEOUT_CONNECT,
            user_message="Connection timeout - server did not respond to connection attempt.",
            troubleshooting_steps=[
                "Check your internet connection speed",
                "The server may be overloaded or slow to respond",
            ],
            technical_details=technical_details,
            is_timeout=True,
        )

    return NetworkErrorInfo(
        category=ErrorCategory.TIMEOUT_READ,
        user_message="Read timeout - server stopped responding during data transfer.",
        troubleshooting_steps=[
            "The server may be processing a slow request",
            "Try again in a few moments",
        ],
        technical_details=technical_details,
        is_timeout=True,
    )


def format_error_for_user(
    error_info: NetworkErrorInfo,
    include_troubleshooting: bool = True
) -> Dict[str, Any]:
    """
    Formats NetworkErrorInfo as a JSON-friendly dictionary.

    Args:
        error_info: The classified error information
        include_troubleshooting: Whether to include troubleshooting steps

    Returns:
        Dictionary with category, message and technical details
    """
    message = error_info.user_message

    if include_troubleshooting and error_info.troubleshooting_steps:
        message += "\n\nTroubleshooting steps:\n"
        for i, step in enumerate(error_info.troubleshooting_steps, 1):
            message += f"{i}. {step}\n"

    return {
        "error": {
            "type": "connectivity_error",
            "category": error_info.category.value,
            "message": message.strip(),
            "technical_details": error_info.technical_details,
        }
    }


def get_short_error_message(error_info: NetworkErrorInfo) -> str:
    """
    Returns a short, single-line error message for logging.

    Example:
        >>> error_info = classify_network_error(exception)
        >>> logger.warning(get_short_error_message(error_info))
    """
    return error_info.user_message

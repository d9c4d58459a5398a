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
Exceptions raised by the Mercato API client.

Every failure a calling feature can observe is one of these classes. Each
carries a stable machine-readable `code`, so callers can branch on type or
code instead of matching message text:

- RequestTimeoutError (TIMEOUT): no response within the per-call deadline
- NetworkError (NETWORK_ERROR): transport failure, no response at all
- HttpError (HTTP_ERROR): well-formed non-2xx response
- AuthExpiredError (AUTH_EXPIRED): session is over, user must log in again
"""

from typing import Any, Dict, Optional

from mercato.network_errors import NetworkErrorInfo


# Fallback messages when the server does not supply one
STATUS_MESSAGES: Dict[int, str] = {
    400: "Bad request. Please check your input",
    403: "You do not have permission to perform this action",
    404: "The requested resource was not found",
    500: "Server error. Please try again later",
    501: "This feature is not available yet",
}

SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."


def default_status_message(status_code: int) -> str:
    """Returns the fixed human-readable phrase for a status code."""
    return STATUS_MESSAGES.get(status_code, f"HTTP error! status: {status_code}")


class MercatoError(Exception):
    """Base class for all client errors."""

    code: str = "MERCATO_ERROR"

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logs and CLI output."""
        return {"code": self.code, "message": self.message, "endpoint": self.endpoint}


class RequestTimeoutError(MercatoError):
    """
    The call was aborted because its deadline expired.

    Retryable by the caller. The client never retries it on its own.
    """

    code = "TIMEOUT"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        info: Optional[NetworkErrorInfo] = None,
    ):
        super().__init__(message, endpoint)
        self.timeout = timeout
        self.info = info

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["timeout"] = self.timeout
        if self.info is not None:
            data["category"] = self.info.category.value
        return data


class NetworkError(MercatoError):
    """Transport-level failure (connection refused, DNS, reset, ...)."""

    code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        info: Optional[NetworkErrorInfo] = None,
    ):
        super().__init__(message, endpoint)
        self.info = info

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.info is not None:
            data["category"] = self.info.category.value
        return data


class HttpError(MercatoError):
    """
    Server answered with a non-2xx status (other than a handled 401).

    Attributes:
        status_code: HTTP status of the response
        payload: Parsed JSON error body, if the server sent one
    """

    code = "HTTP_ERROR"

    def __init__(
        self,
        status_code: int,
        message: Optional[str] = None,
        endpoint: Optional[str] = None,
        payload: Optional[Any] = None,
    ):
        super().__init__(message or default_status_message(status_code), endpoint)
        self.status_code = status_code
        self.payload = payload

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class AuthExpiredError(MercatoError):
    """
    Authentication is terminally expired for the current session.

    Credentials have already been cleared when this is raised. The caller
    decides how to prompt for a new login.
    """

    code = "AUTH_EXPIRED"

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE, endpoint: Optional[str] = None):
        super().__init__(message, endpoint)

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
Mercato Client Configuration.

Centralized storage for all settings and constants of the marketplace API client.
Loads environment variables and provides typed access to them.
"""

import os
import re
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()


def _get_raw_env_value(var_name: str, env_file: str = ".env") -> Optional[str]:
    """
    Read variable value from .env file without processing escape sequences.

    Windows paths (e.g., C:\\Users\\me\\tokens.json) may otherwise be
    interpreted as escape sequences (\\U, \\t, etc.).

    Args:
        var_name: Environment variable name
        env_file: Path to .env file (default ".env")

    Returns:
        Raw variable value or None if not found
    """
    env_path = Path(env_file)
    if not env_path.exists():
        return None

    try:
        content = env_path.read_text(encoding="utf-8")

        # VAR="value" or VAR='value' or VAR=value
        pattern = rf'^{re.escape(var_name)}=(["\']?)(.+?)\1\s*$'

        for line in content.splitlines():
            line = line.strip()
            if line.startswith("#") or not line:
                continue

            match = re.match(pattern, line)
            if match:
                return match.group(2)
    except OSError:
        return None

    return None


def _get_float(var_name: str, default: float) -> float:
    """Reads a float setting, falling back to the default on garbage input."""
    raw = os.getenv(var_name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {var_name}={raw!r}, using default {default}")
        return default


# ==================================================================================================
# Backend Settings
# ==================================================================================================

# Base URL of the marketplace REST API (everything before /auth, /vendor, ...)
# Examples:
#   MERCATO_API_URL=http://localhost:5000/api
#   MERCATO_API_URL=https://afrimercato-backend.onrender.com/api
DEFAULT_API_BASE_URL: str = "http://localhost:5000/api"
API_BASE_URL: str = os.getenv("MERCATO_API_URL", DEFAULT_API_BASE_URL).rstrip("/")

# Endpoint used to exchange a refresh token for a new access token
REFRESH_TOKEN_PATH: str = "/auth/refresh-token"

# ==================================================================================================
# Timeout Settings
# ==================================================================================================

# Deadline for a single API call (seconds), covering connect, send and full response.
# Can be overridden per call.
DEFAULT_TIMEOUT: float = _get_float("REQUEST_TIMEOUT", 10.0)

# Deadline for login/registration (seconds).
# Password hashing and cold starts of the backend make these slower than usual.
AUTH_TIMEOUT: float = _get_float("AUTH_REQUEST_TIMEOUT", 30.0)

# Endpoints that use AUTH_TIMEOUT instead of DEFAULT_TIMEOUT
EXTENDED_TIMEOUT_ENDPOINTS: Tuple[str, ...] = ("/auth/login", "/auth/register")

# Ceiling for the token renewal round-trip (seconds).
# Exceeding it is treated exactly like a failed renewal.
REFRESH_TIMEOUT: float = _get_float("REFRESH_TIMEOUT", 10.0)

# ==================================================================================================
# Token Settings
# ==================================================================================================

# Error codes in a 401 body which mean "the access token itself is the problem".
# Only these trigger a token renewal; any other 401 is terminal.
RENEWABLE_ERROR_CODES: FrozenSet[str] = frozenset({"TOKEN_EXPIRED", "INVALID_TOKEN"})

# Storage keys for the credential pair
ACCESS_TOKEN_KEY: str = "afrimercato_token"
REFRESH_TOKEN_KEY: str = "afrimercato_refresh_token"

# Path to the credentials file used by the CLI.
# Read directly from .env to avoid escape sequence issues on Windows.
DEFAULT_CREDENTIALS_FILE: str = str(Path("~/.mercato/credentials.json"))
_raw_creds_file = _get_raw_env_value("MERCATO_CREDENTIALS_FILE") or os.getenv("MERCATO_CREDENTIALS_FILE", "")
CREDENTIALS_FILE: str = str(Path(_raw_creds_file)) if _raw_creds_file else DEFAULT_CREDENTIALS_FILE

# Optional Fernet key for encrypting tokens at rest.
# Generate one with:
#   python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
ENCRYPTION_KEY: str = os.getenv("ENCRYPTION_KEY", "")

# ==================================================================================================
# HTTP Connection Pool Settings
# ==================================================================================================

# Maximum total connections in the pool
HTTP_MAX_CONNECTIONS: int = int(os.getenv("HTTP_MAX_CONNECTIONS", "100"))

# Maximum keep-alive connections (connections kept open for reuse)
HTTP_MAX_KEEPALIVE_CONNECTIONS: int = int(os.getenv("HTTP_MAX_KEEPALIVE_CONNECTIONS", "20"))

# How long to keep idle connections open for reuse (seconds)
HTTP_KEEPALIVE_EXPIRY: float = _get_float("HTTP_KEEPALIVE_EXPIRY", 30.0)

# ==================================================================================================
# Logging Settings
# ==================================================================================================

# Available levels: TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL
# Set to DEBUG to see every outgoing request
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ==================================================================================================
# Application Info
# ==================================================================================================

APP_VERSION: str = "1.0.0"
APP_TITLE: str = "Mercato Client"
APP_DESCRIPTION: str = "Authenticated client for the Afrimercato marketplace API"


def _warn_timeout_configuration() -> None:
    """
    Warns about timeout settings that would make the client misbehave.

    - Non-positive timeouts abort every request immediately.
    - AUTH_TIMEOUT lower than DEFAULT_TIMEOUT defeats the purpose of the
      extended login/registration deadline.
    """
    for name, value in (
        ("REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        ("AUTH_REQUEST_TIMEOUT", AUTH_TIMEOUT),
        ("REFRESH_TIMEOUT", REFRESH_TIMEOUT),
    ):
        if value <= 0:
            logger.warning(f"{name}={value} is not positive, every request will time out immediately")

    if AUTH_TIMEOUT < DEFAULT_TIMEOUT:
        logger.warning(
            f"AUTH_REQUEST_TIMEOUT ({AUTH_TIMEOUT}s) < REQUEST_TIMEOUT ({DEFAULT_TIMEOUT}s): "
            f"login and registration will be cut off earlier than regular calls"
        )

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
Mercato Client - authenticated client for the marketplace REST API.
"""

from mercato.config import APP_VERSION as __version__
from mercato.credentials import CredentialPair, CredentialStore
from mercato.exceptions import (
    AuthExpiredError,
    HttpError,
    MercatoError,
    NetworkError,
    RequestTimeoutError,
)
from mercato.http_client import Attempt, MercatoHttpClient
from mercato.renewal import RenewalCoordinator

__all__ = [
    "__version__",
    "Attempt",
    "AuthExpiredError",
    "CredentialPair",
    "CredentialStore",
    "HttpError",
    "MercatoError",
    "MercatoHttpClient",
    "NetworkError",
    "RenewalCoordinator",
    "RequestTimeoutError",
]

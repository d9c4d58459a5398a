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
Credential store for the current session.

Holds the access token and refresh token as a single immutable snapshot.
Every mutation replaces the whole snapshot, so a concurrent reader sees
either the previous pair or the new one, never a mix of both.
"""

import threading
from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

from mercato.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY
from mercato.storage import MemoryTokenStorage, TokenStorage


def mask_token(token: Optional[str]) -> str:
    """Shows only the first characters of a token, for logs."""
    if not token:
        return "<none>"
    return f"{token[:8]}..." if len(token) > 8 else "***"


@dataclass(frozen=True)
class CredentialPair:
    """
    Access token plus optional refresh token.

    Attributes:
        access_token: Bearer token attached to authenticated requests
        refresh_token: Token exchanged for a new access token on expiry
    """
    access_token: str
    refresh_token: Optional[str] = None


class CredentialStore:
    """
    Process-wide holder of the credential pair.

    Mutated only by login/registration (set), a successful renewal
    (replace_access_token) and a failed renewal or logout (clear).
    No network logic lives here and no method raises on empty storage.

    Example:
        >>> store = CredentialStore(FileTokenStorage("~/.mercato/credentials.json"))
        >>> store.set("access", "refresh")
        >>> store.get()
        CredentialPair(access_token='access', refresh_token='refresh')
    """

    def __init__(self, storage: Optional[TokenStorage] = None):
        """
        Loads the current pair from storage.

        Args:
            storage: Backing medium. Defaults to process memory.
        """
        self._storage = storage if storage is not None else MemoryTokenStorage()
        self._lock = threading.Lock()
        self._pair: Optional[CredentialPair] = self._load()

    def _load(self) -> Optional[CredentialPair]:
        values = self._storage.read()
        access_token = values.get(ACCESS_TOKEN_KEY)
        if not access_token:
            return None
        logger.debug(f"Credentials loaded from storage: access_token={mask_token(access_token)}")
        return CredentialPair(access_token=access_token, refresh_token=values.get(REFRESH_TOKEN_KEY))

    def _persist(self, pair: Optional[CredentialPair]) -> None:
        if pair is None:
            self._storage.clear()
            return
        values = {ACCESS_TOKEN_KEY: pair.access_token}
        if pair.refresh_token:
            values[REFRESH_TOKEN_KEY] = pair.refresh_token
        self._storage.write(values)

    def get(self) -> Optional[CredentialPair]:
        """Returns the current pair, or None when nobody is logged in."""
        return self._pair

    @property
    def access_token(self) -> Optional[str]:
        pair = self._pair
        return pair.access_token if pair else None

    @property
    def refresh_token(self) -> Optional[str]:
        pair = self._pair
        return pair.refresh_token if pair else None

    def set(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """
        Stores a new pair (login or registration).

        Args:
            access_token: New access token
            refresh_token: New refresh token, if the backend issued one
        """
        pair = CredentialPair(access_token=access_token, refresh_token=refresh_token)
        with self._lock:
            self._persist(pair)
            self._pair = pair
        logger.debug(f"Credentials set: access_token={mask_token(access_token)}, "
                     f"refresh_token={'present' if refresh_token else 'absent'}")

    def replace_access_token(self, access_token: str) -> bool:
        """
        Swaps in a renewed access token, keeping the refresh token.

        Returns:
            False if the store was cleared in the meantime (logout or a
            terminal 401). Nothing is written then, the session stays ended.
        """
        with self._lock:
            current = self._pair
            if current is None:
                return False
            pair = replace(current, access_token=access_token)
            self._persist(pair)
            self._pair = pair
        logger.debug(f"Access token replaced: {mask_token(access_token)}")
        return True

    def clear(self) -> None:
        """Removes both tokens."""
        with self._lock:
            self._storage.clear()
            self._pair = None
        logger.debug("Credentials cleared")

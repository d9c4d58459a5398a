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
Backing storage for the credential pair.

The credential store only needs three operations on its medium: read all
keys, write a set of keys at once, and remove everything. Implementations:

- MemoryTokenStorage: process memory (tests, short-lived sessions)
- FileTokenStorage: JSON file, optionally Fernet-encrypted
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger


class TokenStorage(ABC):
    """Key/value medium holding the access and refresh tokens."""

    @abstractmethod
    def read(self) -> Dict[str, str]:
        """Returns every stored key. Empty storage returns an empty dict."""

    @abstractmethod
    def write(self, values: Dict[str, str]) -> None:
        """Replaces the stored keys with `values` in one step."""

    @abstractmethod
    def clear(self) -> None:
        """Removes every stored key."""


class MemoryTokenStorage(TokenStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)

    def write(self, values: Dict[str, str]) -> None:
        with self._lock:
            self._values = dict(values)

    def clear(self) -> None:
        with self._lock:
            self._values = {}


class FileTokenStorage(TokenStorage):
    """
    Stores tokens in a JSON file.

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so a reader never sees a half-written pair.

    If an encryption key is given, token values are Fernet-encrypted before
    they hit the disk.

    Example:
        >>> storage = FileTokenStorage("~/.mercato/credentials.json")
        >>> storage.write({"afrimercato_token": "eyJ..."})
    """

    def __init__(self, path: str, encryption_key: Optional[str] = None):
        """
        Args:
            path: Path to the JSON file (``~`` is expanded)
            encryption_key: Optional Fernet key for encrypting values at rest
        """
        self.path = Path(path).expanduser()
        self._cipher: Optional[Fernet] = Fernet(encryption_key.encode()) if encryption_key else None
        self._lock = threading.Lock()

    def _encrypt(self, value: str) -> str:
        if self._cipher is None:
            return value
        return self._cipher.encrypt(value.encode()).decode()

    def _decrypt(self, value: str) -> str:
        if self._cipher is None:
            return value
        return self._cipher.decrypt(value.encode()).decode()

    def read(self) -> Dict[str, str]:
        with self._lock:
            if not self.path.exists():
                return {}

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Could not read credentials file {self.path}: {e}")
                return {}

            if not isinstance(data, dict):
                logger.warning(f"Credentials file {self.path} has unexpected format, ignoring it")
                return {}

            try:
                return {key: self._decrypt(value) for key, value in data.items() if isinstance(value, str)}
            except InvalidToken:
                logger.warning(f"Credentials file {self.path} could not be decrypted with the configured key")
                return {}

    def write(self, values: Dict[str, str]) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = {key: self._encrypt(value) for key, value in values.items()}

            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".credentials-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

            logger.debug(f"Credentials saved to {self.path}")

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
                logger.debug(f"Credentials file removed: {self.path}")
            except FileNotFoundError:
                pass

"""Secure token persistence."""

from __future__ import annotations

import base64
import binascii
import json
import os
import tempfile
from pathlib import Path
from threading import Lock, RLock
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import TokenStoreError

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"

STORE_KEY_ENV = "UTILITYKIT_API_STORE_KEY"

_NONCE_SIZE = 12
_KEY_SIZE = 32
_FORMAT_VERSION = 1


class SecureStore(Protocol):
    """Key-value store holding opaque secrets."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, suitable for tests and short-lived scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


def load_store_key(raw: bytes | str | None = None) -> bytes:
    """Return a 32-byte AES key from raw bytes, base64 text or the environment."""

    if raw is None:
        raw = os.getenv(STORE_KEY_ENV)
    if not raw:
        raise TokenStoreError(f"{STORE_KEY_ENV} is not set; an encryption key is required.")
    if isinstance(raw, bytes) and len(raw) == _KEY_SIZE:
        return raw
    try:
        key = base64.b64decode(raw.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TokenStoreError("Token store key must be valid base64") from exc
    if len(key) != _KEY_SIZE:
        raise TokenStoreError("Token store key must decode to exactly 32 bytes")
    return key


def generate_store_key() -> str:
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


class EncryptedFileStore:
    """JSON file of individually AES-GCM encrypted entries.

    The entry name is bound as associated data, so a ciphertext copied under
    another key fails to decrypt. The file is replaced atomically and only
    readable by its owner.
    """

    def __init__(self, path: Path | str, key: bytes | str | None = None) -> None:
        self.path = Path(path).expanduser()
        self._aead = AESGCM(load_store_key(key))
        self._lock = RLock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._read().get(key)
        if entry is None:
            return None
        return self._decrypt(key, entry)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            entries = self._read()
            entries[key] = self._encrypt(key, value)
            self._write(entries)

    def delete(self, key: str) -> None:
        with self._lock:
            entries = self._read()
            if entries.pop(key, None) is not None:
                self._write(entries)

    def _encrypt(self, key: str, value: str) -> str:
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aead.encrypt(nonce, value.encode("utf-8"), key.encode("utf-8"))
        return base64.b64encode(nonce + ct).decode("ascii")

    def _decrypt(self, key: str, entry: str) -> str:
        try:
            blob = base64.b64decode(entry, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TokenStoreError(f"Corrupted entry '{key}' (base64)") from exc
        if len(blob) <= _NONCE_SIZE:
            raise TokenStoreError(f"Corrupted entry '{key}' (length)")
        try:
            plaintext = self._aead.decrypt(blob[:_NONCE_SIZE], blob[_NONCE_SIZE:], key.encode("utf-8"))
        except InvalidTag as exc:
            raise TokenStoreError(f"Entry '{key}' failed authentication") from exc
        return plaintext.decode("utf-8")

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise TokenStoreError(f"Unable to read token store {self.path}") from exc
        if not isinstance(document, dict) or document.get("version") != _FORMAT_VERSION:
            raise TokenStoreError(f"Unsupported token store format in {self.path}")
        entries = document.get("entries") or {}
        return {str(k): str(v) for k, v in entries.items()}

    def _write(self, entries: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"version": _FORMAT_VERSION, "entries": entries}, indent=2)
        fd, tmp_name = tempfile.mkstemp(prefix=".tokens-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise TokenStoreError(f"Unable to write token store {self.path}") from exc


class TokenStorage:
    """Access and refresh token slots on top of a `SecureStore`."""

    def __init__(self, store: SecureStore | None = None) -> None:
        self._store: SecureStore = store if store is not None else MemoryStore()
        self._lock = Lock()

    @property
    def access_token(self) -> str | None:
        return self._store.get(ACCESS_TOKEN_KEY)

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        with self._lock:
            self._assign(ACCESS_TOKEN_KEY, value)

    @property
    def refresh_token(self) -> str | None:
        return self._store.get(REFRESH_TOKEN_KEY)

    @refresh_token.setter
    def refresh_token(self, value: str | None) -> None:
        with self._lock:
            self._assign(REFRESH_TOKEN_KEY, value)

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        """Replace both tokens as one unit."""
        with self._lock:
            self._assign(ACCESS_TOKEN_KEY, access_token)
            self._assign(REFRESH_TOKEN_KEY, refresh_token)

    def clear(self) -> None:
        with self._lock:
            self._store.delete(ACCESS_TOKEN_KEY)
            self._store.delete(REFRESH_TOKEN_KEY)

    def _assign(self, key: str, value: str | None) -> None:
        if value is None:
            self._store.delete(key)
        else:
            self._store.set(key, value)


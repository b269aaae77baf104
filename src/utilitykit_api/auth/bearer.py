"""Bearer token authentication backed by `TokenStorage`."""

from __future__ import annotations

from collections.abc import MutableMapping

from ..storage import TokenStorage
from .base import AuthStrategy

AUTHORIZATION_HEADER = "Authorization"


class BearerAuth(AuthStrategy):
    """Attach the stored access token, if any."""

    def __init__(self, storage: TokenStorage) -> None:
        self.storage = storage

    def apply(self, headers: MutableMapping[str, str]) -> str | None:
        token = self.storage.access_token
        if token:
            headers[AUTHORIZATION_HEADER] = f"Bearer {token}"
        return token

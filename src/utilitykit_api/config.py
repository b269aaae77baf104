"""Configuration helpers for the API service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .auth.refresh import RefreshTokenHandler

ENV_PREFIX = "UTILITYKIT_API_"

_FALSEY = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None:
        return default
    return raw.strip().lower() not in _FALSEY


@dataclass(frozen=True, slots=True)
class APIConfig:
    """Typed configuration for `APIService`."""

    base_url: str
    default_headers: Mapping[str, str] = field(default_factory=dict)
    logging_enabled: bool = True
    auto_logout_on_401: bool = True
    refresh_handler: RefreshTokenHandler | None = None
    timeout: float = 30.0
    verify_ssl: bool | str = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_headers", MappingProxyType(dict(self.default_headers)))

    def resolved_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        headers.update(self.default_headers)
        return headers

    @classmethod
    def from_env(
        cls,
        *,
        refresh_handler: RefreshTokenHandler | None = None,
        base_url: str | None = None,
    ) -> APIConfig:
        """Build a configuration from ``UTILITYKIT_API_*`` variables.

        ``UTILITYKIT_API_BASE_URL`` is required unless ``base_url`` is given.
        ``UTILITYKIT_API_HEADERS`` holds ``Name: value`` pairs separated by
        ``;``.
        """

        resolved_base = base_url or os.getenv(f"{ENV_PREFIX}BASE_URL")
        if not resolved_base:
            raise ValueError(f"{ENV_PREFIX}BASE_URL is not set")
        headers: dict[str, str] = {}
        for chunk in (os.getenv(f"{ENV_PREFIX}HEADERS") or "").split(";"):
            name, sep, value = chunk.partition(":")
            if sep and name.strip():
                headers[name.strip()] = value.strip()
        timeout_raw = os.getenv(f"{ENV_PREFIX}TIMEOUT")
        verify: bool | str = _env_flag("VERIFY_SSL", True)
        ca_bundle = os.getenv(f"{ENV_PREFIX}CA_CERT")
        if ca_bundle and verify:
            verify = ca_bundle
        return cls(
            base_url=resolved_base,
            default_headers=headers,
            logging_enabled=_env_flag("LOGGING", True),
            auto_logout_on_401=_env_flag("AUTO_LOGOUT", True),
            refresh_handler=refresh_handler,
            timeout=float(timeout_raw) if timeout_raw else 30.0,
            verify_ssl=verify,
        )

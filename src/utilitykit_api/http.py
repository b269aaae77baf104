"""HTTP utilities for the request engine."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from urllib.parse import quote_plus, urlencode

import httpx
from pydantic import TypeAdapter, ValidationError

from .exceptions import DecodingFailedError, InvalidURLError, RequestFailedError

_ALLOWED_SCHEMES = {"http", "https"}


@dataclass(slots=True)
class HttpResponse:
    """Typed response wrapper with helper accessors."""

    status_code: int
    content: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def snippet(self, limit: int = 200) -> str:
        return self.content[:limit].decode("utf-8", errors="replace")


def build_url(base_url: str, path: str, query_items: Iterable[tuple[str, str | None]] | None) -> httpx.URL:
    """Concatenate base URL and path, then append query items in order."""

    raw = f"{base_url}{path}"
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise InvalidURLError(details=raw) from exc
    if url.scheme not in _ALLOWED_SCHEMES or not url.host:
        raise InvalidURLError(details=raw)
    if query_items:
        parts = [url.query.decode("ascii")] if url.query else []
        for name, value in query_items:
            # A None value is a bare flag: "?flag", not "?flag=".
            parts.append(quote_plus(name) if value is None else urlencode([(name, value)]))
        url = url.copy_with(query="&".join(parts).encode("ascii"))
    return url


async def send(client: httpx.AsyncClient, request: httpx.Request) -> HttpResponse:
    """Send a request and return the buffered response."""

    try:
        response = await client.send(request)
    except httpx.RequestError as exc:
        raise RequestFailedError(exc) from exc
    try:
        content = await response.aread()
    except httpx.RequestError as exc:
        raise RequestFailedError(exc) from exc
    finally:
        await response.aclose()
    return HttpResponse(
        status_code=response.status_code,
        content=content,
        headers=response.headers,
        url=str(request.url),
    )


@lru_cache(maxsize=128)
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def decode(content: bytes, response_type: Any = Any) -> Any:
    """Decode a response body into ``response_type``.

    ``bytes`` and ``str`` return the raw body, ``None`` ignores it; every other
    type is validated from JSON with pydantic. An empty body decodes to
    ``None`` when any value is acceptable.
    """

    if response_type is bytes:
        return content
    if response_type is None or response_type is type(None):
        return None
    if not content and response_type is Any:
        return None
    try:
        if response_type is str:
            return content.decode("utf-8")
        return _adapter(response_type).validate_json(content)
    except (ValidationError, UnicodeDecodeError) as exc:
        raise DecodingFailedError(details=str(exc)) from exc

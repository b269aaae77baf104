"""Endpoint descriptors built through a chained, copy-on-write API."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol, Union

from pydantic_core import PydanticSerializationError, to_json

from .exceptions import CustomAPIError

QueryItem = tuple[str, Union[str, None]]
QueryInput = Union[Iterable[tuple[str, Any]], Mapping[str, Any]]


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class APIEndpoint(Protocol):
    """Shape every request description must expose to the engine."""

    @property
    def path(self) -> str: ...

    @property
    def method(self) -> HTTPMethod: ...

    @property
    def headers(self) -> Mapping[str, str] | None: ...

    @property
    def query_items(self) -> tuple[QueryItem, ...] | None: ...

    @property
    def body(self) -> bytes | None: ...

    @property
    def requires_auth(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Describe a single HTTP call relative to the configured base URL.

    Every builder returns a new instance, so a partially configured endpoint
    can be shared and specialised freely::

        profile = Endpoint("/users/profile").get().query([("id", "123")])
        login = Endpoint("/auth/login").post({"email": email}).auth(False)
    """

    path: str
    method: HTTPMethod = HTTPMethod.GET
    headers: Mapping[str, str] | None = None
    query_items: tuple[QueryItem, ...] | None = None
    body: bytes | None = field(default=None, repr=False)
    requires_auth: bool = True

    def __post_init__(self) -> None:
        if self.headers is not None:
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if self.query_items is not None:
            object.__setattr__(self, "query_items", tuple(tuple(item) for item in self.query_items))

    def get(self) -> Endpoint:
        return replace(self, method=HTTPMethod.GET)

    def post(self, body: Any) -> Endpoint:
        return replace(self, method=HTTPMethod.POST, body=encode_body(body))

    def put(self, body: Any | None = None) -> Endpoint:
        if body is None:
            return replace(self, method=HTTPMethod.PUT)
        return replace(self, method=HTTPMethod.PUT, body=encode_body(body))

    def patch(self, body: Any | None = None) -> Endpoint:
        if body is None:
            return replace(self, method=HTTPMethod.PATCH)
        return replace(self, method=HTTPMethod.PATCH, body=encode_body(body))

    def delete(self) -> Endpoint:
        return replace(self, method=HTTPMethod.DELETE)

    def set(self, headers: Mapping[str, str]) -> Endpoint:
        """Replace the endpoint-specific headers."""
        return replace(self, headers=headers)

    def auth(self, required: bool) -> Endpoint:
        return replace(self, requires_auth=bool(required))

    def query(self, items: QueryInput) -> Endpoint:
        """Replace the query items, keeping the given order."""
        pairs = items.items() if isinstance(items, Mapping) else items
        normalized: list[QueryItem] = []
        for name, value in pairs:
            normalized.append((str(name), None if value is None else str(value)))
        return replace(self, query_items=tuple(normalized))


def encode_body(payload: Any) -> bytes:
    """Serialise a request payload to JSON bytes.

    Raw ``bytes`` pass through untouched. Payloads that cannot be represented
    as JSON raise ``CustomAPIError`` rather than producing a body-less request.
    """

    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    try:
        return to_json(payload)
    except PydanticSerializationError as exc:
        raise CustomAPIError(
            f"Failed to encode request body: {exc}", details=type(payload).__name__
        ) from exc

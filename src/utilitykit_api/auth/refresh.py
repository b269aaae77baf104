"""Pluggable token refresh logic."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from ..endpoint import APIEndpoint, Endpoint


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str

    @classmethod
    def coerce(cls, value: TokenPair | tuple[str, str]) -> TokenPair:
        if isinstance(value, TokenPair):
            return value
        access, refresh = value
        if not isinstance(access, str) or not isinstance(refresh, str):
            raise TypeError("Refresh response parser must return two strings")
        return cls(access_token=access, refresh_token=refresh)


EndpointBuilder = Callable[[str], APIEndpoint]
ResponseParser = Callable[[bytes], Union[TokenPair, tuple[str, str]]]


@dataclass(frozen=True, slots=True)
class RefreshTokenHandler:
    """Build the refresh call and parse its response.

    ``endpoint_builder`` receives the stored refresh token and returns the
    endpoint to call. ``response_parser`` receives the raw response body and
    returns the new ``(access_token, refresh_token)`` pair; raising any
    exception marks the refresh as failed.
    """

    endpoint_builder: EndpointBuilder
    response_parser: ResponseParser

    def build_endpoint(self, refresh_token: str) -> APIEndpoint:
        return self.endpoint_builder(refresh_token)

    def parse(self, content: bytes) -> TokenPair:
        return TokenPair.coerce(self.response_parser(content))

    @classmethod
    def json(
        cls,
        path: str,
        *,
        request_field: str = "refresh_token",
        access_field: str = "access_token",
        refresh_field: str = "refresh_token",
    ) -> RefreshTokenHandler:
        """Handler for the usual JSON ``POST {"refresh_token": ...}`` exchange."""

        def build(refresh_token: str) -> APIEndpoint:
            return Endpoint(path).post({request_field: refresh_token}).auth(False)

        def parse(content: bytes) -> TokenPair:
            payload = json.loads(content)
            return TokenPair.coerce((payload[access_field], payload[refresh_field]))

        return cls(endpoint_builder=build, response_parser=parse)

from dataclasses import dataclass
from typing import Any

import pytest

from utilitykit_api.exceptions import DecodingFailedError, InvalidURLError
from utilitykit_api.http import build_url, decode


@dataclass
class Item:
    id: int
    name: str


def test_build_url_concatenates_base_and_path():
    url = build_url("https://api.example.com/v1", "/items", None)

    assert str(url) == "https://api.example.com/v1/items"


def test_build_url_appends_query_after_existing_params():
    url = build_url("https://api.example.com", "/items?sort=asc", [("page", "2"), ("flag", None)])

    assert str(url) == "https://api.example.com/items?sort=asc&page=2&flag"


def test_build_url_encodes_names_and_values():
    url = build_url("https://api.example.com", "/search", [("q", "a b&c"), ("only me", None)])

    assert url.query == b"q=a+b%26c&only+me"


@pytest.mark.parametrize("base_url", ["", "api.example.com", "ftp://api.example.com"])
def test_build_url_rejects_unusable_urls(base_url):
    with pytest.raises(InvalidURLError):
        build_url(base_url, "/items", None)


def test_decode_into_typed_values():
    assert decode(b'{"id": 1, "name": "lamp"}', Item) == Item(id=1, name="lamp")
    assert decode(b'[{"id": 1, "name": "a"}]', list[Item]) == [Item(id=1, name="a")]
    assert decode(b'{"a": 1}', Any) == {"a": 1}
    assert decode(b'{"a": 1}', dict[str, int]) == {"a": 1}


def test_decode_raw_bodies():
    assert decode(b"\x00raw", bytes) == b"\x00raw"
    assert decode("héllo".encode("utf-8"), str) == "héllo"
    assert decode(b"", None) is None
    assert decode(b"", Any) is None


@pytest.mark.parametrize(
    "content, response_type",
    [
        (b"not json", Any),
        (b"", Item),
        (b'{"id": "x"}', Item),
        (b"\xff\xfe", str),
    ],
)
def test_decode_failures(content, response_type):
    with pytest.raises(DecodingFailedError):
        decode(content, response_type)

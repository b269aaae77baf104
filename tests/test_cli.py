import json

import pytest
from typer.testing import CliRunner

from utilitykit_api.cli import _build_endpoint, app
from utilitykit_api.endpoint import HTTPMethod
from utilitykit_api.storage import EncryptedFileStore, TokenStorage, generate_store_key, load_store_key

runner = CliRunner()

BASE_URL = "https://api.example.com"


@pytest.fixture
def store_env(tmp_path):
    key = generate_store_key()
    path = tmp_path / "tokens.json"
    env = {"UTILITYKIT_API_STORE": str(path), "UTILITYKIT_API_STORE_KEY": key}
    return env, TokenStorage(EncryptedFileStore(path, key))


def test_tokens_set_show_clear(store_env):
    env, storage = store_env

    result = runner.invoke(
        app, ["tokens", "set", "--access", "abcdefghijkl", "--refresh", "refresh"], env=env
    )
    assert result.exit_code == 0
    assert storage.access_token == "abcdefghijkl"

    result = runner.invoke(app, ["tokens", "show", "--json"], env=env)
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"accessToken": "abcd...ijkl", "refreshToken": "*******"}

    result = runner.invoke(app, ["tokens", "show", "--json", "--reveal"], env=env)
    assert json.loads(result.stdout)["refreshToken"] == "refresh"

    result = runner.invoke(app, ["tokens", "clear"], env=env)
    assert result.exit_code == 0
    assert storage.access_token is None


def test_tokens_show_renders_table(store_env):
    env, storage = store_env
    storage.set_tokens("access-token-value", "refresh-token-value")

    result = runner.invoke(app, ["tokens", "show"], env=env)

    assert result.exit_code == 0
    assert "Stored tokens" in result.stdout
    assert "access-token-value" not in result.stdout


def test_tokens_show_with_wrong_key_fails(store_env):
    env, storage = store_env
    storage.set_tokens("a", "r")

    result = runner.invoke(
        app, ["tokens", "show"], env={**env, "UTILITYKIT_API_STORE_KEY": generate_store_key()}
    )

    assert result.exit_code == 1
    assert "failed authentication" in result.output


@pytest.mark.parametrize(
    "args", [["tokens", "set", "--access", "a", "--refresh", "r"], ["tokens", "clear"]]
)
def test_tokens_commands_report_unreadable_store(store_env, args):
    env, _ = store_env
    with open(env["UTILITYKIT_API_STORE"], "w", encoding="utf-8") as handle:
        handle.write("not json")

    result = runner.invoke(app, args, env=env)

    assert result.exit_code == 1
    assert "Unable to read token store" in result.output


def test_request_command_reports_unreadable_token(httpx_mock, store_env):
    env, storage = store_env
    storage.set_tokens("a", "r")

    result = runner.invoke(
        app,
        ["request", "GET", "/me", "--base-url", BASE_URL],
        env={**env, "UTILITYKIT_API_STORE_KEY": generate_store_key()},
    )

    assert result.exit_code == 1
    assert "failed authentication" in result.output
    assert httpx_mock.get_requests() == []


def test_request_command_prints_json(httpx_mock, store_env):
    env, storage = store_env
    storage.set_tokens("stored-access", "stored-refresh")
    httpx_mock.add_response(url=f"{BASE_URL}/items?page=2", json=[{"id": 1}])

    result = runner.invoke(
        app,
        ["request", "GET", "/items", "--base-url", BASE_URL, "--query", "page=2"],
        env=env,
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [{"id": 1}]
    assert httpx_mock.get_requests()[0].headers["Authorization"] == "Bearer stored-access"


def test_request_command_refreshes_and_persists_tokens(httpx_mock, store_env):
    env, storage = store_env
    storage.set_tokens("expired", "stored-refresh")
    httpx_mock.add_response(url=f"{BASE_URL}/me", status_code=401)
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/refresh",
        json={"access_token": "fresh", "refresh_token": "rotated"},
    )
    httpx_mock.add_response(url=f"{BASE_URL}/me", json={"id": 3})

    result = runner.invoke(
        app,
        ["request", "GET", "me", "--base-url", BASE_URL, "--refresh-path", "/auth/refresh"],
        env=env,
    )

    assert result.exit_code == 0, result.output
    assert storage.access_token == "fresh"
    assert storage.refresh_token == "rotated"


def test_request_command_reports_api_errors(httpx_mock, store_env):
    env, _ = store_env
    httpx_mock.add_response(url=f"{BASE_URL}/admin", status_code=403)

    result = runner.invoke(app, ["request", "GET", "/admin", "--base-url", BASE_URL], env=env)

    assert result.exit_code == 1
    assert "forbidden: Access is forbidden." in result.output


def test_request_command_rejects_unknown_method(store_env):
    env, _ = store_env

    result = runner.invoke(app, ["request", "TRACE", "/x", "--base-url", BASE_URL], env=env)

    assert result.exit_code != 0


def test_build_endpoint_from_options():
    endpoint = _build_endpoint(
        "post",
        "items",
        queries=["dry_run=1"],
        headers=["X-Trace: abc"],
        data='{"name": "lamp"}',
        requires_auth=False,
    )

    assert endpoint.path == "/items"
    assert endpoint.method is HTTPMethod.POST
    assert endpoint.query_items == (("dry_run", "1"),)
    assert endpoint.headers == {"X-Trace": "abc"}
    assert json.loads(endpoint.body) == {"name": "lamp"}
    assert endpoint.requires_auth is False


def test_tokens_keygen_prints_usable_key():
    result = runner.invoke(app, ["tokens", "keygen"])

    assert result.exit_code == 0
    assert len(load_store_key(result.stdout.strip())) == 32

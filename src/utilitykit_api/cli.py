"""Command-line interface for calling APIs and managing stored tokens."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .auth.refresh import RefreshTokenHandler
from .client import APIService
from .config import APIConfig
from .endpoint import Endpoint, HTTPMethod
from .exceptions import APIError, TokenStoreError
from .storage import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    STORE_KEY_ENV,
    EncryptedFileStore,
    TokenStorage,
    generate_store_key,
)

DEFAULT_STORE_PATH = Path("~/.config/utilitykit-api/tokens.json")

app = typer.Typer(help="Authenticated HTTP API client.", no_args_is_help=True)
tokens_app = typer.Typer(help="Stored token operations.")
app.add_typer(tokens_app, name="tokens")

console = Console(force_terminal=False, color_system=None)

_STORE_OPTION = typer.Option(
    DEFAULT_STORE_PATH,
    "--store",
    envvar="UTILITYKIT_API_STORE",
    help="Encrypted token store file.",
)
_STORE_KEY_OPTION = typer.Option(
    None,
    "--store-key",
    envvar=STORE_KEY_ENV,
    help="Base64 encoded 32-byte key for the token store.",
    show_default=False,
)


def _open_storage(store_path: Path, store_key: str | None) -> TokenStorage:
    try:
        return TokenStorage(EncryptedFileStore(store_path, store_key))
    except TokenStoreError as exc:
        _fail(str(exc))


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _handle_api_error(exc: APIError) -> NoReturn:
    message = f"{exc.kind.value}: {exc}"
    if exc.status_code is not None:
        message += f" (status {exc.status_code})"
    if exc.details:
        message += f"\nDetails: {exc.details}"
    _fail(message)


def _parse_pairs(values: list[str], separator: str, option: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for raw in values:
        name, sep, value = raw.partition(separator)
        if not sep or not name.strip():
            raise typer.BadParameter(f"{option} expects NAME{separator}VALUE, got '{raw}'.")
        pairs.append((name.strip(), value.strip()))
    return pairs


def _build_endpoint(
    method: str,
    path: str,
    *,
    queries: list[str],
    headers: list[str],
    data: str | None,
    requires_auth: bool,
) -> Endpoint:
    try:
        http_method = HTTPMethod(method.upper())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in HTTPMethod)
        raise typer.BadParameter(f"METHOD must be one of {allowed}.") from exc

    payload: Any = None
    if data is not None:
        try:
            payload = json.loads(data)
        except ValueError as exc:
            raise typer.BadParameter(f"--data is not valid JSON: {exc}") from exc

    endpoint = Endpoint(path if path.startswith("/") else f"/{path}").auth(requires_auth)
    if http_method is HTTPMethod.POST:
        endpoint = endpoint.post(payload)
    elif http_method is HTTPMethod.PUT:
        endpoint = endpoint.put(payload)
    elif http_method is HTTPMethod.PATCH:
        endpoint = endpoint.patch(payload)
    elif http_method is HTTPMethod.DELETE:
        endpoint = endpoint.delete()
    if queries:
        endpoint = endpoint.query(_parse_pairs(queries, "=", "--query"))
    if headers:
        endpoint = endpoint.set(dict(_parse_pairs(headers, ":", "--header")))
    return endpoint


async def _perform(service: APIService, endpoint: Endpoint) -> Any:
    async with service:
        return await service.perform(endpoint)


@app.command("request")
def request_command(
    method: str = typer.Argument(..., help="HTTP method (GET, POST, PUT, PATCH, DELETE)."),
    path: str = typer.Argument(..., help="Path relative to the base URL."),
    base_url: str = typer.Option(
        ..., "--base-url", envvar="UTILITYKIT_API_BASE_URL", help="API base URL."
    ),
    query: list[str] = typer.Option([], "--query", "-q", help="Query item in name=value form."),
    header: list[str] = typer.Option([], "--header", "-H", help="Header in 'Name: value' form."),
    data: str | None = typer.Option(None, "--data", "-d", help="JSON request body."),
    auth: bool = typer.Option(True, "--auth/--no-auth", help="Attach the stored access token."),
    refresh_path: str | None = typer.Option(
        None,
        "--refresh-path",
        envvar="UTILITYKIT_API_REFRESH_PATH",
        help="Refresh endpoint path; enables automatic refresh on 401.",
    ),
    timeout: float = typer.Option(30.0, help="Request timeout (seconds).", show_default=True),
    verify_ssl: bool = typer.Option(
        True,
        "--verify/--no-verify",
        envvar="UTILITYKIT_API_VERIFY_SSL",
        help="Enable or disable TLS certificate verification.",
    ),
    store: Path = _STORE_OPTION,
    store_key: str | None = _STORE_KEY_OPTION,
) -> None:
    """Perform a request and print the JSON response."""
    endpoint = _build_endpoint(
        method, path, queries=query, headers=header, data=data, requires_auth=auth
    )
    config = APIConfig(
        base_url=base_url.rstrip("/"),
        refresh_handler=RefreshTokenHandler.json(refresh_path) if refresh_path else None,
        timeout=timeout,
        verify_ssl=verify_ssl,
    )
    service = APIService(config, token_storage=_open_storage(store, store_key))
    service.session_expired.subscribe(
        lambda: typer.secho("Session expired; log in again.", err=True, fg=typer.colors.YELLOW)
    )
    try:
        payload = asyncio.run(_perform(service, endpoint))
    except APIError as exc:
        _handle_api_error(exc)
    except TokenStoreError as exc:
        _fail(str(exc))
    typer.echo(json.dumps(payload, indent=2))


@tokens_app.command("set")
def tokens_set(
    access: str = typer.Option(..., "--access", help="Access token."),
    refresh: str | None = typer.Option(None, "--refresh", help="Refresh token."),
    store: Path = _STORE_OPTION,
    store_key: str | None = _STORE_KEY_OPTION,
) -> None:
    storage = _open_storage(store, store_key)
    try:
        if refresh is None:
            storage.access_token = access
        else:
            storage.set_tokens(access, refresh)
    except TokenStoreError as exc:
        _fail(str(exc))
    typer.echo("Tokens stored.")


def _mask(value: str | None) -> str:
    if not value:
        return "-"
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


@tokens_app.command("show")
def tokens_show(
    reveal: bool = typer.Option(False, "--reveal", help="Print full token values."),
    output_json: bool = typer.Option(False, "--json", "-j", help="Return JSON instead of a table."),
    store: Path = _STORE_OPTION,
    store_key: str | None = _STORE_KEY_OPTION,
) -> None:
    storage = _open_storage(store, store_key)
    try:
        values = {
            ACCESS_TOKEN_KEY: storage.access_token,
            REFRESH_TOKEN_KEY: storage.refresh_token,
        }
    except TokenStoreError as exc:
        _fail(str(exc))
    rendered = {key: value if reveal else _mask(value) for key, value in values.items()}
    if output_json:
        typer.echo(json.dumps(rendered, indent=2))
        return
    table = Table(title="Stored tokens", box=box.SIMPLE, header_style="bold cyan")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in rendered.items():
        table.add_row(key, value)
    console.print(table)


@tokens_app.command("clear")
def tokens_clear(
    store: Path = _STORE_OPTION,
    store_key: str | None = _STORE_KEY_OPTION,
) -> None:
    storage = _open_storage(store, store_key)
    try:
        storage.clear()
    except TokenStoreError as exc:
        _fail(str(exc))
    typer.echo("Tokens cleared.")


@tokens_app.command("keygen")
def tokens_keygen() -> None:
    """Print a new random key for the token store."""
    typer.echo(generate_store_key())

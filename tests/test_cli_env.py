from typer.testing import CliRunner

from utilitykit_api.cli import app
from utilitykit_api.storage import generate_store_key

runner = CliRunner()


def test_cli_reads_base_url_from_env(httpx_mock, tmp_path):
    httpx_mock.add_response(url="https://env.example.com/health", json={"ok": True})

    result = runner.invoke(
        app,
        ["request", "GET", "/health", "--no-auth"],
        env={
            "UTILITYKIT_API_BASE_URL": "https://env.example.com/",
            "UTILITYKIT_API_STORE": str(tmp_path / "tokens.json"),
            "UTILITYKIT_API_STORE_KEY": generate_store_key(),
        },
    )

    assert result.exit_code == 0, result.output
    assert '"ok": true' in result.stdout
    assert "Authorization" not in httpx_mock.get_requests()[0].headers


def test_cli_requires_store_key(tmp_path, monkeypatch):
    monkeypatch.delenv("UTILITYKIT_API_STORE_KEY", raising=False)

    result = runner.invoke(
        app,
        ["tokens", "show"],
        env={"UTILITYKIT_API_STORE": str(tmp_path / "tokens.json")},
    )

    assert result.exit_code == 1
    assert "UTILITYKIT_API_STORE_KEY is not set" in result.output

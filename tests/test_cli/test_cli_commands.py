"""Tests for the trayar command-line interface."""

from __future__ import annotations

import json

import httpx
import pytest

from trayar import __version__
from trayar.app import app
from trayar.auth.credential_store import FileTokenStore
from trayar.config import load_config
from trayar.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class FakeApi:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        if path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if path == "/broken":
            return httpx.Response(503, json={"message": "maintenance"})
        if path == "/auth/login":
            creds = json.loads(request.content)
            if creds["password"] != "s3cret":
                return httpx.Response(401, json={"code": "INVALID_CREDENTIALS", "message": "no"})
            return httpx.Response(
                200, json={"user": {"name": "Dr. Ada"}, "token": "tok-1", "refreshToken": "ref-1"}
            )
        if path == "/auth/logout":
            return httpx.Response(204)
        if path == "/auth/profile":
            return httpx.Response(200, json={"user": {"name": "Dr. Ada"}})
        if path.startswith("/sessions"):
            body = json.loads(request.content) if request.content and request.method != "GET" else None
            return httpx.Response(
                200, json={"method": request.method, "query": dict(request.url.params), "body": body}
            )
        if path.endswith("/audio"):
            return httpx.Response(201, json={"bytes": len(request.content)})
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def invoke(cli_runner, isolated_config, api, monkeypatch):
    """Invoke the CLI with a mock transport and no retries."""
    monkeypatch.setenv("TRAYAR_MAX_RETRIES", "0")

    def _invoke(*args: str, input: str | None = None):
        return cli_runner.invoke(
            app, list(args), obj={"transport": httpx.MockTransport(api)}, input=input
        )

    return _invoke


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("health", "request", "upload", "auth", "config"):
            assert name in result.stdout


class TestHealth:
    def test_health_json(self, invoke) -> None:
        result = invoke("--json", "health")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"status": "ok"}

    def test_base_url_flag(self, invoke, api) -> None:
        result = invoke("--base-url", "https://staging.trayar.dental/v1", "health")
        assert result.exit_code == 0
        assert api.requests[0].url.host == "staging.trayar.dental"


class TestRequest:
    def test_get_with_params(self, invoke, api) -> None:
        result = invoke("--json", "request", "get", "/sessions", "-p", "page=2", "-p", "limit=5")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["query"] == {"page": "2", "limit": "5"}

    def test_post_with_body(self, invoke) -> None:
        result = invoke("--json", "request", "POST", "/sessions", "--body", '{"title": "Consult"}')
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["method"] == "POST"
        assert data["body"] == {"title": "Consult"}

    def test_bearer_from_stored_session(self, invoke, api) -> None:
        FileTokenStore().set_token("tok-9")
        invoke("request", "GET", "/sessions")
        assert api.requests[0].headers["Authorization"] == "Bearer tok-9"

    def test_not_found_exit_code(self, invoke) -> None:
        assert invoke("request", "GET", "/nowhere").exit_code == EXIT_NOT_FOUND

    def test_server_error_exit_code(self, invoke) -> None:
        assert invoke("request", "GET", "/broken").exit_code == EXIT_SERVER_ERROR

    def test_unknown_method(self, invoke) -> None:
        assert invoke("request", "TRACE", "/sessions").exit_code == EXIT_INVALID_USAGE

    def test_malformed_param(self, invoke, api) -> None:
        result = invoke("request", "GET", "/sessions", "-p", "page")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert api.requests == []


class TestUpload:
    def test_upload_file(self, invoke, api, isolated_config) -> None:
        recording = isolated_config / "visit.m4a"
        recording.write_bytes(b"\x00" * 4096)
        result = invoke("--json", "upload", "/recordings/7/audio", str(recording), "-m", "duration=42")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["bytes"] > 4096
        assert b'name="duration"' in api.requests[0].content

    def test_missing_file_rejected(self, invoke, isolated_config) -> None:
        result = invoke("upload", "/sessions/1/audio", str(isolated_config / "nope.m4a"))
        assert result.exit_code == 2


class TestAuth:
    def test_login_stores_tokens(self, invoke) -> None:
        result = invoke("auth", "login", "--email", "ada@example.com", "--password", "s3cret")
        assert result.exit_code == 0
        store = FileTokenStore()
        assert store.get_token() == "tok-1"
        assert store.get_refresh_token() == "ref-1"

    def test_login_prompts_for_password(self, invoke) -> None:
        result = invoke("auth", "login", "--email", "ada@example.com", input="s3cret\n")
        assert result.exit_code == 0
        assert FileTokenStore().get_token() == "tok-1"

    def test_login_failure(self, invoke) -> None:
        result = invoke("auth", "login", "--email", "ada@example.com", "--password", "wrong")
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert FileTokenStore().get_token() is None

    def test_status_signed_out(self, invoke) -> None:
        result = invoke("auth", "status")
        assert result.exit_code == 0
        assert "Not signed in" in result.output

    def test_status_signed_in(self, invoke) -> None:
        FileTokenStore().set_token("abcdefghijkl")
        result = invoke("--json", "auth", "status")
        assert result.exit_code == 0
        rows = {row["Field"]: row["Value"] for row in json.loads(result.stdout)}
        assert rows["Token"] == "abcdefgh..."
        assert rows["Refresh Token"] == "-"

    def test_profile(self, invoke) -> None:
        FileTokenStore().set_token("tok-1")
        result = invoke("--json", "auth", "profile")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["user"]["name"] == "Dr. Ada"

    def test_logout(self, invoke, api) -> None:
        FileTokenStore().set_token("tok-1")
        result = invoke("auth", "logout")
        assert result.exit_code == 0
        assert FileTokenStore().get_token() is None
        assert api.requests[0].url.path.endswith("/auth/logout")


class TestConfig:
    def test_show(self, invoke) -> None:
        result = invoke("--json", "--quiet", "config", "show")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["base_url"] == "https://api.trayar.dental/v1"
        assert data["request"]["max_retries"] == 3

    def test_show_effective(self, invoke) -> None:
        result = invoke("--json", "--quiet", "config", "show", "--effective")
        assert json.loads(result.stdout)["request"]["max_retries"] == 0

    def test_set_nested_float(self, invoke) -> None:
        result = invoke("config", "set", "request.timeout", "12.5")
        assert result.exit_code == 0
        assert load_config().request.timeout == 12.5

    def test_set_bool(self, invoke) -> None:
        invoke("config", "set", "cache.enabled", "false")
        assert load_config().cache.enabled is False

    def test_set_unknown_key(self, invoke) -> None:
        assert invoke("config", "set", "nope", "1").exit_code == EXIT_INVALID_USAGE

    def test_set_invalid_value(self, invoke) -> None:
        assert invoke("config", "set", "cache.max_entries", "0").exit_code == EXIT_INVALID_USAGE

    def test_reset(self, invoke) -> None:
        invoke("config", "set", "base_url", "https://x.test/v1")
        result = invoke("config", "reset", "--force")
        assert result.exit_code == 0
        assert load_config().base_url == "https://api.trayar.dental/v1"

"""Shared test fixtures for exacli.

Provides reusable fixtures for isolated config environments, output
state, API key environments, a fake Exa API behind
:class:`httpx.MockTransport`, and running CLI commands. These fixtures
are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from exacli.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, state, or cache. Clears
    all EXA_* environment variables and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("exacli.config._is_xdg_platform", lambda: True)

    for var in [
        "EXA_API_KEYS",
        "EXA_API_KEY",
        "EXA_BASE_URL",
        "EXA_CACHE_TTL",
        "EXA_NO_CACHE",
        "EXA_LOG_REQUESTS",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config_dir(isolated_config: Path) -> Path:
    """The exa config directory inside the isolated environment."""
    return isolated_config / "config" / "exa"


@pytest.fixture
def api_keys(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Configure three API keys through ``EXA_API_KEYS``."""
    keys = ["key-aaa-111", "key-bbb-222", "key-ccc-333"]
    monkeypatch.setenv("EXA_API_KEYS", ",".join(keys))
    return keys


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, compact, colourless OutputManager for the test."""
    output = OutputManager(format=OutputFormat.COMPACT, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Fake Exa API
# ---------------------------------------------------------------------------


class FakeExaApi:
    """Scripted stand-in for the Exa API.

    Responses are queued per path with :meth:`queue`; when a path's queue
    is empty the :attr:`default` response for it is returned. Every
    request is recorded in :attr:`calls` as ``(method, path, api_key, body)``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str, Optional[dict[str, Any]]]] = []
        self._queues: dict[str, list[httpx.Response]] = {}
        self.default: dict[str, Callable[[], httpx.Response]] = {}

    def queue(self, path: str, *responses: httpx.Response) -> None:
        self._queues.setdefault(path, []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.calls.append((request.method, path, request.headers.get("x-api-key", ""), body))
        queue = self._queues.get(path)
        if queue:
            return queue.pop(0)
        if path in self.default:
            return self.default[path]()
        return httpx.Response(404, json={"error": f"no fake response for {path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def keys_used(self, path: Optional[str] = None) -> list[str]:
        return [key for _, p, key, _ in self.calls if path is None or p == path]

    @staticmethod
    def ok(data: dict[str, Any]) -> httpx.Response:
        return httpx.Response(200, json=data)

    @staticmethod
    def rate_limited(retry_after: Optional[str] = None) -> httpx.Response:
        headers = {"Retry-After": retry_after} if retry_after is not None else {}
        return httpx.Response(429, json={"error": "rate limit exceeded"}, headers=headers)

    @staticmethod
    def error(status_code: int, message: str = "boom") -> httpx.Response:
        return httpx.Response(status_code, json={"error": message})


SEARCH_PAYLOAD: dict[str, Any] = {
    "requestId": "req-1",
    "results": [
        {
            "title": "Async Rust",
            "url": "https://example.com/async-rust",
            "publishedDate": "2025-01-02",
            "text": "Rust futures are lazy. They do nothing until polled. Executors drive them.",
            "highlights": ["Rust futures are lazy."],
        },
        {
            "title": "Tokio tutorial",
            "url": "https://example.com/tokio",
            "text": "Tokio is an asynchronous runtime.",
        },
    ],
}


@pytest.fixture
def fake_api(monkeypatch: pytest.MonkeyPatch) -> FakeExaApi:
    """Route every client built by :mod:`exacli.runtime` to a :class:`FakeExaApi`."""
    api = FakeExaApi()
    api.default["/search"] = lambda: FakeExaApi.ok(SEARCH_PAYLOAD)
    monkeypatch.setattr("exacli.runtime._transport", api.transport)
    return api


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    try:
        return CliRunner(mix_stderr=False)
    except TypeError:
        # Click 8.2 removed mix_stderr; stderr is always separate there.
        return CliRunner()


@pytest.fixture
def search_payload() -> dict[str, Any]:
    """A two-result search response."""
    return json.loads(json.dumps(SEARCH_PAYLOAD))

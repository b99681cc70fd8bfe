"""End-to-end tests: the ``exa`` app against a fake Exa API."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from exacli import __version__
from exacli.app import app


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


class TestBasics:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == f"exa {__version__}"

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("search", "find", "content", "answer", "research", "status", "reset"):
            assert name in result.stdout

    def test_no_keys_exits_8(self, cli_runner, isolated_config, fake_api) -> None:
        result = cli_runner.invoke(app, ["search", "anything"])
        assert result.exit_code == 8
        assert "No API keys found" in result.stderr
        assert fake_api.calls == []

    def test_no_keys_json_error_on_stdout(self, cli_runner, isolated_config, fake_api) -> None:
        result = cli_runner.invoke(app, ["--json", "search", "anything"])
        assert result.exit_code == 8
        assert "No API keys found" in json.loads(result.stdout)["error"]

    def test_single_key_fallback(self, cli_runner, isolated_config, fake_api, monkeypatch) -> None:
        monkeypatch.setenv("EXA_API_KEY", "solo-key-999")
        result = cli_runner.invoke(app, ["search", "rust"])
        assert result.exit_code == 0
        assert fake_api.keys_used() == ["solo-key-999"]


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


class TestSearch:
    def test_compact_output_when_piped(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["search", "async", "rust"])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == "[1] Async Rust"
        assert "url: https://example.com/tokio" in lines

        method, path, key, body = fake_api.calls[0]
        assert (method, path, key) == ("POST", "/search", api_keys[0])
        assert body == {"query": "async rust", "numResults": 5, "type": "instant"}

    def test_request_body_options(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(
            app,
            [
                "search", "llm", "-n", "3", "--content", "--highlights",
                "--domain", "arxiv.org", "--after", "2024-01-01",
                "--category", "research paper", "--type", "deep",
            ],
        )
        assert result.exit_code == 0
        body = fake_api.calls[0][3]
        assert body["numResults"] == 3
        assert body["type"] == "deep"
        assert body["includeDomains"] == ["arxiv.org"]
        assert body["startPublishedDate"] == "2024-01-01"
        assert body["category"] == "research paper"
        # Highlights take precedence over full text.
        assert body["contents"] == {"highlights": {"maxCharacters": 2000}}

    def test_json_output(self, cli_runner, api_keys, fake_api, search_payload) -> None:
        result = cli_runner.invoke(app, ["--json", "search", "rust"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == search_payload

    def test_tsv_output(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["--tsv", "search", "rust"])
        assert result.exit_code == 0
        assert result.stdout.splitlines()[0] == "title\turl\tdate"

    def test_fields_filter(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["--fields", "url", "search", "rust"])
        assert result.stdout.splitlines() == [
            "url: https://example.com/async-rust",
            "url: https://example.com/tokio",
        ]

    def test_empty_results_exit_3(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.ok({"results": []}))
        result = cli_runner.invoke(app, ["search", "nothing"])
        assert result.exit_code == 3
        assert result.stdout == ""
        assert "No results found." in result.stderr

    def test_missing_query_is_usage_error(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["search"])
        assert result.exit_code == 2
        assert fake_api.calls == []


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


class TestRotation:
    def test_rate_limited_key_is_rotated(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.rate_limited("30"))
        result = cli_runner.invoke(app, ["search", "rust"])
        assert result.exit_code == 0
        assert fake_api.keys_used("/search") == [api_keys[0], api_keys[1]]

        status = cli_runner.invoke(app, ["--json", "status"])
        data = json.loads(status.stdout)
        assert data["keys"][0]["status"] == "COOLDOWN"
        assert 0 < data["keys"][0]["cooldown_remaining"] <= 30
        assert data["keys"][1]["successes"] == 1

    def test_next_call_avoids_cooling_key(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.rate_limited("30"))
        cli_runner.invoke(app, ["--no-cache", "search", "rust"])
        cli_runner.invoke(app, ["--no-cache", "search", "rust"])
        assert api_keys[0] not in fake_api.keys_used()[2:]

    def test_two_rate_limits_exit_5(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue(
            "/search", fake_api.rate_limited(), fake_api.rate_limited()
        )
        result = cli_runner.invoke(app, ["search", "rust"])
        assert result.exit_code == 5
        assert len(fake_api.calls) == 2

    def test_auth_error_exit_4(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.error(401, "invalid api key"))
        result = cli_runner.invoke(app, ["search", "rust"])
        assert result.exit_code == 4
        assert "invalid api key" in result.stderr

    def test_dropped_connection_exit_6_with_json_error(
        self, cli_runner, api_keys, fake_api
    ) -> None:
        def disconnect():
            raise httpx.RemoteProtocolError("Server disconnected without sending a response.")

        fake_api.default["/search"] = disconnect
        result = cli_runner.invoke(app, ["--json", "search", "rust"])
        assert result.exit_code == 6
        assert "Server disconnected" in json.loads(result.stdout)["error"]
        assert len(fake_api.calls) == 1

    def test_upstream_error_exit_7(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.error(500, "server exploded"))
        result = cli_runner.invoke(app, ["search", "rust"])
        assert result.exit_code == 7

    def test_reset_clears_cooldowns(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/search", fake_api.rate_limited("30"))
        cli_runner.invoke(app, ["search", "rust"])

        result = cli_runner.invoke(app, ["reset"])
        assert result.exit_code == 0
        assert "3 key(s)" in result.stderr

        data = json.loads(cli_runner.invoke(app, ["--json", "status"]).stdout)
        assert [k["status"] for k in data["keys"]] == ["READY"] * 3
        assert all(k["requests"] == 0 for k in data["keys"])

    def test_status_masks_keys(self, cli_runner, api_keys) -> None:
        result = cli_runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "key-aaa-111" not in result.stdout
        assert "...111" in result.stdout

    def test_status_without_keys(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["status"])
        assert result.exit_code == 8


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_second_call_served_from_cache(self, cli_runner, api_keys, fake_api) -> None:
        first = cli_runner.invoke(app, ["search", "rust"])
        second = cli_runner.invoke(app, ["search", "rust"])
        assert first.exit_code == second.exit_code == 0
        assert first.stdout == second.stdout
        assert len(fake_api.calls) == 1

    def test_different_options_miss(self, cli_runner, api_keys, fake_api) -> None:
        cli_runner.invoke(app, ["search", "rust"])
        cli_runner.invoke(app, ["search", "rust", "-n", "7"])
        assert len(fake_api.calls) == 2

    def test_no_cache_flag(self, cli_runner, api_keys, fake_api) -> None:
        cli_runner.invoke(app, ["search", "rust"])
        cli_runner.invoke(app, ["--no-cache", "search", "rust"])
        assert len(fake_api.calls) == 2

    def test_no_cache_env(self, cli_runner, api_keys, fake_api, monkeypatch) -> None:
        monkeypatch.setenv("EXA_NO_CACHE", "1")
        cli_runner.invoke(app, ["search", "rust"])
        cli_runner.invoke(app, ["search", "rust"])
        assert len(fake_api.calls) == 2

    def test_answer_not_cached(self, cli_runner, api_keys, fake_api) -> None:
        cli_runner.invoke(app, ["answer", "what", "is", "rust"])
        cli_runner.invoke(app, ["answer", "what", "is", "rust"])
        assert len(fake_api.calls) == 2


# ---------------------------------------------------------------------------
# find / content / answer / research
# ---------------------------------------------------------------------------


class TestOtherCommands:
    def test_find(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.default["/findSimilar"] = lambda: fake_api.ok(
            {"results": [{"title": "Similar", "url": "https://s.io"}]}
        )
        result = cli_runner.invoke(app, ["find", "https://example.com"])
        assert result.exit_code == 0
        assert result.stdout.splitlines()[:2] == ["[1] Similar", "url: https://s.io"]
        assert fake_api.calls[0][3]["url"] == "https://example.com"

    def test_content(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue(
            "/contents",
            fake_api.ok({"results": [{"title": "Doc", "url": "https://d.io", "text": "Body."}]}),
        )
        result = cli_runner.invoke(app, ["content", "https://d.io"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["Doc", "url: https://d.io", "Body."]
        assert fake_api.calls[0][3] == {"urls": ["https://d.io"], "text": True}

    def test_content_empty(self, cli_runner, api_keys, fake_api) -> None:
        fake_api.queue("/contents", fake_api.ok({"results": []}))
        result = cli_runner.invoke(app, ["content", "https://d.io"])
        assert result.exit_code == 3
        assert "Could not extract content." in result.stderr

    def test_answer(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["answer", "what", "is", "rust"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            "Rust futures are lazy.",
            "sources: https://example.com/async-rust | https://example.com/tokio",
        ]
        body = fake_api.calls[0][3]
        assert body["query"] == "what is rust"
        assert body["contents"] == {"text": True, "highlights": True}

    def test_answer_no_sources(self, cli_runner, api_keys, fake_api) -> None:
        result = cli_runner.invoke(app, ["--no-sources", "answer", "rust"])
        assert result.stdout.splitlines() == ["Rust futures are lazy."]

    def test_research(self, cli_runner, api_keys, fake_api, config_dir: Path) -> None:
        config_dir.mkdir(parents=True, exist_ok=True)
        (config_dir / "config.json").write_text(json.dumps({"request": {"poll_interval": 0}}))
        fake_api.queue("/research/v1", fake_api.ok({"researchId": "r-1"}))
        fake_api.queue(
            "/research/v1/r-1",
            fake_api.ok({"status": "running"}),
            fake_api.ok(
                {
                    "status": "completed",
                    "output": {"content": "Final report."},
                    "citations": [{"url": "https://cite.io"}],
                }
            ),
        )
        result = cli_runner.invoke(app, ["research", "compare", "gpus"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["Final report.", "sources: https://cite.io"]

        create = fake_api.calls[0]
        assert create[1] == "/research/v1"
        assert create[3] == {"instructions": "compare gpus", "model": "exa-research"}
        # Polling stays on the key that created the task.
        assert len(set(fake_api.keys_used())) == 1

    def test_research_failed(self, cli_runner, api_keys, fake_api, config_dir: Path) -> None:
        config_dir.mkdir(parents=True, exist_ok=True)
        (config_dir / "config.json").write_text(json.dumps({"request": {"poll_interval": 0}}))
        fake_api.queue("/research/v1", fake_api.ok({"researchId": "r-2"}))
        fake_api.queue(
            "/research/v1/r-2", fake_api.ok({"status": "failed", "error": "model crashed"})
        )
        result = cli_runner.invoke(app, ["research", "x"])
        assert result.exit_code == 7
        assert "model crashed" in result.stderr

    def test_research_bad_schema(self, cli_runner, api_keys, fake_api, isolated_config: Path) -> None:
        bad = isolated_config / "bad.json"
        bad.write_text("not json")

        result = cli_runner.invoke(app, ["research", "x", "--schema", str(bad)])
        assert result.exit_code == 2
        assert fake_api.calls == []


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_set_and_show(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache.ttl_minutes", "120"])
        assert result.exit_code == 0

        shown = cli_runner.invoke(app, ["config", "show"])
        assert shown.exit_code == 0
        assert json.loads(shown.stdout)["cache"]["ttl_minutes"] == 120

    def test_set_bool(self, cli_runner, isolated_config, config_dir: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "log_requests", "true"])
        data = json.loads((config_dir / "config.json").read_text())
        assert data["log_requests"] is True

    @pytest.mark.parametrize(
        "args",
        [
            ["config", "set", "nope.key", "1"],
            ["config", "set", "cache.ttl_minutes", "soon"],
            ["config", "set", "output.format", "xml"],
        ],
    )
    def test_set_rejects(self, cli_runner, isolated_config, args) -> None:
        result = cli_runner.invoke(app, args)
        assert result.exit_code == 2

    def test_reset_with_force(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.ttl_minutes", "5"])
        result = cli_runner.invoke(app, ["--force", "config", "reset"])
        assert result.exit_code == 0
        shown = cli_runner.invoke(app, ["config", "show"])
        assert json.loads(shown.stdout)["cache"]["ttl_minutes"] == 60

    def test_reset_declined(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.ttl_minutes", "5"])
        cli_runner.invoke(app, ["config", "reset"], input="n\n")
        shown = cli_runner.invoke(app, ["config", "show"])
        assert json.loads(shown.stdout)["cache"]["ttl_minutes"] == 5

    def test_config_format_used_by_default(self, cli_runner, api_keys, fake_api) -> None:
        cli_runner.invoke(app, ["config", "set", "output.format", "json"])
        result = cli_runner.invoke(app, ["search", "rust"])
        assert json.loads(result.stdout)["requestId"] == "req-1"

    def test_request_log(self, cli_runner, api_keys, fake_api, config_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("EXA_LOG_REQUESTS", "1")
        cli_runner.invoke(app, ["search", "rust"])
        lines = (config_dir / "requests.log").read_text().splitlines()
        entry = json.loads(lines[0])
        assert entry["cmd"] == "search"
        assert entry["status"] == 200
        assert entry["key"].endswith("111")

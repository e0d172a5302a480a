# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import io
import json
from datetime import timedelta
from pathlib import Path

import pytest
from rich.console import Console

from conftest import FakeAuthGate, window
from usage_monitor import __main__ as cli
from usage_monitor.core.constants import ENV_CACHE_PATH
from usage_monitor.core.errors import AuthError, HttpError
from usage_monitor.usage.integration.api import UsageAPI


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(cli, "console", Console(file=buffer, width=120, color_system=None))
    return buffer


@pytest.fixture
def errors(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(
        cli, "err_console", Console(file=buffer, width=120, color_system=None)
    )
    return buffer


class OfflineCheckGate(FakeAuthGate):
    async def check(self) -> None:
        return None


@pytest.fixture
def host(monkeypatch, source, tmp_path):
    """Run the terminal host against in-memory collaborators."""
    monkeypatch.setattr(cli, "ClaudeCredentialsGate", lambda path: OfflineCheckGate())
    monkeypatch.setattr(cli, "AnthropicUsageSource", lambda **kwargs: source)

    async def run(*argv):
        args = cli.parse_args([*argv, "--cache-path", str(tmp_path / "cache.json")])
        return await cli.run(args)

    return run


def test_parse_args():
    args = cli.parse_args(["--once", "--json", "--credentials", "/tmp/creds.json"])

    assert args.once
    assert args.json
    assert args.credentials == "/tmp/creds.json"
    assert args.cache_path is None
    assert not args.verbose


def test_default_cache_path(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_CACHE_PATH, str(tmp_path / "cache.json"))
    assert cli._default_cache_path() == tmp_path / "cache.json"

    monkeypatch.delenv(ENV_CACHE_PATH)
    assert cli._default_cache_path() == (
        Path.home() / ".cache" / "usage_monitor" / "usage_cache.json"
    )


async def test_render_summary(make_scheduler, output):
    scheduler = make_scheduler()
    api = UsageAPI(scheduler)
    await scheduler.start()

    cli.render_summary(scheduler, api, scheduler.summary, from_cache=True)

    text = output.getvalue()
    assert "Claude usage (40%)" in text
    assert "(cached)" in text
    assert "5-Hour Usage" in text
    assert "7-Day Usage" in text
    assert "Next: in 5m" in text


async def test_render_summary_at_limit(make_scheduler, source, clock, output):
    source.default = {"five_hour": window(100, clock.now() + timedelta(hours=1))}
    scheduler = make_scheduler()
    api = UsageAPI(scheduler)
    await scheduler.start()

    cli.render_summary(scheduler, api, scheduler.summary)

    text = output.getvalue()
    assert "At limit until 13:01" in text
    assert "resets in 1h 0m" in text


def test_render_without_summary(output):
    cli.render_summary(None, None, None)

    assert "No usage data" in output.getvalue()


def test_failure_goes_to_stderr_in_json_mode(output, errors):
    cli.print_failure("HTTP error: 500", as_json=True)

    assert output.getvalue() == ""
    assert "HTTP error: 500" in errors.getvalue()


def test_failure_goes_to_stdout_in_table_mode(output, errors):
    cli.print_failure("HTTP error: 500")

    assert "HTTP error: 500" in output.getvalue()
    assert errors.getvalue() == ""


async def test_once_json_keeps_stdout_parseable_on_failure(host, source, output, errors):
    source.responses = [HttpError(500)]

    assert await host("--once", "--json") == 1

    status = json.loads(output.getvalue())
    assert status["windows"] == []
    assert "HTTP error: 500" in errors.getvalue()


async def test_once_json_prints_status(host, output, errors):
    assert await host("--once", "--json") == 0

    status = json.loads(output.getvalue())
    assert [w["key"] for w in status["windows"]] == ["five_hour", "seven_day"]
    assert errors.getvalue() == ""


async def test_extra_usage_flag_updates_then_prints(host, source, output, errors):
    assert await host("--extra-usage", "off", "--json") == 0

    assert source.update_calls == [False]
    assert source.calls == 1
    assert json.loads(output.getvalue())["windows"]
    assert errors.getvalue() == ""


async def test_extra_usage_flag_reports_failure(host, source, output, errors):
    source.update_error = AuthError(status_code=401)

    assert await host("--extra-usage", "on") == 1

    assert source.update_calls == [True]
    assert "Could not update extra usage" in errors.getvalue()
    assert output.getvalue() == ""

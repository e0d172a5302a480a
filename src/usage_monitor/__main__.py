# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Terminal host for the usage refresh engine.

    python -m usage_monitor            # watch usage, printing updates
    python -m usage_monitor --once     # fetch once and print a table
    python -m usage_monitor --once --json
    python -m usage_monitor --extra-usage off   # toggle overage billing

Signals:
    SIGUSR1 / SIGUSR2   simulate system sleep / wake
    SIGINT / SIGTERM    shut down
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Set

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .core.config import ConfigLoader
from .core.errors import UsageMonitorError
from .core.constants import (
    CACHE_FILE_NAME,
    DEFAULT_API_BASE_URL,
    ENV_API_BASE_URL,
    ENV_CACHE_PATH,
)
from .providers.anthropic_usage import AnthropicUsageSource
from .providers.claude_credentials import ClaudeCredentialsGate
from .usage.integration.api import UsageAPI
from .usage.integration.events import (
    RefreshFailed,
    SummaryUpdated,
    SystemDidWake,
    SystemWillSleep,
    UsageReset,
)
from .usage.persistence.storage import JsonFileStore, SummaryCache
from .usage.refresh.scheduler import RefreshScheduler
from .usage.tracking.display import display_title, reset_display
from .usage.types import StatusLevel, UsageSummary

lib_logger = logging.getLogger("usage_monitor")

console = Console()
err_console = Console(stderr=True)

STATUS_COLORS = {
    StatusLevel.NORMAL: "green",
    StatusLevel.WARNING: "yellow",
    StatusLevel.CRITICAL: "red",
}

# How often to look for a login while not authenticated
CREDENTIALS_RECHECK_SECONDS = 60


def _default_cache_path() -> Path:
    env_path = os.getenv(ENV_CACHE_PATH)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".cache" / "usage_monitor" / CACHE_FILE_NAME


def render_summary(
    scheduler: RefreshScheduler,
    api: UsageAPI,
    summary: Optional[UsageSummary],
    from_cache: bool = False,
) -> None:
    if summary is None:
        console.print("[yellow]No usage data. Log in with Claude Code to start.[/yellow]")
        return

    now = scheduler.clock.now()
    title = f"Claude usage ({api.menu_bar_title()})"
    if from_cache:
        title += " [dim](cached)[/dim]"

    table = Table(title=title)
    table.add_column("Window", style="cyan")
    table.add_column("Usage", justify="right")
    table.add_column("Resets")

    for window in summary.windows:
        color = STATUS_COLORS[window.status_level]
        reset = reset_display(window, now)
        if window.parse_error:
            reset = f"[red]{window.parse_error}[/red]"
        table.add_row(
            display_title(window.key),
            f"[{color}]{window.utilization}%[/{color}]",
            reset,
        )

    console.print(table)
    label = scheduler.reset_label
    if label:
        console.print(f"[red]At limit {label}[/red]")
    countdown = api.countdown_text()
    if countdown:
        console.print(f"[dim]Next: {countdown}[/dim]")


def print_failure(message: str, as_json: bool = False) -> None:
    """Report a failure. In JSON mode it goes to stderr so stdout stays parseable."""
    out = err_console if as_json else console
    out.print(f"[red]{message}[/red]")


async def watch_credentials(gate: ClaudeCredentialsGate) -> None:
    """Pick up a login that happens after launch."""
    while True:
        await asyncio.sleep(CREDENTIALS_RECHECK_SECONDS)
        if not gate.current_state().is_authenticated:
            await gate.check()


async def run(args: argparse.Namespace) -> int:
    config = ConfigLoader().load_refresh_config()

    gate = ClaudeCredentialsGate(args.credentials)
    source = AnthropicUsageSource(
        base_url=os.getenv(ENV_API_BASE_URL, DEFAULT_API_BASE_URL),
        timeout=config.request_timeout,
    )
    cache = SummaryCache(
        JsonFileStore(args.cache_path or _default_cache_path()),
        max_age=config.cache_max_age,
    )
    scheduler = RefreshScheduler(gate, source, config, cache=cache)
    api = UsageAPI(scheduler)

    if scheduler.summary is not None and not args.json:
        render_summary(scheduler, api, scheduler.summary, from_cache=True)

    def on_summary(event: SummaryUpdated) -> None:
        if not args.json:
            render_summary(scheduler, api, event.summary)

    def on_reset(event: UsageReset) -> None:
        console.print(f"[green]{display_title(event.key)} reset ({event.previous_utilization}% -> 0%)[/green]")
        if scheduler.config.reset_alert_enabled:
            console.bell()

    def on_failure(event: RefreshFailed) -> None:
        print_failure(event.message, as_json=args.json)

    if not args.once:
        scheduler.events.subscribe(SummaryUpdated, on_summary)
        scheduler.events.subscribe(UsageReset, on_reset)
    scheduler.events.subscribe(RefreshFailed, on_failure)

    await gate.check()
    try:
        if args.extra_usage:
            try:
                await scheduler.set_extra_usage_enabled(args.extra_usage == "on")
            except UsageMonitorError as e:
                print_failure(f"Could not update extra usage: {e.message}", as_json=True)
                return 1
            if args.json:
                console.print_json(data=api.get_status())
            else:
                render_summary(scheduler, api, scheduler.summary)
            return 0

        if args.once:
            await scheduler.start()
            if args.json:
                console.print_json(data=api.get_status())
            else:
                render_summary(scheduler, api, scheduler.summary)
            return 0 if scheduler.summary is not None else 1

        await scheduler.start()
        await _serve(scheduler, gate)
        return 0
    finally:
        scheduler.stop()
        await source.close()


async def _serve(scheduler: RefreshScheduler, gate: ClaudeCredentialsGate) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    pending: Set[asyncio.Task] = set()

    def post(event) -> None:
        task = loop.create_task(scheduler.handle_event(event))
        pending.add(task)
        task.add_done_callback(pending.discard)

    handlers = [
        ("SIGINT", stop_event.set),
        ("SIGTERM", stop_event.set),
        ("SIGUSR1", lambda: post(SystemWillSleep())),
        ("SIGUSR2", lambda: post(SystemDidWake())),
    ]
    for name, handler in handlers:
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, handler)
        except NotImplementedError:
            lib_logger.debug(f"Signal handlers unsupported; {name} not bound")

    watcher = loop.create_task(watch_credentials(gate))
    try:
        await stop_event.wait()
        lib_logger.info("Shutting down")
    finally:
        watcher.cancel()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="usage_monitor", description="Watch Claude plan usage windows."
    )
    parser.add_argument("--once", action="store_true", help="Fetch once and exit")
    parser.add_argument("--json", action="store_true", help="Print status as JSON")
    parser.add_argument("--credentials", help="Path to the Claude credentials file")
    parser.add_argument("--cache-path", help="Path to the usage cache file")
    parser.add_argument(
        "--extra-usage",
        choices=("on", "off"),
        help="Turn extra usage (overage billing) on or off, then exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""CLI handling for tmux-buffer-sync.

This module provides the command-line interface, handling option parsing
via click, configuration resolution, logging configuration, and dispatching
to the daemon or to one-shot operations.

Usage:
    tmux-buffer-sync [OPTIONS] daemon
    tmux-buffer-sync [OPTIONS] sync-now
    tmux-buffer-sync [OPTIONS] sync-status
    tmux-buffer-sync [OPTIONS] notify-change
"""

import asyncio
import sys

import click

from tmuxbufsync.main_logging import configure_logging

ENV_PREFIX = "TMUX_BUFFER_SYNC"


@click.group()
@click.option("--namespace", envvar=f"{ENV_PREFIX}_NAMESPACE", help="Remote namespace to sync with")
@click.option("--count", type=int, envvar=f"{ENV_PREFIX}_COUNT", help="Buffers retained and exchanged per round")
@click.option("--frequency", type=float, envvar=f"{ENV_PREFIX}_FREQUENCY", help="Seconds between periodic syncs")
@click.option("--server-id", envvar=f"{ENV_PREFIX}_SERVER_ID", help="Origin identifier of this server")
@click.option("--debounce", type=float, envvar=f"{ENV_PREFIX}_DEBOUNCE", help="Seconds to wait after a copy before pushing")
@click.option("--timeout", "command_timeout", type=float, envvar=f"{ENV_PREFIX}_TIMEOUT", help="Seconds allowed per tmux/atuin command")
@click.option("--retries", "retry_attempts", type=int, envvar=f"{ENV_PREFIX}_RETRIES", help="Attempts per remote call")
@click.option("--atuin-sync/--no-atuin-sync", default=None, envvar=f"{ENV_PREFIX}_ATUIN_SYNC", help="Run `atuin sync` before listing")
@click.option("--state-dir", type=click.Path(file_okay=False), envvar=f"{ENV_PREFIX}_STATE_DIR", help="Directory for persisted sync state")
@click.option("--socket", "socket_path", type=click.Path(), envvar=f"{ENV_PREFIX}_SOCKET", help="Daemon control socket path")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool, **options: object) -> None:
    """Share tmux paste buffers between servers through atuin's key-value store."""
    from tmuxbufsync.config import build_config, read_tmux_options
    from tmuxbufsync.errors import ConfigError
    from tmuxbufsync.tmux_source import TmuxBufferSource

    configure_logging(verbose)

    try:
        tmux_values = asyncio.run(read_tmux_options(TmuxBufferSource()))
        ctx.obj = build_config(options, tmux_values)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e


@main.command()
@click.pass_obj
def daemon(config) -> None:
    """Run periodic and event-driven sync until interrupted."""
    from tmuxbufsync.daemon import run_daemon
    from tmuxbufsync.errors import ControlSocketError

    try:
        asyncio.run(run_daemon(config))
    except ControlSocketError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("sync-now")
@click.pass_obj
def sync_now(config) -> None:
    """Pull then push immediately; exit 1 on failure."""
    from tmuxbufsync.control_client import DaemonUnavailable, send_request
    from tmuxbufsync.daemon import run_once
    from tmuxbufsync.protocol import REQUEST_SYNC_NOW, ProtocolError

    try:
        reply = asyncio.run(send_request(str(config.socket_path), REQUEST_SYNC_NOW))
    except DaemonUnavailable:
        result = asyncio.run(run_once(config))
        reply = {
            "ok": result.ok,
            "error": result.error,
            "pulled": result.pulled,
            "pushed": result.pushed,
            "evicted": result.evicted,
        }
    except ProtocolError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not reply.get("ok"):
        click.echo(f"Error: {reply.get('error') or 'sync failed'}", err=True)
        sys.exit(1)
    click.echo(
        f"Synced {config.namespace}: pulled {reply.get('pulled', 0)}, "
        f"pushed {reply.get('pushed', 0)}, evicted {reply.get('evicted', 0)}"
    )


@main.command("sync-status")
@click.pass_obj
def sync_status(config) -> None:
    """Show the last sync times, counts and error."""
    from tmuxbufsync.control_client import DaemonUnavailable, send_request
    from tmuxbufsync.daemon import load_status
    from tmuxbufsync.protocol import REQUEST_SYNC_STATUS, ProtocolError
    from tmuxbufsync.status import Status, render_status

    try:
        reply = asyncio.run(send_request(str(config.socket_path), REQUEST_SYNC_STATUS))
        status = Status.from_dict(reply["status"])
    except (DaemonUnavailable, ProtocolError, KeyError, TypeError):
        status = load_status(config)
    click.echo(render_status(status))


@main.command("notify-change")
@click.pass_obj
def notify_change(config) -> None:
    """Tell a running daemon that a buffer was copied."""
    import logging

    from tmuxbufsync.control_client import DaemonUnavailable, send_request
    from tmuxbufsync.protocol import REQUEST_BUFFER_CHANGED, ProtocolError

    try:
        asyncio.run(send_request(str(config.socket_path), REQUEST_BUFFER_CHANGED))
    except (DaemonUnavailable, ProtocolError) as e:
        logging.getLogger(__name__).debug("Change not delivered: %s", e)

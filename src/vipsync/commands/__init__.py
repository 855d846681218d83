"""Agent modes and shared command helpers."""

import os

import typer

from vipsync.core import VipSyncError, ExecutionContext, console


def handle_error(error: VipSyncError) -> None:
    """Handle a VipSyncError by printing formatted error and exiting."""
    console.error(error.message)

    if error.details:
        for detail in error.details:
            console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        console.hint(error.hint)

    raise typer.Exit(error.exit_code)


def check_root(ctx: ExecutionContext, mode: str) -> None:
    """Exit with code 6 unless running as root or in dry-run mode."""
    if os.geteuid() != 0 and not ctx.dry_run:
        ctx.console.error("This operation requires root privileges")
        ctx.console.hint(f"Run with: sudo vipsync {mode}")
        raise typer.Exit(6)

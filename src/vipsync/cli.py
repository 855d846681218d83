"""Main CLI entry point using Typer.

Usage: vipsync [OPTIONS] {start|cleanup}
"""

from pathlib import Path
from typing import Optional, Annotated

import typer
from rich.console import Console

from vipsync import __version__
from vipsync.core.config import DEFAULT_CONFIG_PATH
from vipsync.core.context import create_context
from vipsync.commands.start import start
from vipsync.commands.cleanup import cleanup


USAGE = "Usage: vipsync {start|cleanup}"

MODES = {
    "start": start,
    "cleanup": cleanup,
}


app = typer.Typer(
    name="vipsync",
    help="Redirect cloud load balancer VIPs to local listeners.",
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


# Type aliases for common options
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Preview rule changes without applying them.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Suppress non-essential output. Only show errors.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"vipsync version {__version__}")
        raise typer.Exit()


@app.command(context_settings={"allow_extra_args": True})
def main(
    cli_ctx: typer.Context,
    mode: Annotated[
        Optional[str],
        typer.Argument(help="start: run the reconcile loop. cleanup: flush vip rules."),
    ] = None,
    config: ConfigOption = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Keep iptables VIP redirects in sync with the metadata server.

    [bold]Examples:[/bold]
        vipsync start
        vipsync start --dry-run -vv
        vipsync cleanup
    """
    handler = MODES.get(mode or "")
    if handler is None or cli_ctx.args:
        typer.echo(USAGE)
        raise typer.Exit(1)

    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    handler(ctx)


if __name__ == "__main__":
    app()

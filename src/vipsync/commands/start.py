"""Agent start mode.

Bootstraps the chains and reconciles forever. Meant to run under a
supervisor (systemd) that restarts it if a rule mutation fails.
"""

import typer

from vipsync.commands import check_root, handle_error
from vipsync.core import VipSyncError, ExecutionContext
from vipsync.services.reconciler import Reconciler


def start(ctx: ExecutionContext) -> None:
    """Run the reconciliation loop until terminated."""
    check_root(ctx, "start")

    try:
        reconciler = Reconciler.from_context(ctx)

        ctx.console.summary("vipsync", {
            "Metadata": ctx.config.metadata.base_url,
            "Chains": f"{ctx.config.firewall.chain_name}, {ctx.config.firewall.local_chain_name}",
            "Drain markers": ctx.config.drain.run_dir,
            "Drained": ", ".join(reconciler.builder.markers.list_down()) or "none",
            "Waiter": type(reconciler.waiter).__name__,
            "Dry run": ctx.dry_run,
        })

        reconciler.start()

    except KeyboardInterrupt:
        ctx.console.warn("Interrupted, leaving vip rules in place")
        raise typer.Exit(130)
    except VipSyncError as e:
        handle_error(e)

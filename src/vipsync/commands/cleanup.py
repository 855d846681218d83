"""Agent cleanup mode - flush the managed vip chains."""

from vipsync.core import VipSyncError, ExecutionContext, CommandExecutor
from vipsync.core.config import FirewallConfig
from vipsync.services.iptables import IptablesService


def cleanup(ctx: ExecutionContext) -> None:
    """Remove every vip redirect rule.

    Cleanup always exits 0. An unusable configuration falls back to the
    default chain names, and flush failures (missing chain, no
    permission) are only warned about, so cleanup is safe to run on an
    already clean node.
    """
    try:
        firewall = ctx.config.firewall
    except VipSyncError as e:
        ctx.console.warn(f"{e.message}; flushing the default chains")
        for detail in e.details:
            ctx.console.verbose(detail)
        firewall = FirewallConfig()

    iptables = IptablesService(ctx, CommandExecutor(ctx), firewall)

    try:
        iptables.flush()
    except VipSyncError as e:
        # e.g. iptables not installed: nothing to clean
        ctx.console.warn(f"Cleanup incomplete: {e.message}")
        return

    ctx.console.success("Vip rules cleared")

"""Reconciliation control loop.

start: bootstrap once, then forever build desired state, converge the
rule sets and wait. cleanup: flush the managed chains once.
"""

from typing import Optional

from vipsync.core.context import ExecutionContext
from vipsync.core.executor import CommandExecutor
from vipsync.services.bootstrap import Bootstrapper
from vipsync.services.desired import DesiredState, DesiredStateBuilder
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.iptables import IptablesService
from vipsync.services.metadata import MetadataClient
from vipsync.services.waiter import Waiter, select_waiter


class Reconciler:
    """Wires the services together and drives the cycles."""

    def __init__(
        self,
        ctx: ExecutionContext,
        builder: DesiredStateBuilder,
        iptables: IptablesService,
        bootstrapper: Bootstrapper,
        waiter: Waiter,
    ) -> None:
        self.ctx = ctx
        self.builder = builder
        self.iptables = iptables
        self.bootstrapper = bootstrapper
        self.waiter = waiter

    @classmethod
    def from_context(cls, ctx: ExecutionContext) -> "Reconciler":
        """Build a reconciler from the context's configuration."""
        config = ctx.config
        executor = CommandExecutor(ctx)
        markers = DrainMarkerStore(ctx, config.drain)
        metadata = MetadataClient(ctx, config.metadata)
        iptables = IptablesService(ctx, executor, config.firewall)

        return cls(
            ctx,
            builder=DesiredStateBuilder(ctx, metadata, markers),
            iptables=iptables,
            bootstrapper=Bootstrapper(ctx, iptables, markers),
            waiter=select_waiter(ctx, executor, markers, config.scheduler),
        )

    def run_cycle(self) -> DesiredState:
        """Run one full reconciliation.

        Returns:
            The desired state the rule sets were converged on

        Raises:
            FirewallError: If a rule check or mutation fails
        """
        desired = self.builder.build()
        report = self.iptables.reconcile(desired)

        if report.changed:
            self.ctx.console.success(
                f"Applied vip rules: {report.added} added, {report.removed} removed "
                f"({len(desired)} vip(s) known)"
            )
        else:
            self.ctx.console.verbose(f"Vip rules up to date ({len(desired)} vip(s) known)")

        self.ctx.console.debug("done applying vip rules")
        return desired

    def start(self, max_cycles: Optional[int] = None) -> None:
        """Bootstrap and reconcile until interrupted.

        Args:
            max_cycles: Stop after this many cycles (None = run forever)
        """
        self.ctx.console.info("Initializing vip chains")
        self.bootstrapper.initialize()

        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            desired = self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self.waiter.wait(desired)

    def cleanup(self) -> None:
        """Flush both managed chains."""
        self.iptables.flush()

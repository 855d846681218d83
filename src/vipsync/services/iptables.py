"""Iptables rule store for VIP redirects.

Provides an idempotent interface over the two managed NAT chains:
- external: REDIRECT for every VIP, entered from PREROUTING
- local: REDIRECT for every VIP not drained, entered from OUTPUT

Every mutation is preceded by an existence check, so repeated runs never
duplicate rules. All invocations pass -w to wait for the xtables lock.
"""

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from vipsync.core.config import FirewallConfig
from vipsync.core.context import ExecutionContext
from vipsync.core.executor import CommandExecutor, CommandResult
from vipsync.core.exceptions import FirewallError
from vipsync.services.desired import DesiredState, VipStatus


DESTINATION_FLAGS = ("-d", "--dst", "--destination")


class Table(str, Enum):
    """Iptables table."""
    NAT = "nat"
    FILTER = "filter"


class RuleSet(str, Enum):
    """Managed set of per-VIP redirect rules."""
    EXTERNAL = "external"
    LOCAL = "local"

    @property
    def audience(self) -> str:
        """Who the rule set serves, for log messages."""
        return "external clients" if self is RuleSet.EXTERNAL else "local clients"


@dataclass
class ReconcileReport:
    """Mutations applied by one reconciliation pass."""
    removed: int = 0
    added: int = 0

    @property
    def changed(self) -> bool:
        """Check if any rule was touched."""
        return bool(self.removed or self.added)


def redirect_rule(address: str) -> list[str]:
    """Rule specification redirecting one VIP to the local listener."""
    return ["--dst", address, "-j", "REDIRECT"]


def parse_rule_destinations(output: str, chain: str) -> list[str]:
    """Extract destination addresses from iptables -S output.

    Example input:
        -N gcp-vips
        -A gcp-vips -d 10.0.0.1/32 -j REDIRECT

    Args:
        output: Output of `iptables -S <chain>`
        chain: Chain whose append rules are inspected

    Returns:
        Addresses in rule order, prefix length stripped
    """
    addresses = []

    for line in output.splitlines():
        try:
            tokens = shlex.split(line)
        except ValueError:
            continue
        if len(tokens) < 2 or tokens[0] != "-A" or tokens[1] != chain:
            continue

        for i, token in enumerate(tokens[:-1]):
            if token in DESTINATION_FLAGS and (i == 0 or tokens[i - 1] != "!"):
                addresses.append(tokens[i + 1].split("/")[0])
                break

    return addresses


class IptablesService:
    """Idempotent access to the managed iptables chains."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        config: FirewallConfig,
    ) -> None:
        """Initialize iptables service.

        Args:
            ctx: Execution context
            executor: Command executor
            config: Chain names and binary
        """
        self.ctx = ctx
        self.executor = executor
        self.config = config

    def chain_for(self, rule_set: RuleSet) -> str:
        """Name of the chain backing a rule set."""
        if rule_set is RuleSet.EXTERNAL:
            return self.config.chain_name
        return self.config.local_chain_name

    # =========================================================================
    # Primitive Operations
    # =========================================================================

    def chain_exists(self, table: Table, chain: str) -> bool:
        """Check if a chain exists in a table."""
        result = self._run_iptables(table, ["-S", chain], check=False, read_only=True)
        return result.success

    def ensure_chain(self, table: Table, chain: str) -> bool:
        """Create a chain if it does not exist.

        Returns:
            True if the chain was created
        """
        if self.chain_exists(table, chain):
            self.ctx.console.debug(f"Chain {table.value}/{chain} already exists")
            return False

        self.ctx.console.step(f"Creating chain {table.value}/{chain}")
        self._run_iptables(table, ["-N", chain])
        return True

    def rule_exists(self, table: Table, chain: str, spec: list[str]) -> bool:
        """Check if an equivalent rule is present (iptables -C)."""
        result = self._run_iptables(table, ["-C", chain] + spec, check=False, read_only=True)
        return result.success

    def ensure_rule(
        self,
        table: Table,
        chain: str,
        spec: list[str],
        *,
        description: Optional[str] = None,
    ) -> bool:
        """Append a rule unless an equivalent one exists.

        Returns:
            True if the rule was appended

        Raises:
            FirewallError: If the append fails
        """
        if self.rule_exists(table, chain, spec):
            return False

        self.ctx.console.step(description or f"Adding rule to {chain}: {shlex.join(spec)}")
        self._run_iptables(table, ["-A", chain] + spec)
        return True

    def delete_rule(self, table: Table, chain: str, spec: list[str]) -> None:
        """Delete one rule matching spec exactly.

        Raises:
            FirewallError: If the delete fails
        """
        self._run_iptables(table, ["-D", chain] + spec)

    def list_redirect_targets(self, rule_set: RuleSet) -> list[str]:
        """Addresses currently redirected by a rule set.

        A missing or unreadable chain is reported as empty.
        """
        chain = self.chain_for(rule_set)
        result = self._run_iptables(Table.NAT, ["-S", chain], check=False, read_only=True)
        if not result.success:
            self.ctx.console.debug(f"Cannot list {chain}: {result.stderr.strip()}")
            return []
        return parse_rule_destinations(result.stdout, chain)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def remove_stale(self, desired: DesiredState) -> int:
        """Delete redirects that the desired state no longer calls for.

        External rules go when their VIP is gone. Local rules go when their
        VIP is gone or drained.

        Returns:
            Number of rules removed
        """
        removed = 0

        for rule_set in RuleSet:
            chain = self.chain_for(rule_set)
            for address in self.list_redirect_targets(rule_set):
                status = desired.get(address)
                stale = status is None or (
                    rule_set is RuleSet.LOCAL and status == VipStatus.DOWN
                )
                if not stale:
                    continue

                self.ctx.console.step(f"Removing stale vip {address} for {rule_set.audience}")
                self.delete_rule(Table.NAT, chain, redirect_rule(address))
                removed += 1

        return removed

    def add_rules(self, desired: DesiredState) -> int:
        """Ensure redirects exist for every desired VIP.

        Returns:
            Number of rules added
        """
        added = 0

        for address, status in desired.items():
            targets = [RuleSet.EXTERNAL]
            if status != VipStatus.DOWN:
                targets.append(RuleSet.LOCAL)

            for rule_set in targets:
                self.ctx.console.verbose(f"Ensuring rule for {address} for {rule_set.audience}")
                if self.ensure_rule(
                    Table.NAT,
                    self.chain_for(rule_set),
                    redirect_rule(address),
                    description=f"Adding vip {address} for {rule_set.audience}",
                ):
                    added += 1

        return added

    def reconcile(self, desired: DesiredState) -> ReconcileReport:
        """Converge both rule sets on the desired state.

        Stale removal runs first so a drained VIP loses its local rule in
        the same pass that keeps its external rule.
        """
        report = ReconcileReport()
        report.removed = self.remove_stale(desired)
        report.added = self.add_rules(desired)
        return report

    def flush(self) -> None:
        """Remove all rules from both managed chains (best effort)."""
        for rule_set in RuleSet:
            chain = self.chain_for(rule_set)
            self.ctx.console.step(f"Flushing chain {chain}")
            result = self._run_iptables(Table.NAT, ["-F", chain], check=False)
            if not result.success:
                self.ctx.console.warn(
                    f"Could not flush {chain}: {result.stderr.strip() or 'unknown error'}"
                )

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _run_iptables(
        self,
        table: Table,
        args: list[str],
        *,
        check: bool = True,
        read_only: bool = False,
    ) -> CommandResult:
        """Run iptables command.

        Args:
            table: Table to operate on
            args: Command arguments
            check: Raise on non-zero exit
            read_only: Command only inspects state

        Returns:
            CommandResult
        """
        cmd = [self.config.iptables_binary, "-w", "-t", table.value] + args
        result = self.executor.run(cmd, check=False, read_only=read_only)

        if check and not result.success:
            raise FirewallError(
                f"iptables command failed: {shlex.join(cmd)}",
                chain=args[1] if len(args) > 1 else None,
                rule=shlex.join(args[2:]) if len(args) > 2 else None,
                details=[result.stderr.strip()] if result.stderr.strip() else None,
            )

        return result

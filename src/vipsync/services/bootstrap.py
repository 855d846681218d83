"""One-time setup of the chains and structural rules.

The GCP L3 load balancer does not DNAT: packets arrive with the VIP as
destination. Rather than adding VIPs to the local routing table, the
agent REDIRECTs them and lets conntrack carry established flows, so
removing a VIP drains instead of resetting connections.
"""

from vipsync.core.config import FirewallConfig
from vipsync.core.context import ExecutionContext
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.iptables import IptablesService, Table


def entry_rules(config: FirewallConfig) -> list[tuple[Table, str, list[str]]]:
    """Jump rules from the built-in NAT chains into the managed chains."""
    return [
        (Table.NAT, "PREROUTING", [
            "-m", "comment", "--comment", "gcp LB vip DNAT",
            "-j", config.chain_name,
        ]),
        (Table.NAT, "OUTPUT", [
            "-m", "comment", "--comment", "gcp LB vip DNAT for local clients",
            "-j", config.local_chain_name,
        ]),
    ]


def established_rule() -> tuple[Table, str, list[str]]:
    """Accept existing flows to non-local addresses.

    Flows with a conntrack entry keep being redirected after their VIP's
    REDIRECT rule is deleted; this rule lets them through INPUT.
    """
    return (Table.FILTER, "INPUT", [
        "-m", "comment", "--comment", "gcp LB vip existing",
        "-m", "addrtype", "!", "--dst-type", "LOCAL",
        "-m", "state", "--state", "ESTABLISHED,RELATED",
        "-j", "ACCEPT",
    ])


def healthcheck_rules(config: FirewallConfig) -> list[tuple[Table, str, list[str]]]:
    """Drop forwarded health-checker traffic.

    Health checks poll the VIP continuously. While the VIP is not
    redirected here that traffic can hairpin through FORWARD and leave
    stale conntrack entries. Health checks are only meant for the host,
    so they are still accepted on INPUT.
    """
    return [
        (Table.FILTER, "FORWARD", [
            "-m", "comment", "--comment", "gcp HealthCheck traffic",
            "-s", cidr,
            "-j", "DROP",
        ])
        for cidr in config.healthcheck_ranges
    ]


class Bootstrapper:
    """Creates everything the per-cycle reconciliation relies on."""

    def __init__(
        self,
        ctx: ExecutionContext,
        iptables: IptablesService,
        markers: DrainMarkerStore,
    ) -> None:
        self.ctx = ctx
        self.iptables = iptables
        self.markers = markers

    def initialize(self) -> None:
        """Set up chains, jumps and structural rules (idempotent).

        Raises:
            FirewallError: If any chain or rule cannot be created
        """
        config = self.iptables.config

        self.iptables.ensure_chain(Table.NAT, config.chain_name)
        self.iptables.ensure_chain(Table.NAT, config.local_chain_name)

        structural = entry_rules(config) + [established_rule()] + healthcheck_rules(config)
        for table, chain, spec in structural:
            self.iptables.ensure_rule(table, chain, spec)

        self.markers.ensure_directory()

"""Desired VIP state for one reconciliation cycle."""

from enum import Enum

from vipsync.core.context import ExecutionContext
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.metadata import MetadataClient


class VipStatus(str, Enum):
    """Administrative status of a VIP."""
    ACTIVE = "active"
    DOWN = "down"


# address -> status; rebuilt from scratch every cycle
DesiredState = dict[str, VipStatus]


class DesiredStateBuilder:
    """Combines metadata and drain markers into a DesiredState."""

    def __init__(
        self,
        ctx: ExecutionContext,
        metadata: MetadataClient,
        markers: DrainMarkerStore,
    ) -> None:
        self.ctx = ctx
        self.metadata = metadata
        self.markers = markers

    def build(self) -> DesiredState:
        """Compute the VIP -> status mapping for this cycle.

        A VIP forwarded to several interfaces appears once.
        """
        desired: DesiredState = {}

        for vip in self.metadata.list_forwarded_vips():
            if vip.address in desired:
                continue
            if self.markers.is_down(vip.address):
                self.ctx.console.info(
                    f"{vip.address} is manually marked as down, skipping for internal clients"
                )
                desired[vip.address] = VipStatus.DOWN
            else:
                self.ctx.console.verbose(
                    f"Processing route for NIC {vip.interface}{vip.mac or ''} for {vip.address}"
                )
                desired[vip.address] = VipStatus.ACTIVE

        return desired

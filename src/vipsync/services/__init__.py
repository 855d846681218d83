"""Service abstractions for the metadata server, drain markers and iptables."""

from vipsync.services.metadata import MetadataClient
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.desired import DesiredStateBuilder, VipStatus
from vipsync.services.iptables import IptablesService
from vipsync.services.bootstrap import Bootstrapper
from vipsync.services.waiter import select_waiter
from vipsync.services.reconciler import Reconciler

__all__ = [
    "MetadataClient",
    "DrainMarkerStore",
    "DesiredStateBuilder",
    "VipStatus",
    "IptablesService",
    "Bootstrapper",
    "select_waiter",
    "Reconciler",
]

"""Drain marker store.

Operators mark a VIP administratively down by creating
<run_dir>/<address>.down. The file content is ignored and the agent
never creates or removes markers itself.
"""

from pathlib import Path

from vipsync.core.config import DrainConfig
from vipsync.core.context import ExecutionContext


class DrainMarkerStore:
    """Read-only view of the drain marker directory."""

    def __init__(self, ctx: ExecutionContext, config: DrainConfig) -> None:
        self.ctx = ctx
        self.run_dir = Path(config.run_dir)
        self.suffix = config.marker_suffix

    def marker_path(self, address: str) -> Path:
        """Path of the marker file for an address."""
        return self.run_dir / f"{address}{self.suffix}"

    def is_down(self, address: str) -> bool:
        """Check whether a VIP is marked down right now (never cached)."""
        return self.marker_path(address).exists()

    def list_down(self) -> list[str]:
        """Addresses of all markers currently present."""
        if not self.run_dir.is_dir():
            return []
        return sorted(
            path.name[: -len(self.suffix)]
            for path in self.run_dir.iterdir()
            if path.name.endswith(self.suffix) and len(path.name) > len(self.suffix)
        )

    def ensure_directory(self) -> None:
        """Create the marker directory if missing."""
        if self.run_dir.is_dir():
            return

        self.ctx.console.step(f"Creating drain marker directory {self.run_dir}")
        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"mkdir -p {self.run_dir}")
            return

        self.run_dir.mkdir(parents=True, exist_ok=True)

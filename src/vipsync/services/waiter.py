"""Waiting between reconciliation cycles.

Two strategies share one interface:
- NotifyWaiter blocks on inotifywait until the marker directory changes
  or the watch timeout passes.
- PollWaiter checks marker files a bounded number of times and returns
  early when a VIP's drain state flips.

The strategy is chosen once at startup by select_waiter().
"""

import shutil
import time
from abc import ABC, abstractmethod
from typing import Callable

from vipsync.core.config import SchedulerConfig
from vipsync.core.context import ExecutionContext
from vipsync.core.executor import CommandExecutor
from vipsync.core.exceptions import ExecutionError
from vipsync.services.desired import DesiredState, VipStatus
from vipsync.services.drain import DrainMarkerStore


INOTIFY_ERROR = 1


class Waiter(ABC):
    """Blocks until the next reconciliation cycle should start."""

    @abstractmethod
    def wait(self, desired: DesiredState) -> None:
        """Return when the next cycle is due."""
        ...


class NotifyWaiter(Waiter):
    """Wait for any change under the marker directory, bounded by a timeout."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        markers: DrainMarkerStore,
        config: SchedulerConfig,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.markers = markers
        self.config = config
        self._fallback = PollWaiter(ctx, markers, config)

    def command(self) -> list[str]:
        """inotifywait invocation for one wait."""
        return [
            self.config.watch_command,
            "-t", str(self.config.watch_timeout),
            "-r", str(self.markers.run_dir),
        ]

    def wait(self, desired: DesiredState) -> None:
        try:
            result = self.executor.run(
                self.command(),
                check=False,
                read_only=True,
                # inotifywait enforces the bound; this only guards against a hang
                timeout=self.config.watch_timeout + 5,
            )
        except ExecutionError as e:
            self.ctx.console.warn(f"Watch on {self.markers.run_dir} did not return: {e.message}")
            return

        # 0 = change, 2 = timeout; 1 = setup error, which would return instantly
        if result.return_code == INOTIFY_ERROR:
            self.ctx.console.warn(
                f"{self.config.watch_command} failed: {result.stderr.strip() or 'unknown error'}"
            )
            self._fallback.wait(desired)


class PollWaiter(Waiter):
    """Poll marker files for drain state changes."""

    def __init__(
        self,
        ctx: ExecutionContext,
        markers: DrainMarkerStore,
        config: SchedulerConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.ctx = ctx
        self.markers = markers
        self.config = config
        self._sleep = sleep

    def drain_state_changed(self, desired: DesiredState) -> bool:
        """Check if any VIP gained or lost its marker since the cycle began."""
        for address, status in desired.items():
            marked = self.markers.is_down(address)
            if status != VipStatus.DOWN and marked:
                self.ctx.console.info(f"New downfile detected for {address}")
                return True
            if status == VipStatus.DOWN and not marked:
                self.ctx.console.info(f"Downfile disappeared for {address}")
                return True
        return False

    def wait(self, desired: DesiredState) -> None:
        for _ in range(self.config.poll_iterations):
            if self.drain_state_changed(desired):
                return
            self._sleep(self.config.poll_interval)


def select_waiter(
    ctx: ExecutionContext,
    executor: CommandExecutor,
    markers: DrainMarkerStore,
    config: SchedulerConfig,
) -> Waiter:
    """Pick NotifyWaiter when inotifywait is installed, else PollWaiter."""
    if shutil.which(config.watch_command):
        ctx.console.debug(f"Watching {markers.run_dir} with {config.watch_command}")
        return NotifyWaiter(ctx, executor, markers, config)

    ctx.console.verbose(
        f"{config.watch_command} not found, polling drain markers every "
        f"{config.poll_interval}s"
    )
    return PollWaiter(ctx, markers, config)

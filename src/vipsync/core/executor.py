"""Command execution with dry-run support.

Provides:
- Safe command execution with output capture
- Dry-run mode support
- Timeouts
"""

import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional

from vipsync.core.context import ExecutionContext
from vipsync.core.exceptions import ExecutionError, PrerequisiteError


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0


class CommandExecutor:
    """Safe command execution with dry-run support and output capture.

    Features:
    - Dry-run mode shows what would happen
    - Read-only commands still run in dry-run so diffs stay accurate
    - Output capture for processing
    - Timeout support
    """

    def __init__(self, ctx: ExecutionContext) -> None:
        """Initialize executor with context.

        Args:
            ctx: Execution context with flags
        """
        self.ctx = ctx

    def run(
        self,
        command: list[str],
        *,
        check: bool = True,
        read_only: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Execute a command safely.

        Args:
            command: Command as list of strings
            check: Raise exception on non-zero exit
            read_only: Command does not change system state
            timeout: Command timeout in seconds

        Returns:
            CommandResult with output

        Raises:
            ExecutionError: If command fails and check=True
            PrerequisiteError: If the program is not installed
        """
        cmd_display = shlex.join(command)
        self.ctx.console.debug(f"Running: {cmd_display}")

        if self.ctx.dry_run and not read_only:
            self.ctx.console.dry_run_msg(f"Run: {cmd_display}")
            return CommandResult(
                command=command,
                return_code=0,
                stdout="",
                stderr="",
            )

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {cmd_display}",
                command=cmd_display,
            )
        except FileNotFoundError as e:
            raise PrerequisiteError(
                f"Command not found: {command[0]}",
                hint=f"Install {command[0]} or fix PATH",
                details=[str(e)],
            ) from e

        cmd_result = CommandResult(
            command=command,
            return_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

        if check and result.returncode != 0:
            raise ExecutionError(
                f"Command failed: {cmd_display}",
                command=cmd_display,
                return_code=result.returncode,
                stderr=result.stderr,
            )

        return cmd_result

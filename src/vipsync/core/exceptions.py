"""Custom exceptions for vipsync.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class VipSyncError(Exception):
    """Base exception for all vipsync errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(VipSyncError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(VipSyncError):
    """Input validation errors.

    Raised when:
    - Invalid IPv4 address
    - Invalid CIDR notation
    - Invalid URLs or paths
    """
    exit_code = 3


class ExecutionError(VipSyncError):
    """Command execution failures.

    Raised when:
    - Shell command returns non-zero exit code
    - Shell command times out
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class PrerequisiteError(VipSyncError):
    """Missing prerequisites.

    Raised when:
    - Required command not found (iptables)
    """
    exit_code = 6


# Domain-specific exceptions

class FirewallError(VipSyncError):
    """Firewall/iptables errors.

    Raised when:
    - iptables check, append or delete fails
    - Chain creation fails
    """
    exit_code = 15

    def __init__(
        self,
        message: str,
        *,
        rule: Optional[str] = None,
        chain: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.rule = rule
        self.chain = chain

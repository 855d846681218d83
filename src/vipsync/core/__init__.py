"""Core framework components for vipsync."""

from vipsync.core.exceptions import (
    VipSyncError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    PrerequisiteError,
    FirewallError,
)

from vipsync.core.context import ExecutionContext, create_context
from vipsync.core.output import console, Console, Verbosity
from vipsync.core.config import AppConfig, AgentConfig
from vipsync.core.executor import CommandExecutor, CommandResult

__all__ = [
    # Exceptions
    "VipSyncError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "PrerequisiteError",
    "FirewallError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "AgentConfig",
    # Executor
    "CommandExecutor",
    "CommandResult",
]

"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vipsync.core.exceptions import ConfigurationError, ValidationError
from vipsync.core.validation import validate_cidr, validate_path, validate_url


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/vipsync/config.yaml")
DEFAULT_RUN_DIR = Path("/run/cloud-routes")
DEFAULT_METADATA_URL = "http://metadata.google.internal/computeMetadata/v1/instance/"

# Documented GCP health checker source ranges
DEFAULT_HEALTHCHECK_RANGES = ["35.191.0.0/16", "130.211.0.0/22"]


class MetadataConfig(BaseModel):
    """Metadata server access configuration."""

    base_url: str = DEFAULT_METADATA_URL
    flavor_header: str = "Metadata-Flavor"
    flavor_value: str = "Google"
    timeout: float = 10.0

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        try:
            v = validate_url(v)
        except ValidationError as e:
            raise ValueError(e.message) from e
        # Paths are appended verbatim
        if not v.endswith("/"):
            v += "/"
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


class FirewallConfig(BaseModel):
    """iptables chain and bootstrap rule configuration."""

    chain_name: str = "gcp-vips"
    local_chain_suffix: str = "-local"
    healthcheck_ranges: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HEALTHCHECK_RANGES)
    )
    iptables_binary: str = "iptables"

    @field_validator("chain_name")
    @classmethod
    def validate_chain_name(cls, v: str) -> str:
        # iptables limits chain names to 28 characters
        if not v or len(v) > 28 or " " in v:
            raise ValueError("chain_name must be 1-28 characters without spaces")
        return v

    @field_validator("healthcheck_ranges")
    @classmethod
    def validate_ranges(cls, v: list[str]) -> list[str]:
        validated = []
        for cidr in v:
            try:
                validated.append(validate_cidr(cidr))
            except ValidationError as e:
                raise ValueError(e.message) from e
        return validated

    @property
    def local_chain_name(self) -> str:
        """Chain holding redirects for locally-originated traffic."""
        return f"{self.chain_name}{self.local_chain_suffix}"


class DrainConfig(BaseModel):
    """Drain marker directory configuration."""

    run_dir: Path = DEFAULT_RUN_DIR
    marker_suffix: str = ".down"

    @field_validator("run_dir")
    @classmethod
    def validate_run_dir(cls, v: Path) -> Path:
        try:
            validate_path(str(v))
        except ValidationError as e:
            raise ValueError(e.message) from e
        return v

    @field_validator("marker_suffix")
    @classmethod
    def validate_marker_suffix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("marker_suffix must be a non-empty file suffix")
        return v


class SchedulerConfig(BaseModel):
    """Timing between reconciliation cycles.

    The watch timeout and the polling bounds are independent: polling
    is deliberately tighter so drain actions are noticed within a few
    seconds even without inotify.
    """

    watch_timeout: int = 30
    poll_iterations: int = 6
    poll_interval: float = 1.0
    watch_command: str = "inotifywait"

    @field_validator("watch_timeout", "poll_iterations")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("poll_interval cannot be negative")
        return v


class AgentConfig(BaseModel):
    """Root configuration model.

    Loaded from /etc/vipsync/config.yaml when present. Every setting has
    a default matching a stock GCP node, so the file is optional.
    """

    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    drain: DrainConfig = Field(default_factory=DrainConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    @classmethod
    def load(cls, path: Path) -> "AgentConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Omit --config to run with built-in defaults",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {path}",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "AgentConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()


class EnvOverrides(BaseSettings):
    """Overrides loaded from environment variables.

    Useful for pointing the agent at a metadata emulator or a scratch
    marker directory without writing a config file.
    """

    metadata_url: Optional[str] = Field(None, alias="VIPSYNC_METADATA_URL")
    run_dir: Optional[Path] = Field(None, alias="VIPSYNC_RUN_DIR")

    model_config = SettingsConfigDict(extra="ignore")


class AppConfig:
    """Application configuration combining config file and environment.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[AgentConfig] = None,
        overrides: Optional[EnvOverrides] = None,
    ) -> None:
        """Initialize application configuration.

        Args:
            config_path: Path to config file (uses default if None)
            config: Pre-loaded config (skips file loading if provided)
            overrides: Environment overrides (read from os.environ if None)
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        base = config or AgentConfig.load_or_default(self.config_path)
        self._config = self._apply_overrides(base, overrides or EnvOverrides())

    @staticmethod
    def _apply_overrides(config: AgentConfig, overrides: EnvOverrides) -> AgentConfig:
        update = {}
        try:
            if overrides.metadata_url:
                update["metadata"] = MetadataConfig(
                    **{**config.metadata.model_dump(), "base_url": overrides.metadata_url}
                )
            if overrides.run_dir:
                update["drain"] = DrainConfig(
                    **{**config.drain.model_dump(), "run_dir": overrides.run_dir}
                )
        except Exception as e:
            raise ConfigurationError(
                "Invalid environment override",
                hint="Check VIPSYNC_METADATA_URL and VIPSYNC_RUN_DIR",
                details=[str(e)],
            ) from e
        if not update:
            return config
        return config.model_copy(update=update)

    @property
    def config(self) -> AgentConfig:
        """Get the agent configuration."""
        return self._config

    @property
    def metadata(self) -> MetadataConfig:
        """Shortcut to metadata config."""
        return self._config.metadata

    @property
    def firewall(self) -> FirewallConfig:
        """Shortcut to firewall config."""
        return self._config.firewall

    @property
    def drain(self) -> DrainConfig:
        """Shortcut to drain config."""
        return self._config.drain

    @property
    def scheduler(self) -> SchedulerConfig:
        """Shortcut to scheduler config."""
        return self._config.scheduler

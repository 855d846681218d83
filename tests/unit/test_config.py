"""Unit tests for configuration loading."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from vipsync.core.config import (
    DEFAULT_HEALTHCHECK_RANGES,
    DEFAULT_METADATA_URL,
    DEFAULT_RUN_DIR,
    AgentConfig,
    AppConfig,
    EnvOverrides,
    FirewallConfig,
    MetadataConfig,
    SchedulerConfig,
)
from vipsync.core.exceptions import ConfigurationError


class TestModels:
    """Tests for configuration models."""

    def test_defaults(self):
        config = AgentConfig()

        assert config.metadata.base_url == DEFAULT_METADATA_URL
        assert config.metadata.flavor_header == "Metadata-Flavor"
        assert config.firewall.chain_name == "gcp-vips"
        assert config.firewall.local_chain_name == "gcp-vips-local"
        assert config.firewall.healthcheck_ranges == DEFAULT_HEALTHCHECK_RANGES
        assert config.drain.run_dir == DEFAULT_RUN_DIR
        assert config.drain.marker_suffix == ".down"

    def test_scheduler_bounds_are_independent(self):
        """Watch timeout and poll bounds are separate settings."""
        config = SchedulerConfig(watch_timeout=60)

        assert config.watch_timeout == 60
        assert config.poll_iterations == 6
        assert config.poll_interval == 1.0

    def test_base_url_gets_trailing_slash(self):
        config = MetadataConfig(base_url="http://127.0.0.1:8080/instance")
        assert config.base_url == "http://127.0.0.1:8080/instance/"

    def test_invalid_base_url(self):
        with pytest.raises(PydanticValidationError):
            MetadataConfig(base_url="not a url")

    def test_chain_name_length(self):
        with pytest.raises(PydanticValidationError):
            FirewallConfig(chain_name="x" * 29)

    def test_invalid_healthcheck_range(self):
        with pytest.raises(PydanticValidationError):
            FirewallConfig(healthcheck_ranges=["0.0.0.0/0"])

    def test_poll_iterations_positive(self):
        with pytest.raises(PydanticValidationError):
            SchedulerConfig(poll_iterations=0)


class TestLoad:
    """Tests for loading YAML configuration files."""

    def test_load_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "drain:\n"
            "  run_dir: /run/lb-drain\n"
            "scheduler:\n"
            "  poll_iterations: 3\n"
        )

        config = AgentConfig.load(path)

        assert str(config.drain.run_dir) == "/run/lb-drain"
        assert config.scheduler.poll_iterations == 3
        assert config.firewall.chain_name == "gcp-vips"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            AgentConfig.load(tmp_path / "absent.yaml")

    def test_load_or_default_missing_file(self, tmp_path):
        assert AgentConfig.load_or_default(tmp_path / "absent.yaml") == AgentConfig()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("drain: [unclosed\n")
        with pytest.raises(ConfigurationError) as exc:
            AgentConfig.load(path)
        assert "Invalid YAML" in str(exc.value)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scheduler:\n  poll_iterations: 0\n")
        with pytest.raises(ConfigurationError):
            AgentConfig.load(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            AgentConfig.load(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert AgentConfig.load(path) == AgentConfig()


class TestAppConfig:
    """Tests for environment overrides."""

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VIPSYNC_METADATA_URL", "http://127.0.0.1:9000/v1/instance/")
        monkeypatch.setenv("VIPSYNC_RUN_DIR", str(tmp_path))

        app_config = AppConfig(config=AgentConfig())

        assert app_config.metadata.base_url == "http://127.0.0.1:9000/v1/instance/"
        assert app_config.drain.run_dir == tmp_path
        assert app_config.firewall.chain_name == "gcp-vips"

    def test_no_overrides(self, monkeypatch):
        monkeypatch.delenv("VIPSYNC_METADATA_URL", raising=False)
        monkeypatch.delenv("VIPSYNC_RUN_DIR", raising=False)

        config = AgentConfig()
        assert AppConfig(config=config).config is config

    def test_invalid_override(self, monkeypatch):
        monkeypatch.setenv("VIPSYNC_METADATA_URL", "nonsense")
        with pytest.raises(ConfigurationError):
            AppConfig(config=AgentConfig(), overrides=EnvOverrides())

    def test_missing_default_file_uses_defaults(self, tmp_path):
        app_config = AppConfig(config_path=tmp_path / "absent.yaml", overrides=EnvOverrides.model_construct())
        assert app_config.config_path == tmp_path / "absent.yaml"
        assert app_config.scheduler.watch_timeout == 30

"""Tests for configuration loading."""

import pytest

from shared.config import CompositionSettings, Settings


class TestCompositionSettings:
    """Tests for composition defaults."""

    def test_defaults(self):
        """Test the default separators and proxy policy."""
        settings = CompositionSettings()
        separators = settings.separators()

        assert (separators.tool, separators.resource, separators.prompt) == ("_", "+", "_")
        assert settings.proxy_timeout_seconds == 30.0
        assert settings.share_proxy_sessions is True

    def test_separator_overrides(self):
        """Test that explicit separators win over defaults."""
        separators = CompositionSettings().separators(tool="/", prompt=".")

        assert (separators.tool, separators.resource, separators.prompt) == ("/", "+", ".")

    def test_environment_override(self, monkeypatch):
        """Test reading defaults from the environment."""
        monkeypatch.setenv("MCP_COMPOSITION_TOOL_SEPARATOR", "::")
        monkeypatch.setenv("MCP_COMPOSITION_PROXY_TIMEOUT_SECONDS", "2.5")

        settings = CompositionSettings()

        assert settings.tool_separator == "::"
        assert settings.proxy_timeout_seconds == 2.5

    def test_host_uses_its_settings(self):
        """Test that mounts pick up the host's default separators."""
        from mcp_server.host import Host

        parent = Host("parent", settings=CompositionSettings(tool_separator="."))
        link = parent.mount("api", Host("child"))

        assert link.separators.tool == "."

    def test_invalid_timeout(self):
        """Test that a non-positive timeout is rejected."""
        with pytest.raises(ValueError):
            CompositionSettings(proxy_timeout_seconds=0)


class TestSettings:
    """Tests for application settings."""

    def test_from_yaml(self, tmp_path):
        """Test loading settings from a YAML file."""
        config = tmp_path / "settings.yaml"
        config.write_text(
            "environment: production\n"
            "log_level: DEBUG\n"
            "composition:\n"
            "  resource_separator: '|'\n"
            "server:\n"
            "  port: 9000\n"
        )

        settings = Settings.from_yaml(config)

        assert settings.environment == "production"
        assert settings.log_level == "DEBUG"
        assert settings.composition.resource_separator == "|"
        assert settings.server.port == 9000

    def test_missing_yaml(self, tmp_path):
        """Test that a missing file yields defaults."""
        settings = Settings.from_yaml(tmp_path / "missing.yaml")

        assert settings.environment == "development"
        assert settings.composition.tool_separator == "_"

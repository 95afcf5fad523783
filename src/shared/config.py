"""Configuration management for the composition platform.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models import Separators


class CompositionSettings(BaseSettings):
    """Defaults applied by mount and import."""
    tool_separator: str = Field(default="_", min_length=1)
    resource_separator: str = Field(default="+", min_length=1)
    prompt_separator: str = Field(default="_", min_length=1)

    # None disables the timeout on proxied calls
    proxy_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)
    share_proxy_sessions: bool = Field(
        default=True,
        description="Keep one session per proxy link open while the parent host is running",
    )

    model_config = SettingsConfigDict(
        env_prefix="MCP_COMPOSITION_",
        env_file=".env",
        extra="ignore"
    )

    def separators(
        self,
        tool: Optional[str] = None,
        resource: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> Separators:
        """Build separators, filling the omitted ones from these defaults."""
        return Separators(
            tool=self.tool_separator if tool is None else tool,
            resource=self.resource_separator if resource is None else resource,
            prompt=self.prompt_separator if prompt is None else prompt,
        )


class ServerSettings(BaseSettings):
    """HTTP surface configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8001)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    composition: CompositionSettings = Field(default_factory=CompositionSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file. A missing file yields defaults."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)

"""Shared models, errors, configuration and logging for the composition platform."""

from shared.models import (
    Capability,
    CapabilityKind,
    CompositionMode,
    Prompt,
    PromptResult,
    Resource,
    ResourceContents,
    ResourceTemplate,
    Separators,
    Tool,
    ToolResult,
)
from shared.errors import (
    CollisionError,
    CompositionError,
    CycleDetectedError,
    MountError,
    NotFoundError,
    ProxySessionError,
    SeparatorAmbiguityError,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "Capability",
    "CapabilityKind",
    "CompositionMode",
    "Prompt",
    "PromptResult",
    "Resource",
    "ResourceContents",
    "ResourceTemplate",
    "Separators",
    "Tool",
    "ToolResult",
    "CollisionError",
    "CompositionError",
    "CycleDetectedError",
    "MountError",
    "NotFoundError",
    "ProxySessionError",
    "SeparatorAmbiguityError",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]

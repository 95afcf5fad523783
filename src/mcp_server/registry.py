"""Capability Registry for a single host.

Holds the host's own capabilities, independent of any composition.
Writers swap in a new immutable mapping under a lock, so readers always
see a complete snapshot without locking.
"""

import threading
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from shared.errors import ArgumentValidationError, CollisionError
from shared.logging import get_logger
from shared.models import Capability, CapabilityKind, Tool
from shared.schema import validate_schema

logger = get_logger(__name__)


class CapabilityRegistry:
    """
    Per-host mapping from (kind, identifier) to capability.

    Responsibilities:
    - Register capabilities, rejecting duplicates unless replacing
    - Atomically register a batch (all or nothing)
    - Lookup and list by kind
    - Validate tool arguments against input schemas
    """

    def __init__(self, owner: str = "") -> None:
        self.owner = owner
        self._lock = threading.Lock()
        self._entries: dict[CapabilityKind, Mapping[str, Capability]] = {
            kind: MappingProxyType({}) for kind in CapabilityKind
        }

    def register(self, capability: Capability, replace: bool = False) -> Capability:
        """
        Register a capability.

        Args:
            capability: Capability to register
            replace: Overwrite an existing entry with the same identifier

        Raises:
            CollisionError: If the identifier is taken and replace is False
        """
        self.register_many([capability], replace=replace)
        return capability

    def register_many(self, capabilities: Iterable[Capability], replace: bool = False) -> None:
        """
        Register several capabilities at once.

        Nothing is registered if any of them collides.
        """
        capabilities = list(capabilities)

        with self._lock:
            updated = {kind: dict(entries) for kind, entries in self._entries.items()}

            for capability in capabilities:
                entries = updated[capability.kind]
                if capability.key in entries and not replace:
                    raise CollisionError(
                        f"{capability.kind.value.capitalize()} '{capability.key}' "
                        f"is already registered on '{self.owner}'"
                    )
                entries[capability.key] = capability

            self._entries = {kind: MappingProxyType(entries) for kind, entries in updated.items()}

        for capability in capabilities:
            logger.debug(
                "Capability registered",
                host=self.owner,
                kind=capability.kind.value,
                key=capability.key
            )

    def unregister(self, kind: CapabilityKind, key: str) -> bool:
        """
        Remove a capability.

        Returns:
            True if it was removed, False if not found
        """
        with self._lock:
            if key not in self._entries[kind]:
                return False
            entries = dict(self._entries[kind])
            del entries[key]
            self._entries = {**self._entries, kind: MappingProxyType(entries)}

        logger.debug("Capability unregistered", host=self.owner, kind=kind.value, key=key)
        return True

    def get(self, kind: CapabilityKind, key: str) -> Optional[Capability]:
        return self._entries[kind].get(key)

    def snapshot(self, kind: CapabilityKind) -> Mapping[str, Capability]:
        """Read-only view of one kind, unaffected by later writes."""
        return self._entries[kind]

    def values(self, kind: CapabilityKind) -> list[Capability]:
        return list(self._entries[kind].values())

    def validate_arguments(self, tool: Tool, arguments: dict[str, Any]) -> None:
        """
        Validate tool arguments against the tool's input schema.

        Raises:
            ArgumentValidationError: If the arguments do not satisfy the schema
        """
        is_valid, errors = validate_schema(arguments, tool.input_schema)
        if not is_valid:
            raise ArgumentValidationError(
                f"Invalid arguments for tool '{tool.name}': {'; '.join(errors)}"
            )

    def get_counts(self) -> dict[str, int]:
        """Get the number of local capabilities per kind."""
        return {kind.value: len(entries) for kind, entries in self._entries.items()}

    def clear(self) -> None:
        """Remove every local capability."""
        with self._lock:
            self._entries = {kind: MappingProxyType({}) for kind in CapabilityKind}
        logger.warning("Capability registry cleared", host=self.owner)

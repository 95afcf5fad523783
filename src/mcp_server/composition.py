"""Mounting, unmounting and importing hosts.

A mount records a live CompositionLink on the parent. An import copies the
child's current merged view into the parent's registry once and keeps no
link. Both validate everything before touching state, so a rejected call
leaves the parent exactly as it was.
"""

import threading
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import CollisionError, CycleDetectedError, NotFoundError
from shared.logging import get_logger
from shared.models import CapabilityKind, CompositionMode, Separators
from mcp_server.prefix import apply_prefix, validate_separator
from mcp_server.proxy import ProxyAdapter

if TYPE_CHECKING:
    from mcp_server.host import Host

logger = get_logger(__name__)

# Serialises every change to the link graph so cycle checks see a stable graph
_GRAPH_LOCK = threading.RLock()


class CompositionLink(BaseModel):
    """A directed mount edge from a parent host to a child host."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    prefix: Optional[str] = None
    separators: Separators = Field(default_factory=Separators)
    target: Any = Field(..., description="The mounted Host", repr=False)
    mode: CompositionMode = CompositionMode.DIRECT
    proxy: Optional[ProxyAdapter] = Field(default=None, exclude=True, repr=False)

    def separator(self, kind: CapabilityKind) -> str:
        return self.separators.for_kind(kind)


def validate_separators(prefix: Optional[str], separators: Separators) -> None:
    """Check every kind's separator against the prefix."""
    for separator in {separators.tool, separators.resource, separators.prompt}:
        validate_separator(prefix, separator)


def reaches(source: "Host", target: "Host") -> bool:
    """Whether ``target`` is ``source`` or reachable from it through mounts."""
    stack = [source]
    seen: set[int] = set()

    while stack:
        host = stack.pop()
        if host is target:
            return True
        if id(host) in seen:
            continue
        seen.add(id(host))
        stack.extend(link.target for link in host.links)

    return False


def _check_link_collisions(
    parent: "Host",
    prefix: Optional[str],
    separators: Separators,
    child: "Host",
) -> None:
    for kind in CapabilityKind:
        separator = separators.for_kind(kind)

        if prefix:
            for existing in parent.links:
                if existing.prefix == prefix and existing.separator(kind) == separator:
                    raise CollisionError(
                        f"Prefix '{prefix}' with separator '{separator}' is already "
                        f"mounted on '{parent.name}' for {kind.value}s"
                    )

        incoming = {
            apply_prefix(key, prefix, separator)
            for key in child.router.collect(kind)
        }
        if not incoming:
            continue

        for existing in parent.links:
            taken = {
                apply_prefix(key, existing.prefix, existing.separator(kind))
                for key in existing.target.router.collect(kind)
            }
            clash = sorted(incoming & taken)
            if clash:
                raise CollisionError(
                    f"Mounting '{child.name}' on '{parent.name}' would collide with "
                    f"'{existing.target.name}' on {kind.value} identifiers: {', '.join(clash)}"
                )


def mount_server(
    parent: "Host",
    prefix: Optional[str],
    child: "Host",
    as_proxy: Optional[bool] = None,
    separators: Optional[Separators] = None,
) -> CompositionLink:
    """
    Mount ``child`` on ``parent`` under ``prefix``.

    Args:
        parent: Host receiving the link
        prefix: Namespace for the child's identifiers; empty means none
        child: Host being mounted
        as_proxy: Force proxy (True) or direct (False) delegation. None picks
            proxy when the child declares a custom lifespan.
        separators: Separators per kind; defaults come from settings

    Returns:
        The new composition link

    Raises:
        SeparatorAmbiguityError: If a separator is ambiguous with the prefix
        CycleDetectedError: If child already reaches parent
        CollisionError: If the prefix or any resulting identifier clashes
            with another mount
    """
    prefix = prefix or None
    separators = separators or parent.settings.separators()
    validate_separators(prefix, separators)

    if as_proxy is None:
        as_proxy = child.has_custom_lifespan
    mode = CompositionMode.PROXY if as_proxy else CompositionMode.DIRECT

    with _GRAPH_LOCK:
        if reaches(child, parent):
            raise CycleDetectedError(
                f"Mounting '{child.name}' on '{parent.name}' would create a cycle"
            )

        _check_link_collisions(parent, prefix, separators, child)

        link = CompositionLink(
            prefix=prefix,
            separators=separators,
            target=child,
            mode=mode,
            proxy=ProxyAdapter(child, parent.settings) if mode is CompositionMode.PROXY else None,
        )
        parent._set_links(parent.links + (link,))

    if link.proxy is not None and parent.is_running:
        link.proxy.enable_sharing()

    logger.info(
        "Server mounted",
        parent=parent.name,
        child=child.name,
        prefix=prefix,
        mode=mode.value
    )
    return link


def unmount_server(parent: "Host", prefix: Optional[str]) -> list[CompositionLink]:
    """
    Remove every link ``parent`` holds under ``prefix``.

    The child's own state is left alone. Closing shared sessions of the
    removed links is up to the caller, see ``Host.unmount``.

    Returns:
        The removed links

    Raises:
        NotFoundError: If nothing is mounted under that prefix
    """
    prefix = prefix or None

    with _GRAPH_LOCK:
        links = parent.links
        remaining = tuple(link for link in links if link.prefix != prefix)
        removed = [link for link in links if link.prefix == prefix]
        if not removed:
            raise NotFoundError(f"Nothing mounted on '{parent.name}' under prefix {prefix!r}")
        parent._set_links(remaining)

    logger.info(
        "Server unmounted",
        parent=parent.name,
        prefix=prefix,
        removed=len(removed)
    )
    return removed


def import_server(
    parent: "Host",
    prefix: Optional[str],
    child: "Host",
    separators: Optional[Separators] = None,
) -> int:
    """
    Copy ``child``'s current merged view into ``parent``'s registry.

    The copies are ordinary local capabilities: later changes to the child
    never reach the parent. The child's lifespan is not run.

    Returns:
        Number of capabilities imported

    Raises:
        SeparatorAmbiguityError: If a separator is ambiguous with the prefix
        CollisionError: If any copied identifier already exists locally.
            Nothing is imported in that case.
    """
    prefix = prefix or None
    separators = separators or parent.settings.separators()
    validate_separators(prefix, separators)

    copies = []
    for kind in CapabilityKind:
        separator = separators.for_kind(kind)
        for key, capability in child.router.collect(kind).items():
            copies.append(capability.with_key(apply_prefix(key, prefix, separator)))

    parent.registry.register_many(copies)

    if child.has_custom_lifespan:
        logger.warning(
            "Imported server has a lifespan that will not be used",
            parent=parent.name,
            child=child.name
        )

    logger.info(
        "Server imported",
        parent=parent.name,
        child=child.name,
        prefix=prefix,
        count=len(copies)
    )
    return len(copies)

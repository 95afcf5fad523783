"""MCP Server - capability hosts and their composition.

A Host registers tools, resources, resource templates and prompts, and can
import (copy) or mount (link) other hosts under a prefix. Mounted hosts are
reached either directly in-process or through a proxied client session.
"""

from mcp_server.composition import CompositionLink
from mcp_server.host import Host, default_lifespan
from mcp_server.prefix import apply_prefix, strip_prefix
from mcp_server.proxy import ProxyAdapter
from mcp_server.registry import CapabilityRegistry
from mcp_server.router import Dispatcher, HandlerExecutor, MountRouter

__all__ = [
    "CompositionLink",
    "Host",
    "default_lifespan",
    "apply_prefix",
    "strip_prefix",
    "ProxyAdapter",
    "CapabilityRegistry",
    "Dispatcher",
    "HandlerExecutor",
    "MountRouter",
]

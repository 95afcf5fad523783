"""MCP Client - sessions and transports for talking to a host.

Used by external callers and by proxy mounts, which reach a child host
through exactly the same client path.
"""

from mcp_client.client import MCPClient
from mcp_client.session import ClientSession, SessionState
from mcp_client.transport import ClientTransport, HTTPTransport, InProcessTransport

__all__ = [
    "MCPClient",
    "ClientSession",
    "SessionState",
    "ClientTransport",
    "HTTPTransport",
    "InProcessTransport",
]

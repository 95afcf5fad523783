"""MCP Client for capability discovery and invocation.

Provides the same query/invoke surface a host offers, over any transport.
Error payloads come back as the typed errors the host raised.
"""

from typing import Any, Optional

from shared.errors import error_from_payload
from shared.logging import get_logger
from shared.models import (
    Prompt,
    PromptResult,
    Request,
    RequestMethod,
    Resource,
    ResourceContents,
    ResourceTemplate,
    Tool,
    ToolResult,
)
from mcp_client.session import ClientSession
from mcp_client.transport import ClientTransport

logger = get_logger(__name__)


class MCPClient:
    """
    Client for one host, reached through a transport.

    Use as an async context manager; the session is open inside the block:

        async with MCPClient(InProcessTransport(host)) as client:
            result = await client.call_tool("weather_get_forecast", {"city": "Paris"})
    """

    def __init__(self, transport: ClientTransport) -> None:
        self.session = ClientSession(transport)

    @property
    def is_connected(self) -> bool:
        return self.session.is_open

    async def connect(self) -> None:
        """Open the session. Raises ProxySessionError if the host cannot be reached."""
        await self.session.open()

    async def close(self) -> None:
        await self.session.close()

    async def __aenter__(self) -> "MCPClient":
        await self.session.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.session.__aexit__(exc_type, exc_val, exc_tb)

    async def request(self, method: RequestMethod, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Send a raw request and return its result.

        Raises:
            CompositionError: The typed error the host answered with
            ProxySessionError: If the session is not open or the transport failed
        """
        request = Request(method=method, params=params or {})
        logger.debug("Sending request", method=method.value, request_id=request.id)

        response = await self.session.send(request)
        if response.error is not None:
            raise error_from_payload(response.error)
        return response.result

    async def list_tools(self) -> list[Tool]:
        return [Tool.model_validate(item) for item in await self.request(RequestMethod.LIST_TOOLS)]

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        result = await self.request(
            RequestMethod.CALL_TOOL,
            {"name": name, "arguments": arguments or {}}
        )
        return ToolResult.model_validate(result)

    async def list_resources(self) -> list[Resource]:
        return [
            Resource.model_validate(item)
            for item in await self.request(RequestMethod.LIST_RESOURCES)
        ]

    async def read_resource(self, uri: str) -> ResourceContents:
        result = await self.request(RequestMethod.READ_RESOURCE, {"uri": uri})
        return ResourceContents.model_validate(result)

    async def list_resource_templates(self) -> list[ResourceTemplate]:
        return [
            ResourceTemplate.model_validate(item)
            for item in await self.request(RequestMethod.LIST_TEMPLATES)
        ]

    async def list_prompts(self) -> list[Prompt]:
        return [Prompt.model_validate(item) for item in await self.request(RequestMethod.LIST_PROMPTS)]

    async def get_prompt(self, name: str, arguments: Optional[dict[str, Any]] = None) -> PromptResult:
        result = await self.request(
            RequestMethod.GET_PROMPT,
            {"name": name, "arguments": arguments or {}}
        )
        return PromptResult.model_validate(result)

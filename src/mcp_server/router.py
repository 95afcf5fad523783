"""Mount routing and request dispatch.

The MountRouter decides, for a listing or a concrete identifier, which host
owns a capability: the host's own registry first, then its composition links.
The Dispatcher turns a query or invocation into either a local handler call
or exactly one delegated call through a link, direct or proxied.
"""

import asyncio
import functools
import inspect
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional

from shared.errors import (
    ArgumentValidationError,
    CompositionError,
    HandlerError,
    NotFoundError,
    ProxySessionError,
)
from shared.logging import get_logger, request_context
from shared.models import (
    CAPABILITY_MODELS,
    LIST_METHODS,
    Capability,
    CapabilityKind,
    CompositionMode,
    ErrorPayload,
    Prompt,
    PromptMessage,
    PromptResult,
    Request,
    RequestMethod,
    Resource,
    ResourceContents,
    ResourceTemplate,
    Response,
    Tool,
    ToolResult,
)
from mcp_server.prefix import apply_prefix, strip_prefix

if TYPE_CHECKING:
    from mcp_server.composition import CompositionLink
    from mcp_server.host import Host

logger = get_logger(__name__)

Handler = Callable[..., Any]


class HandlerExecutor:
    """
    Runs capability handlers.

    Coroutine functions are awaited, plain callables run in the default
    executor. Anything a handler raises is wrapped in HandlerError, typed
    composition errors included, so a NotFoundError from inside a handler is
    never taken for a routing miss.
    """

    async def execute(self, handler: Optional[Handler], arguments: dict[str, Any]) -> Any:
        if handler is None:
            raise HandlerError("Capability has no handler")

        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(**arguments)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(
                    None, functools.partial(handler, **arguments)
                )

            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error("Handler execution failed", error=str(e), exc_info=True)
            raise HandlerError(str(e) or type(e).__name__) from e

        return result


class MountRouter:
    """
    Computes a host's merged view from its registry and live links.

    Nothing is cached: every call reads the current snapshot of the local
    registry and link list, so child mutations show up immediately.
    """

    def __init__(self, host: "Host") -> None:
        self.host = host

    def links_for(self, kind: CapabilityKind) -> list["CompositionLink"]:
        """
        Links in resolution order for ``kind``.

        The longest ``prefix + separator`` comes first; links of equal length
        keep mount order. Unprefixed links come last.
        """
        def specificity(link: "CompositionLink") -> int:
            if not link.prefix:
                return 0
            return len(link.prefix) + len(link.separator(kind))

        return sorted(self.host.links, key=specificity, reverse=True)

    def candidates(
        self,
        kind: CapabilityKind,
        identifier: str
    ) -> Iterator[tuple["CompositionLink", str]]:
        """Yield (link, child identifier) for every link whose prefix matches."""
        for link in self.links_for(kind):
            child_key = strip_prefix(identifier, link.prefix, link.separator(kind))
            if child_key is not None:
                yield link, child_key

    def collect(self, kind: CapabilityKind) -> dict[str, Capability]:
        """
        In-process merged view, keyed by parent-visible identifier.

        Reads child state directly, whatever the link mode, without opening
        sessions or running lifecycle hooks. Used by import and mount checks.
        """
        merged: dict[str, Capability] = dict(self.host.registry.snapshot(kind))

        for link in self.links_for(kind):
            separator = link.separator(kind)
            for key, capability in link.target.router.collect(kind).items():
                prefixed = apply_prefix(key, link.prefix, separator)
                if prefixed not in merged:
                    merged[prefixed] = capability.with_key(prefixed)

        return merged

    async def list_kind(self, kind: CapabilityKind) -> list[Capability]:
        """
        Merged listing as a client sees it.

        Local capabilities win over delegated ones; among links the first in
        resolution order wins. Proxied children are listed through a session.
        """
        merged: dict[str, Capability] = dict(self.host.registry.snapshot(kind))

        for link in self.links_for(kind):
            separator = link.separator(kind)
            try:
                children = await self._list_link(link, kind)
            except ProxySessionError as e:
                logger.warning(
                    "Skipping unreachable mount in listing",
                    host=self.host.name,
                    prefix=link.prefix,
                    kind=kind.value,
                    error=e.message
                )
                continue

            for capability in children:
                prefixed = apply_prefix(capability.key, link.prefix, separator)
                if prefixed in merged:
                    logger.debug(
                        "Capability shadowed",
                        host=self.host.name,
                        kind=kind.value,
                        key=prefixed,
                        prefix=link.prefix
                    )
                    continue
                merged[prefixed] = capability.with_key(prefixed)

        return list(merged.values())

    async def _list_link(self, link: "CompositionLink", kind: CapabilityKind) -> list[Capability]:
        if link.mode is CompositionMode.DIRECT:
            return await link.target.router.list_kind(kind)

        payload = await link.proxy.request(LIST_METHODS[kind])
        model = CAPABILITY_MODELS[kind]
        return [model.model_validate(item) for item in payload]


class Dispatcher:
    """
    Entry point for every query and invocation on a host.

    Responsibilities:
    - Serve merged listings
    - Run local handlers
    - Delegate to exactly one link, direct or proxied
    - Convert failures into error payloads for the request envelope
    """

    def __init__(self, host: "Host", executor: Optional[HandlerExecutor] = None) -> None:
        self.host = host
        self.executor = executor or HandlerExecutor()
        self.logger = get_logger(__name__, host=host.name)

    async def list_tools(self) -> list[Tool]:
        return await self.host.router.list_kind(CapabilityKind.TOOL)

    async def list_resources(self) -> list[Resource]:
        return await self.host.router.list_kind(CapabilityKind.RESOURCE)

    async def list_resource_templates(self) -> list[ResourceTemplate]:
        return await self.host.router.list_kind(CapabilityKind.TEMPLATE)

    async def list_prompts(self) -> list[Prompt]:
        return await self.host.router.list_kind(CapabilityKind.PROMPT)

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        """
        Invoke a tool by its identifier as seen from this host.

        Raises:
            NotFoundError: If no local tool or link matches
            ArgumentValidationError: If arguments fail the tool's input schema
            HandlerError: If the tool handler raised
            ProxySessionError: If a proxied session failed or timed out
        """
        arguments = arguments or {}

        tool = self.host.registry.get(CapabilityKind.TOOL, name)
        if tool is not None:
            return await self._run_tool(tool, arguments)

        result = await self._delegate(
            CapabilityKind.TOOL,
            name,
            RequestMethod.CALL_TOOL,
            lambda key: {"name": key, "arguments": arguments},
            lambda dispatcher, key: dispatcher.call_tool(key, arguments),
        )
        return ToolResult.model_validate(result).model_copy(update={"tool_name": name})

    async def read_resource(self, uri: str) -> ResourceContents:
        """
        Read a resource or a template instance by URI.

        Local resources are tried first, then local templates, then links.
        """
        resource = self.host.registry.get(CapabilityKind.RESOURCE, uri)
        if resource is not None:
            content = await self.executor.execute(resource.handler, {})
            return ResourceContents(uri=uri, mime_type=resource.mime_type, content=content)

        for template in self.host.registry.values(CapabilityKind.TEMPLATE):
            params = template.match(uri)
            if params is not None:
                content = await self.executor.execute(template.handler, params)
                return ResourceContents(uri=uri, mime_type=template.mime_type, content=content)

        result = await self._delegate(
            CapabilityKind.RESOURCE,
            uri,
            RequestMethod.READ_RESOURCE,
            lambda key: {"uri": key},
            lambda dispatcher, key: dispatcher.read_resource(key),
        )
        return ResourceContents.model_validate(result).model_copy(update={"uri": uri})

    async def get_prompt(self, name: str, arguments: Optional[dict[str, Any]] = None) -> PromptResult:
        """Render a prompt by its identifier as seen from this host."""
        arguments = arguments or {}

        prompt = self.host.registry.get(CapabilityKind.PROMPT, name)
        if prompt is not None:
            return await self._render_prompt(prompt, arguments)

        result = await self._delegate(
            CapabilityKind.PROMPT,
            name,
            RequestMethod.GET_PROMPT,
            lambda key: {"name": key, "arguments": arguments},
            lambda dispatcher, key: dispatcher.get_prompt(key, arguments),
        )
        return PromptResult.model_validate(result).model_copy(update={"name": name})

    async def handle(self, request: Request) -> Response:
        """
        Serve one request envelope.

        Never raises for call-time failures: they come back as error payloads.
        """
        with request_context(request.id, request.method.value):
            try:
                result = await self._handle(request)
            except CompositionError as e:
                self.logger.info("Request failed", code=e.code, error=e.message)
                return Response(id=request.id, error=e.to_payload())
            except Exception as e:
                self.logger.error("Unexpected error handling request", error=str(e), exc_info=True)
                return Response(
                    id=request.id,
                    error=ErrorPayload(code=HandlerError.code, message=str(e) or type(e).__name__)
                )

        return Response(id=request.id, result=result)

    async def _handle(self, request: Request) -> Any:
        params = request.params

        for kind, method in LIST_METHODS.items():
            if request.method is method:
                capabilities = await self.host.router.list_kind(kind)
                return [capability.model_dump(mode="json") for capability in capabilities]

        if request.method is RequestMethod.CALL_TOOL:
            result = await self.call_tool(_require(params, "name"), params.get("arguments"))
        elif request.method is RequestMethod.READ_RESOURCE:
            result = await self.read_resource(_require(params, "uri"))
        elif request.method is RequestMethod.GET_PROMPT:
            result = await self.get_prompt(_require(params, "name"), params.get("arguments"))
        else:
            raise NotFoundError(f"Unsupported method: {request.method.value}")

        return result.model_dump(mode="json")

    async def _delegate(
        self,
        kind: CapabilityKind,
        identifier: str,
        method: RequestMethod,
        params_for: Callable[[str], dict[str, Any]],
        direct_call: Callable[["Dispatcher", str], Awaitable[Any]],
    ) -> Any:
        """Route to the first link whose child actually owns the identifier."""
        for link, child_key in self.host.router.candidates(kind, identifier):
            try:
                if link.mode is CompositionMode.DIRECT:
                    return await direct_call(link.target.dispatcher, child_key)
                return await link.proxy.request(method, params_for(child_key))
            except NotFoundError:
                self.logger.debug(
                    "No match behind mount",
                    kind=kind.value,
                    key=child_key,
                    prefix=link.prefix
                )

        raise NotFoundError(f"Unknown {kind.value}: {identifier!r}")

    async def _run_tool(self, tool: Tool, arguments: dict[str, Any]) -> ToolResult:
        self.host.registry.validate_arguments(tool, arguments)

        start_time = time.perf_counter()
        data = await self.executor.execute(tool.handler, arguments)

        return ToolResult(
            tool_name=tool.name,
            data=data,
            execution_time_ms=(time.perf_counter() - start_time) * 1000
        )

    async def _render_prompt(self, prompt: Prompt, arguments: dict[str, Any]) -> PromptResult:
        missing = [
            argument.name
            for argument in prompt.arguments
            if argument.required and argument.name not in arguments
        ]
        if missing:
            raise ArgumentValidationError(
                f"Missing required arguments for prompt '{prompt.name}': {', '.join(missing)}"
            )

        rendered = await self.executor.execute(prompt.handler, arguments)
        return PromptResult(
            name=prompt.name,
            description=prompt.description,
            messages=_to_messages(rendered)
        )


def _require(params: dict[str, Any], key: str) -> Any:
    if key not in params:
        raise ArgumentValidationError(f"Missing request parameter '{key}'")
    return params[key]


def _to_messages(rendered: Any) -> list[PromptMessage]:
    """Normalise a prompt handler's return value into messages."""
    if isinstance(rendered, (str, PromptMessage, dict)):
        rendered = [rendered]

    messages = []
    for item in rendered:
        if isinstance(item, PromptMessage):
            messages.append(item)
        elif isinstance(item, dict):
            messages.append(PromptMessage.model_validate(item))
        else:
            messages.append(PromptMessage(role="user", content=str(item)))
    return messages

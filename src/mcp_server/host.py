"""Host - the unit of composition.

A host owns a registry of its own capabilities and an ordered list of
composition links to other hosts. It can mount or import other hosts and be
mounted or imported itself.
"""

import asyncio
import inspect
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from shared.config import CompositionSettings, get_settings
from shared.errors import ProxySessionError
from shared.logging import get_logger
from shared.models import (
    CapabilityKind,
    Prompt,
    PromptResult,
    Request,
    Resource,
    ResourceContents,
    ResourceTemplate,
    Response,
    Tool,
    ToolResult,
)
from shared.schema import prompt_arguments_from_handler, schema_from_handler
from mcp_server.composition import (
    CompositionLink,
    import_server,
    mount_server,
    unmount_server,
)
from mcp_server.proxy import ProxyAdapter
from mcp_server.registry import CapabilityRegistry
from mcp_server.router import Dispatcher, HandlerExecutor, MountRouter

Lifespan = Callable[["Host"], AbstractAsyncContextManager[Any]]


@asynccontextmanager
async def default_lifespan(host: "Host") -> AsyncIterator[None]:
    """Lifespan that does nothing. Hosts using it count as having no custom lifecycle."""
    yield


class Host:
    """
    A composable capability host.

    Hosts are passed explicitly to every composition call; there is no
    global current host.
    """

    def __init__(
        self,
        name: str,
        lifespan: Optional[Lifespan] = None,
        settings: Optional[CompositionSettings] = None,
        executor: Optional[HandlerExecutor] = None,
    ) -> None:
        self.name = name
        self.settings = settings or get_settings().composition
        self.registry = CapabilityRegistry(owner=name)
        self.router = MountRouter(self)
        self.dispatcher = Dispatcher(self, executor)
        self.logger = get_logger(__name__, host=name)

        self._lifespan = lifespan or default_lifespan
        self._links: tuple[CompositionLink, ...] = ()
        self._lifecycle_lock = asyncio.Lock()
        self._active_sessions = 0
        self._exit_stack: Optional[AsyncExitStack] = None
        self._detaching: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"Host(name={self.name!r})"

    @property
    def links(self) -> tuple[CompositionLink, ...]:
        """Current outgoing links, in mount order."""
        return self._links

    def _set_links(self, links: tuple[CompositionLink, ...]) -> None:
        self._links = links

    @property
    def has_custom_lifespan(self) -> bool:
        return self._lifespan is not default_lifespan

    @property
    def is_running(self) -> bool:
        return self._active_sessions > 0

    # Registration

    def add_tool(
        self,
        handler: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[dict[str, Any]] = None,
        tags: Optional[list[str]] = None,
        replace: bool = False,
    ) -> Tool:
        """
        Register a tool.

        Name and description default to the handler's name and docstring; the
        input schema defaults to one derived from the handler's signature.
        """
        tool = Tool(
            name=name or handler.__name__,
            description=description or inspect.getdoc(handler),
            input_schema=schema_from_handler(handler) if input_schema is None else input_schema,
            tags=tags or [],
            origin=self.name,
            handler=handler,
        )
        return self.registry.register(tool, replace=replace)

    def add_resource(
        self,
        uri: str,
        handler: Optional[Callable[[], Any]] = None,
        *,
        content: Any = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        mime_type: str = "text/plain",
        tags: Optional[list[str]] = None,
        replace: bool = False,
    ) -> Resource:
        """Register a resource backed by a handler, or by static ``content``."""
        if handler is None:
            if content is None:
                raise ValueError(f"Resource '{uri}' needs a handler or content")

            def handler() -> Any:
                return content

        resource = Resource(
            uri=uri,
            name=name or getattr(handler, "__name__", None),
            description=description or inspect.getdoc(handler),
            mime_type=mime_type,
            tags=tags or [],
            origin=self.name,
            handler=handler,
        )
        return self.registry.register(resource, replace=replace)

    def add_template(
        self,
        uri_template: str,
        handler: Callable[..., Any],
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        mime_type: str = "text/plain",
        tags: Optional[list[str]] = None,
        replace: bool = False,
    ) -> ResourceTemplate:
        """Register a resource template; placeholders are passed to the handler by name."""
        template = ResourceTemplate(
            uri_template=uri_template,
            name=name or handler.__name__,
            description=description or inspect.getdoc(handler),
            mime_type=mime_type,
            tags=tags or [],
            origin=self.name,
            handler=handler,
        )
        return self.registry.register(template, replace=replace)

    def add_prompt(
        self,
        handler: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[list[str]] = None,
        replace: bool = False,
    ) -> Prompt:
        prompt = Prompt(
            name=name or handler.__name__,
            description=description or inspect.getdoc(handler),
            arguments=prompt_arguments_from_handler(handler),
            tags=tags or [],
            origin=self.name,
            handler=handler,
        )
        return self.registry.register(prompt, replace=replace)

    def remove(self, kind: CapabilityKind, key: str) -> bool:
        return self.registry.unregister(kind, key)

    # Composition

    def mount(
        self,
        prefix: Optional[str],
        child: "Host",
        as_proxy: Optional[bool] = None,
        tool_separator: Optional[str] = None,
        resource_separator: Optional[str] = None,
        prompt_separator: Optional[str] = None,
    ) -> CompositionLink:
        """
        Mount ``child`` under ``prefix``. See ``composition.mount_server``.

        Changes to the child show up through this host immediately, until
        ``unmount`` is called.
        """
        separators = self.settings.separators(tool_separator, resource_separator, prompt_separator)
        return mount_server(self, prefix, child, as_proxy=as_proxy, separators=separators)

    def unmount(self, prefix: Optional[str]) -> None:
        """
        Remove every link under ``prefix``.

        Shared sessions held by the removed proxy links are closed in the
        background once their in-flight requests finish; ``wait_detached``
        waits for that.
        """
        for link in unmount_server(self, prefix):
            if link.proxy is not None:
                self._detach_proxy(link.proxy)

    def _detach_proxy(self, proxy: ProxyAdapter) -> None:
        # A session may still be opening; close_shared waits for it
        was_sharing = proxy.is_sharing
        proxy.disable_sharing()
        if not was_sharing and not proxy.has_shared_session:
            return

        task = asyncio.get_running_loop().create_task(proxy.close_shared())
        self._detaching.add(task)
        task.add_done_callback(self._detaching.discard)

    async def wait_detached(self) -> None:
        """Wait until sessions of unmounted proxy links have closed."""
        if self._detaching:
            await asyncio.gather(*self._detaching)

    def import_server(
        self,
        prefix: Optional[str],
        child: "Host",
        tool_separator: Optional[str] = None,
        resource_separator: Optional[str] = None,
        prompt_separator: Optional[str] = None,
    ) -> int:
        """
        Copy ``child``'s capabilities under ``prefix``. See ``composition.import_server``.

        This is a one-time snapshot; later changes to the child are not seen.
        """
        separators = self.settings.separators(tool_separator, resource_separator, prompt_separator)
        return import_server(self, prefix, child, separators=separators)

    # Lifecycle

    @asynccontextmanager
    async def running(self) -> AsyncIterator["Host"]:
        """
        Keep the host started for the duration of the block.

        Reference counted: the first entry runs the lifespan startup and opens
        shared sessions for proxy links, the last exit closes them and runs
        shutdown.
        """
        async with self._lifecycle_lock:
            if self._active_sessions == 0:
                self._exit_stack = await self._start()
            self._active_sessions += 1

        try:
            yield self
        finally:
            async with self._lifecycle_lock:
                self._active_sessions -= 1
                if self._active_sessions == 0:
                    stack, self._exit_stack = self._exit_stack, None
                    self.logger.info("Host stopping")
                    try:
                        await self.wait_detached()
                    finally:
                        await stack.aclose()

    async def _start(self) -> AsyncExitStack:
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self._lifespan(self))

            stack.push_async_callback(self._close_shared_sessions)

            for link in self.links:
                if link.proxy is None:
                    continue
                try:
                    await link.proxy.open_shared()
                except ProxySessionError as e:
                    # Retried on the next call through this link
                    self.logger.warning(
                        "Could not open shared proxy session",
                        prefix=link.prefix,
                        child=link.target.name,
                        error=e.message
                    )
        except BaseException:
            await stack.aclose()
            raise

        self.logger.info("Host started", links=len(self.links))
        return stack

    async def _close_shared_sessions(self) -> None:
        for link in self.links:
            if link.proxy is not None:
                await link.proxy.close_shared()

    # Query / invoke

    async def list_tools(self) -> list[Tool]:
        return await self.dispatcher.list_tools()

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        return await self.dispatcher.call_tool(name, arguments)

    async def list_resources(self) -> list[Resource]:
        return await self.dispatcher.list_resources()

    async def read_resource(self, uri: str) -> ResourceContents:
        return await self.dispatcher.read_resource(uri)

    async def list_resource_templates(self) -> list[ResourceTemplate]:
        return await self.dispatcher.list_resource_templates()

    async def list_prompts(self) -> list[Prompt]:
        return await self.dispatcher.list_prompts()

    async def get_prompt(self, name: str, arguments: Optional[dict[str, Any]] = None) -> PromptResult:
        return await self.dispatcher.get_prompt(name, arguments)

    async def handle(self, request: Request) -> Response:
        """Serve a request envelope, as received from a client session."""
        return await self.dispatcher.handle(request)

"""Core data models for the composition platform.

Capabilities (tools, resources, resource templates, prompts), the results
their handlers produce, and the request/response envelope every client
uses to talk to a host, whether in-process or over HTTP.
"""

import copy
import re
import uuid
from enum import Enum
from typing import Any, Callable, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field


class CapabilityKind(str, Enum):
    """The four kinds of capability a host exposes."""
    TOOL = "tool"
    RESOURCE = "resource"
    TEMPLATE = "template"
    PROMPT = "prompt"


class CompositionMode(str, Enum):
    """How a mounted child is reached at call time."""
    DIRECT = "direct"
    PROXY = "proxy"


class Separators(BaseModel):
    """Separators placed between a mount prefix and a child identifier."""
    tool: str = "_"
    resource: str = "+"
    prompt: str = "_"

    def for_kind(self, kind: CapabilityKind) -> str:
        if kind is CapabilityKind.TOOL:
            return self.tool
        if kind is CapabilityKind.PROMPT:
            return self.prompt
        return self.resource


class Capability(BaseModel):
    """
    Base for anything a host can expose.

    The handler is opaque to the composition layer. It is never serialised,
    so a capability listed through a proxied session arrives without one.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: ClassVar[CapabilityKind]
    key_field: ClassVar[str]

    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    origin: Optional[str] = Field(default=None, description="Name of the defining host")
    handler: Optional[Callable[..., Any]] = Field(default=None, exclude=True, repr=False)

    @property
    def key(self) -> str:
        """Identifier of this capability within its kind."""
        return getattr(self, self.key_field)

    def with_key(self, key: str) -> "Capability":
        """Return an independent copy renamed to ``key``. Only the handler is shared."""
        fields = {name: value for name, value in self.__dict__.items() if name != "handler"}
        return self.model_copy(update={**copy.deepcopy(fields), self.key_field: key})


class Tool(Capability):
    """An invocable action."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.TOOL
    key_field: ClassVar[str] = "name"

    name: str
    input_schema: dict[str, Any] = Field(default_factory=dict)


class Resource(Capability):
    """Static or dynamic data addressed by a concrete URI."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.RESOURCE
    key_field: ClassVar[str] = "uri"

    uri: str
    name: Optional[str] = None
    mime_type: str = "text/plain"


_PLACEHOLDER = re.compile(r"\{(\w+)(\*?)\}")


class ResourceTemplate(Capability):
    """
    A parametrised URI pattern.

    ``{name}`` matches a single path segment and ``{name*}`` matches the rest
    of the URI, slashes included.
    """
    kind: ClassVar[CapabilityKind] = CapabilityKind.TEMPLATE
    key_field: ClassVar[str] = "uri_template"

    uri_template: str
    name: Optional[str] = None
    mime_type: str = "text/plain"

    @property
    def parameters(self) -> list[str]:
        return [m.group(1) for m in _PLACEHOLDER.finditer(self.uri_template)]

    def match(self, uri: str) -> Optional[dict[str, str]]:
        """Extract template parameters from ``uri``, or None if it does not fit."""
        pattern = ""
        position = 0
        for placeholder in _PLACEHOLDER.finditer(self.uri_template):
            pattern += re.escape(self.uri_template[position:placeholder.start()])
            name, greedy = placeholder.groups()
            pattern += f"(?P<{name}>.+)" if greedy else f"(?P<{name}>[^/]+)"
            position = placeholder.end()
        pattern += re.escape(self.uri_template[position:])

        found = re.fullmatch(pattern, uri)
        return found.groupdict() if found else None


class PromptArgument(BaseModel):
    """A single prompt parameter."""
    name: str
    description: Optional[str] = None
    required: bool = True


class Prompt(Capability):
    """A named, parametrised text template."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.PROMPT
    key_field: ClassVar[str] = "name"

    name: str
    arguments: list[PromptArgument] = Field(default_factory=list)


CAPABILITY_MODELS: dict[CapabilityKind, type[Capability]] = {
    CapabilityKind.TOOL: Tool,
    CapabilityKind.RESOURCE: Resource,
    CapabilityKind.TEMPLATE: ResourceTemplate,
    CapabilityKind.PROMPT: Prompt,
}


class ToolResult(BaseModel):
    """Result of a tool invocation."""
    tool_name: str
    data: Any = None
    execution_time_ms: float = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResourceContents(BaseModel):
    """Contents produced by reading a resource or a template instance."""
    uri: str
    mime_type: str = "text/plain"
    content: Any = None


class PromptMessage(BaseModel):
    """A single rendered prompt message."""
    role: str = Field(default="user", description="Message role: user or assistant")
    content: str


class PromptResult(BaseModel):
    """A rendered prompt."""
    name: str
    description: Optional[str] = None
    messages: list[PromptMessage] = Field(default_factory=list)


class RequestMethod(str, Enum):
    """Operations a client may request from a host."""
    LIST_TOOLS = "tools/list"
    CALL_TOOL = "tools/call"
    LIST_RESOURCES = "resources/list"
    READ_RESOURCE = "resources/read"
    LIST_TEMPLATES = "resources/templates/list"
    LIST_PROMPTS = "prompts/list"
    GET_PROMPT = "prompts/get"


LIST_METHODS: dict[CapabilityKind, RequestMethod] = {
    CapabilityKind.TOOL: RequestMethod.LIST_TOOLS,
    CapabilityKind.RESOURCE: RequestMethod.LIST_RESOURCES,
    CapabilityKind.TEMPLATE: RequestMethod.LIST_TEMPLATES,
    CapabilityKind.PROMPT: RequestMethod.LIST_PROMPTS,
}


class Request(BaseModel):
    """A request sent to a host through a session."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    method: RequestMethod
    params: dict[str, Any] = Field(default_factory=dict)


class ErrorPayload(BaseModel):
    """Wire form of a typed error."""
    code: str
    message: str


class Response(BaseModel):
    """A host's answer to a request: exactly one of result or error."""
    id: str
    result: Any = None
    error: Optional[ErrorPayload] = None

    @property
    def ok(self) -> bool:
        return self.error is None

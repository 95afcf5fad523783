"""Tests for the capability registry and handler execution."""

import asyncio

import pytest

from shared.errors import ArgumentValidationError, CollisionError, HandlerError
from shared.models import CapabilityKind, Prompt, Resource, ResourceTemplate, Tool


class TestCapabilityRegistry:
    """Tests for the CapabilityRegistry."""

    def setup_method(self):
        """Set up test fixtures."""
        from mcp_server.registry import CapabilityRegistry

        self.registry = CapabilityRegistry(owner="test")

    def test_register_and_get(self):
        """Test registering capabilities of each kind."""
        self.registry.register(Tool(name="add"))
        self.registry.register(Resource(uri="data://numbers"))
        self.registry.register(ResourceTemplate(uri_template="data://{name}"))
        self.registry.register(Prompt(name="explain"))

        assert self.registry.get(CapabilityKind.TOOL, "add") is not None
        assert self.registry.get(CapabilityKind.RESOURCE, "data://numbers") is not None
        assert self.registry.get(CapabilityKind.TEMPLATE, "data://{name}") is not None
        assert self.registry.get(CapabilityKind.PROMPT, "explain") is not None
        assert self.registry.get_counts() == {
            "tool": 1, "resource": 1, "template": 1, "prompt": 1
        }

    def test_kinds_are_separate_namespaces(self):
        """Test that a tool and a prompt may share a name."""
        self.registry.register(Tool(name="explain"))
        self.registry.register(Prompt(name="explain"))

        assert len(self.registry.values(CapabilityKind.TOOL)) == 1
        assert len(self.registry.values(CapabilityKind.PROMPT)) == 1

    def test_register_duplicate_raises(self):
        """Test that registering a duplicate identifier raises."""
        self.registry.register(Tool(name="add"))

        with pytest.raises(CollisionError, match="already registered"):
            self.registry.register(Tool(name="add"))

    def test_register_replace(self):
        """Test replacing an existing capability."""
        self.registry.register(Tool(name="add", description="old"))
        self.registry.register(Tool(name="add", description="new"), replace=True)

        assert self.registry.get(CapabilityKind.TOOL, "add").description == "new"

    def test_register_many_is_atomic(self):
        """Test that a colliding batch registers nothing."""
        self.registry.register(Tool(name="b"))

        with pytest.raises(CollisionError):
            self.registry.register_many([Tool(name="a"), Tool(name="b"), Tool(name="c")])

        assert [t.name for t in self.registry.values(CapabilityKind.TOOL)] == ["b"]

    def test_unregister(self):
        """Test removing a capability."""
        self.registry.register(Tool(name="add"))

        assert self.registry.unregister(CapabilityKind.TOOL, "add") is True
        assert self.registry.unregister(CapabilityKind.TOOL, "add") is False
        assert self.registry.get(CapabilityKind.TOOL, "add") is None

    def test_snapshot_is_stable(self):
        """Test that a snapshot does not see later writes."""
        self.registry.register(Tool(name="a"))
        snapshot = self.registry.snapshot(CapabilityKind.TOOL)

        self.registry.register(Tool(name="b"))

        assert list(snapshot) == ["a"]
        assert len(self.registry.snapshot(CapabilityKind.TOOL)) == 2

    def test_validate_arguments(self):
        """Test argument validation against the input schema."""
        tool = Tool(
            name="add",
            input_schema={
                "type": "object",
                "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
                "required": ["a", "b"],
            },
        )

        self.registry.validate_arguments(tool, {"a": 1, "b": 2.5})

        with pytest.raises(ArgumentValidationError, match="required"):
            self.registry.validate_arguments(tool, {"a": 1})

        with pytest.raises(ArgumentValidationError):
            self.registry.validate_arguments(tool, {"a": "one", "b": 2})

    def test_clear(self):
        """Test clearing the registry."""
        self.registry.register(Tool(name="add"))
        self.registry.clear()

        assert self.registry.get_counts()["tool"] == 0


class TestCapabilityModels:
    """Tests for capability models."""

    def test_with_key_copies(self):
        """Test that renamed copies are independent of the original."""
        tool = Tool(name="add", tags=["math"], handler=lambda a, b: a + b)
        copy = tool.with_key("calc_add")

        copy.tags.append("copied")

        assert copy.name == "calc_add"
        assert copy.handler is tool.handler
        assert tool.name == "add"
        assert tool.tags == ["math"]

    def test_with_key_copies_nested_fields(self):
        """Test that schemas and prompt arguments are not shared with the copy."""
        from shared.models import PromptArgument

        tool = Tool(
            name="add",
            input_schema={"type": "object", "properties": {"a": {"type": "integer"}}},
            handler=lambda a: a,
        )
        prompt = Prompt(name="explain", arguments=[PromptArgument(name="topic")])

        tool_copy = tool.with_key("calc_add")
        tool_copy.input_schema["properties"]["b"] = {"type": "integer"}
        prompt_copy = prompt.with_key("calc_explain")
        prompt_copy.arguments.append(PromptArgument(name="depth"))
        prompt_copy.arguments[0].required = False

        assert tool.input_schema["properties"] == {"a": {"type": "integer"}}
        assert tool_copy.handler is tool.handler
        assert [arg.name for arg in prompt.arguments] == ["topic"]
        assert prompt.arguments[0].required is True

    def test_handler_not_serialised(self):
        """Test that handlers never reach the wire."""
        tool = Tool(name="add", handler=lambda: None)

        assert "handler" not in tool.model_dump()

    def test_template_match(self):
        """Test extracting template parameters."""
        template = ResourceTemplate(uri_template="weather://{city}/current")

        assert template.parameters == ["city"]
        assert template.match("weather://paris/current") == {"city": "paris"}
        assert template.match("weather://paris/tomorrow") is None
        assert template.match("weather://a/b/current") is None

    def test_template_greedy_match(self):
        """Test that a starred placeholder spans slashes."""
        template = ResourceTemplate(uri_template="file://{path*}")

        assert template.match("file://docs/guide/intro.md") == {"path": "docs/guide/intro.md"}


class TestHandlerExecutor:
    """Tests for running handlers."""

    @pytest.mark.asyncio
    async def test_async_handler(self):
        """Test awaiting a coroutine handler."""
        from mcp_server.router import HandlerExecutor

        async def double(x: int) -> int:
            await asyncio.sleep(0)
            return x * 2

        assert await HandlerExecutor().execute(double, {"x": 4}) == 8

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        """Test running a plain function."""
        from mcp_server.router import HandlerExecutor

        assert await HandlerExecutor().execute(lambda a, b: a + b, {"a": 1, "b": 2}) == 3

    @pytest.mark.asyncio
    async def test_handler_exception_wrapped(self):
        """Test that handler failures become HandlerError."""
        from mcp_server.router import HandlerExecutor

        def broken():
            raise ValueError("boom")

        with pytest.raises(HandlerError, match="boom"):
            await HandlerExecutor().execute(broken, {})

    @pytest.mark.asyncio
    async def test_missing_handler(self):
        """Test executing a capability without a handler."""
        from mcp_server.router import HandlerExecutor

        with pytest.raises(HandlerError):
            await HandlerExecutor().execute(None, {})

    @pytest.mark.asyncio
    async def test_typed_error_in_handler_wrapped(self):
        """Test that a NotFoundError raised by a handler still becomes HandlerError."""
        from shared.errors import NotFoundError
        from mcp_server.router import HandlerExecutor

        def lookup():
            raise NotFoundError("row missing")

        with pytest.raises(HandlerError, match="row missing") as exc_info:
            await HandlerExecutor().execute(lookup, {})
        assert isinstance(exc_info.value.__cause__, NotFoundError)


class TestSchemaFromHandler:
    """Tests for deriving input schemas from handler signatures."""

    def test_basic_types(self):
        """Test mapping plain annotations and required parameters."""
        from shared.schema import schema_from_handler

        def search(query: str, limit: int = 10, tags: list[str] = None):
            return query

        schema = schema_from_handler(search)

        assert schema["properties"]["query"] == {"type": "string"}
        assert schema["properties"]["limit"] == {"type": "integer"}
        assert schema["properties"]["tags"] == {"type": "array", "items": {"type": "string"}}
        assert schema["required"] == ["query"]

    def test_optional_annotation(self):
        """Test that Optional[int] allows null."""
        from typing import Optional

        from shared.schema import schema_from_handler

        def count(total: Optional[int] = None):
            return total

        schema = schema_from_handler(count)

        assert schema["properties"]["total"] == {"type": ["integer", "null"]}
        assert "required" not in schema

    def test_union_operator_annotation(self):
        """Test that int | None maps the same way as Optional[int]."""
        from shared.schema import schema_from_handler

        def count(total: int | None = None, label: str | None = None):
            return total

        schema = schema_from_handler(count)

        assert schema["properties"]["total"] == {"type": ["integer", "null"]}
        assert schema["properties"]["label"] == {"type": ["string", "null"]}
        assert "required" not in schema

    def test_unknown_annotation_allows_anything(self):
        """Test that unions of several types and unknown types are unconstrained."""
        from shared.schema import schema_from_handler

        def convert(value: int | str, extra: object = None):
            return value

        schema = schema_from_handler(convert)

        assert schema["properties"]["value"] == {}
        assert schema["properties"]["extra"] == {}

"""Tests for the example domain hosts."""

import pytest

from shared.errors import ArgumentValidationError, HandlerError
from shared.models import CapabilityKind


class TestWeatherHost:
    """Tests for the weather host."""

    def setup_method(self):
        """Set up test fixtures."""
        from domains.weather import create_weather_host

        self.host = create_weather_host()

    def test_capabilities_registered(self):
        """Test that every capability kind is registered."""
        assert self.host.registry.get_counts() == {
            "tool": 1, "resource": 1, "template": 1, "prompt": 1
        }

    def test_tool_schema_from_signature(self):
        """Test the schema derived from get_forecast's signature."""
        tool = self.host.registry.get(CapabilityKind.TOOL, "get_forecast")

        assert tool.description == "Get a daily forecast for a supported city."
        assert tool.input_schema == {
            "type": "object",
            "properties": {"city": {"type": "string"}, "days": {"type": "integer"}},
            "required": ["city"],
        }

    @pytest.mark.asyncio
    async def test_get_forecast(self):
        """Test a forecast for a supported city."""
        result = await self.host.call_tool("get_forecast", {"city": "Tokyo", "days": 5})

        assert result.data["city"] == "tokyo"
        assert [day["day"] for day in result.data["days"]] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_get_forecast_errors(self):
        """Test forecast validation and handler errors."""
        with pytest.raises(ArgumentValidationError):
            await self.host.call_tool("get_forecast", {"days": 2})
        with pytest.raises(ArgumentValidationError):
            await self.host.call_tool("get_forecast", {"city": "Paris", "days": "two"})
        with pytest.raises(HandlerError, match="between 1 and 7"):
            await self.host.call_tool("get_forecast", {"city": "Paris", "days": 10})

    @pytest.mark.asyncio
    async def test_prompt_arguments(self):
        """Test prompt arguments and required-argument checks."""
        prompt = self.host.registry.get(CapabilityKind.PROMPT, "weather_report")

        assert [(a.name, a.required) for a in prompt.arguments] == [
            ("city", True), ("style", False)
        ]
        with pytest.raises(ArgumentValidationError, match="city"):
            await self.host.get_prompt("weather_report", {})

        result = await self.host.get_prompt("weather_report", {"city": "Paris", "style": "detailed"})
        assert result.messages[0].content.startswith("Write a detailed weather report for Paris")


class TestPlatformHost:
    """Tests for the composed platform host."""

    @pytest.mark.asyncio
    async def test_composed_view(self):
        """Test the merged view of the imported and mounted domains."""
        from domains import build_platform_host

        platform = build_platform_host()

        tools = sorted(tool.name for tool in await platform.list_tools())
        assert tools == ["calc_add", "calc_multiply", "weather_get_forecast"]

        resources = [r.uri for r in await platform.list_resources()]
        assert resources == ["weather+data://cities/supported"]

        templates = [t.uri_template for t in await platform.list_resource_templates()]
        assert templates == ["weather+weather://{city}/current"]

        prompts = sorted(p.name for p in await platform.list_prompts())
        assert prompts == ["calc_explain_addition", "weather_weather_report"]

    @pytest.mark.asyncio
    async def test_imported_and_mounted_calls(self):
        """Test invoking through both composition styles."""
        from domains import build_platform_host

        platform = build_platform_host()

        forecast = await platform.call_tool("weather_get_forecast", {"city": "Paris"})
        assert forecast.tool_name == "weather_get_forecast"

        total = await platform.call_tool("calc_add", {"a": 1.5, "b": 2})
        assert total.data == 3.5

        conditions = await platform.read_resource("weather+weather://london/current")
        assert conditions.content["temperature_c"] == 14

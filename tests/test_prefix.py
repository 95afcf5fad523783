"""Tests for identifier prefixing and separator validation."""

import pytest

from shared.errors import SeparatorAmbiguityError


class TestPrefixing:
    """Tests for apply_prefix / strip_prefix."""

    @pytest.mark.parametrize("identifier,prefix,separator", [
        ("get_forecast", "weather", "_"),
        ("data://cities/supported", "weather", "+"),
        ("weather://{city}/current", "w", "+"),
        ("sub_tool_name", "api", "/"),
        ("add", "calc", "::"),
    ])
    def test_round_trip(self, identifier, prefix, separator):
        """Test that stripping an applied prefix recovers the identifier."""
        from mcp_server.prefix import apply_prefix, strip_prefix

        prefixed = apply_prefix(identifier, prefix, separator)

        assert prefixed == f"{prefix}{separator}{identifier}"
        assert strip_prefix(prefixed, prefix, separator) == identifier

    def test_uri_scheme_preserved(self):
        """Test that the prefix goes in front of the whole URI."""
        from mcp_server.prefix import apply_prefix

        assert apply_prefix("data://cities/supported", "weather", "+") == \
            "weather+data://cities/supported"

    def test_strip_no_match(self):
        """Test that a foreign identifier is reported as no match."""
        from mcp_server.prefix import strip_prefix

        assert strip_prefix("calc_add", "weather", "_") is None
        assert strip_prefix("weather-get_forecast", "weather", "_") is None
        assert strip_prefix("weather", "weather", "_") is None

    def test_empty_prefix_is_identity(self):
        """Test that no prefix leaves identifiers alone."""
        from mcp_server.prefix import apply_prefix, strip_prefix

        assert apply_prefix("add", None, "_") == "add"
        assert apply_prefix("add", "", "_") == "add"
        assert strip_prefix("add", None, "_") == "add"


class TestSeparatorValidation:
    """Tests for separator ambiguity checks."""

    def test_valid_separator(self):
        """Test that a separator foreign to the prefix passes."""
        from mcp_server.prefix import validate_separator

        validate_separator("api", "/")
        validate_separator("weather", "_")
        validate_separator(None, "_")

    def test_separator_shared_with_prefix(self):
        """Test that a separator character inside the prefix is rejected."""
        from mcp_server.prefix import validate_separator

        with pytest.raises(SeparatorAmbiguityError, match="ambiguous"):
            validate_separator("my_api", "_")

    def test_empty_separator(self):
        """Test that an empty separator is rejected."""
        from mcp_server.prefix import validate_separator

        with pytest.raises(SeparatorAmbiguityError):
            validate_separator("api", "")

    def test_mount_rejects_ambiguous_separator(self):
        """Test that mount validates separators before creating a link."""
        from mcp_server.host import Host

        parent = Host("parent")
        child = Host("child")

        with pytest.raises(SeparatorAmbiguityError):
            parent.mount("my_api", child)

        assert parent.links == ()

    def test_import_rejects_ambiguous_separator(self):
        """Test that import validates separators before copying anything."""
        from mcp_server.host import Host

        parent = Host("parent")
        child = Host("child")
        child.add_tool(lambda: "pong", name="ping")

        with pytest.raises(SeparatorAmbiguityError):
            parent.import_server("a+b", child)

        assert parent.registry.get_counts()["tool"] == 0

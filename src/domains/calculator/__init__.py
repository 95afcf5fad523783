"""Calculator Domain - arithmetic tools and an explanation prompt."""

from shared.logging import get_logger
from shared.models import PromptMessage
from mcp_server.host import Host

logger = get_logger(__name__)


def add(a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


def multiply(a: float, b: float) -> float:
    """Multiply two numbers."""
    return a * b


def explain_addition(a: str, b: str) -> list[PromptMessage]:
    """Explain step by step how to add two numbers."""
    return [
        PromptMessage(role="user", content=f"Explain how to add {a} and {b}, step by step."),
        PromptMessage(role="assistant", content=f"Start with {a}, then count up by {b}."),
    ]


def create_calculator_host() -> Host:
    """Build the calculator host."""
    host = Host("CalculatorService")

    host.add_tool(add)
    host.add_tool(multiply)
    host.add_prompt(explain_addition)

    logger.info("Calculator host created", counts=host.registry.get_counts())
    return host

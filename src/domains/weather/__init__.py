"""Weather Domain - forecast tools, city data and a report prompt.

Example child host. Backed by mock data; a real deployment would call a
weather API from the handlers.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Optional

from shared.logging import get_logger
from mcp_server.host import Host

logger = get_logger(__name__)


# Sample data for mock implementation
MOCK_CONDITIONS = {
    "london": {"temperature_c": 14, "conditions": "overcast", "humidity": 82},
    "paris": {"temperature_c": 18, "conditions": "sunny", "humidity": 55},
    "tokyo": {"temperature_c": 22, "conditions": "light rain", "humidity": 74},
    "new-york": {"temperature_c": 16, "conditions": "windy", "humidity": 60},
}

SUPPORTED_CITIES = sorted(MOCK_CONDITIONS)


def get_forecast(city: str, days: int = 3) -> dict[str, Any]:
    """Get a daily forecast for a supported city."""
    key = city.lower()
    if key not in MOCK_CONDITIONS:
        raise ValueError(f"City '{city}' is not supported")
    if not 1 <= days <= 7:
        raise ValueError("days must be between 1 and 7")

    current = MOCK_CONDITIONS[key]
    return {
        "city": key,
        "days": [
            {
                "day": offset,
                "temperature_c": current["temperature_c"] + offset,
                "conditions": current["conditions"],
            }
            for offset in range(days)
        ],
    }


def supported_cities() -> list[str]:
    """Cities with forecast data."""
    return SUPPORTED_CITIES


def current_conditions(city: str) -> dict[str, Any]:
    """Current conditions for one city."""
    key = city.lower()
    if key not in MOCK_CONDITIONS:
        raise ValueError(f"City '{city}' is not supported")
    return {"city": key, **MOCK_CONDITIONS[key]}


def weather_report(city: str, style: str = "brief") -> str:
    """Ask for a weather report on a city."""
    return f"Write a {style} weather report for {city} using the latest forecast."


def create_weather_host(
    lifespan: Optional[Callable[[Host], AbstractAsyncContextManager[Any]]] = None,
) -> Host:
    """Build the weather host."""
    host = Host("WeatherService", lifespan=lifespan)

    host.add_tool(get_forecast)
    host.add_resource("data://cities/supported", supported_cities, mime_type="application/json")
    host.add_template("weather://{city}/current", current_conditions, mime_type="application/json")
    host.add_prompt(weather_report)

    logger.info("Weather host created", counts=host.registry.get_counts())
    return host

"""Application Domains.

Each domain is a self-contained host. The platform host composes them:
weather is imported (a one-time copy) and the calculator is mounted
(a live link).
"""

from shared.logging import get_logger
from mcp_server.host import Host

logger = get_logger(__name__)


def build_platform_host(name: str = "platform") -> Host:
    """
    Build the main host with every domain composed into it.

    Exposes, among others, ``weather_get_forecast``,
    ``weather+data://cities/supported`` and ``calc_add``.
    """
    from domains.calculator import create_calculator_host
    from domains.weather import create_weather_host

    platform = Host(name)
    platform.import_server("weather", create_weather_host())
    platform.mount("calc", create_calculator_host())

    logger.info("Platform host built", host=name, links=len(platform.links))
    return platform


__all__ = ["build_platform_host"]

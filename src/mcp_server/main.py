"""HTTP surface for a host - FastAPI Application.

Exposes a host's request envelope over HTTP. ``HTTPTransport`` in
``mcp_client`` is the matching client side.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from shared.config import get_settings
from shared.logging import get_logger, setup_logging
from shared.models import Request as CapabilityRequest
from shared.models import Response as CapabilityResponse
from mcp_server.host import Host

logger = get_logger(__name__)

__version__ = "0.1.0"


class MountInfo(BaseModel):
    """A live mount as reported by the health endpoint."""
    prefix: Optional[str]
    child: str
    mode: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    host: str
    running: bool
    local_capabilities: dict[str, int]
    mounts: list[MountInfo]


def create_app(host: Host) -> FastAPI:
    """Build a FastAPI app serving ``host``. The app's lifespan keeps the host running."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting HTTP surface", host=host.name)
        async with host.running():
            yield
        logger.info("HTTP surface stopped", host=host.name)

    app = FastAPI(
        title=f"{host.name} host",
        description="Composable capability host",
        version=__version__,
        lifespan=lifespan
    )
    app.state.host = host

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            host=host.name,
            running=host.is_running,
            local_capabilities=host.registry.get_counts(),
            mounts=[
                MountInfo(prefix=link.prefix, child=link.target.name, mode=link.mode.value)
                for link in host.links
            ],
        )

    @app.post("/rpc", response_model=CapabilityResponse, tags=["Capabilities"])
    async def rpc(request: CapabilityRequest):
        """
        Serve one request envelope.

        Failures come back as an error payload in a 200 response, the same way
        they travel through an in-process session.
        """
        return await host.handle(request)

    return app


def main():
    """Run the platform host over HTTP."""
    import uvicorn

    from domains import build_platform_host

    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    uvicorn.run(
        create_app(build_platform_host()),
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()

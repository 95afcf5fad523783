"""Client transports.

A transport carries request envelopes to a host and brings responses back.
The in-process transport serialises both through JSON, so a caller sees
exactly what it would see over HTTP.
"""

from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.logging import get_logger
from shared.models import Request, Response

if TYPE_CHECKING:
    from mcp_server.host import Host

logger = get_logger(__name__)


class ClientTransport(ABC):
    """Connection to a single host."""

    @property
    @abstractmethod
    def target(self) -> str:
        """Human readable name of the other end."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection. Runs the host's startup where applicable."""

    @abstractmethod
    async def request(self, request: Request) -> Response:
        """Send one request and wait for its response."""

    @abstractmethod
    async def close(self) -> None:
        """Tear the connection down. Safe to call when not connected."""


class InProcessTransport(ClientTransport):
    """
    Talks to a host living in the same process.

    Connecting enters ``host.running()``, which runs the host's lifespan
    startup; closing leaves it again and runs shutdown.
    """

    def __init__(self, host: "Host") -> None:
        self.host = host
        self._stack: Optional[AsyncExitStack] = None

    @property
    def target(self) -> str:
        return self.host.name

    async def connect(self) -> None:
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self.host.running())
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack

    async def request(self, request: Request) -> Response:
        wire_request = Request.model_validate(request.model_dump(mode="json"))
        response = await self.host.handle(wire_request)
        return Response.model_validate(response.model_dump(mode="json"))

    async def close(self) -> None:
        if self._stack is None:
            return
        stack, self._stack = self._stack, None
        await stack.aclose()


class HTTPTransport(ClientTransport):
    """
    Talks to a host served by ``mcp_server.main`` over HTTP.

    ``transport`` lets callers plug in any httpx transport, e.g. an
    ``httpx.ASGITransport`` wrapping the app directly.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8001",
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def target(self) -> str:
        return self.base_url

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self.headers,
            transport=self._transport,
        )
        try:
            await self._check_health()
        except BaseException:
            await self.close()
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _check_health(self) -> None:
        response = await self._client.get("/health")
        response.raise_for_status()
        logger.debug("Connected to host", target=self.base_url, health=response.json())

    async def request(self, request: Request) -> Response:
        if self._client is None:
            raise RuntimeError("Transport is not connected")

        response = await self._client.post("/rpc", json=request.model_dump(mode="json"))
        response.raise_for_status()
        return Response.model_validate(response.json())

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()

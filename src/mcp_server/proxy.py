"""Proxy delegation to a mounted host.

A proxied call reaches the child through a client session, the same
request/response path an external client uses, so the child's lifespan runs
around it.

Session policy: while the parent host is running (inside ``Host.running()``)
each proxy link shares one session, and the child's lifespan runs once for
that whole period. Links mounted while the parent is already running open
their shared session on first use. Outside of it every call opens its own
session, so the child's startup and shutdown run once per call.

A per-call session is closed on success, failure, timeout and cancellation.
A timed out or cancelled request on the shared session only abandons that
request; the session stays open for every other caller until the link is
unmounted or the parent stops.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from shared.config import CompositionSettings
from shared.errors import ProxySessionError
from shared.logging import get_logger
from shared.models import RequestMethod
from mcp_client.client import MCPClient
from mcp_client.transport import InProcessTransport

if TYPE_CHECKING:
    from mcp_server.host import Host


class ProxyAdapter:
    """Sends requests for one proxy link through a client session."""

    def __init__(self, target: "Host", settings: CompositionSettings) -> None:
        self.target = target
        self.timeout = settings.proxy_timeout_seconds
        self.share_sessions = settings.share_proxy_sessions
        self.logger = get_logger(__name__, target=target.name)

        self._sharing = False
        self._shared: Optional[MCPClient] = None
        self._open_lock = asyncio.Lock()
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def _new_client(self) -> MCPClient:
        return MCPClient(InProcessTransport(self.target))

    @property
    def is_sharing(self) -> bool:
        return self._sharing

    @property
    def has_shared_session(self) -> bool:
        return self._shared is not None and self._shared.is_connected

    @property
    def in_flight(self) -> int:
        """Requests currently running on the shared session."""
        return self._in_flight

    def enable_sharing(self) -> None:
        """Route later calls through one shared session, opened on first use."""
        self._sharing = self.share_sessions

    def disable_sharing(self) -> None:
        """Stop handing out the shared session. An open one stays open until closed."""
        self._sharing = False

    async def open_shared(self) -> None:
        """
        Enable sharing and open the shared session now.

        Raises:
            ProxySessionError: If the session could not be opened. Sharing
                stays enabled, so the next call retries.
        """
        self.enable_sharing()
        await self._shared_client()

    async def close_shared(self) -> None:
        """Stop sharing, wait for requests still running on the session, then close it."""
        self.disable_sharing()
        await self._idle.wait()

        async with self._open_lock:
            shared, self._shared = self._shared, None
            if shared is not None:
                self.logger.debug("Shared proxy session closing")
                await shared.close()

    async def _shared_client(self) -> Optional[MCPClient]:
        if not self._sharing:
            return None

        async with self._open_lock:
            if not self._sharing:
                return None
            if not self.has_shared_session:
                client = self._new_client()
                await client.connect()
                self._shared = client
                self.logger.debug("Shared proxy session opened")
            return self._shared

    async def request(self, method: RequestMethod, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Send one request to the target and return its result.

        Raises:
            ProxySessionError: If the session fails or the call times out
            CompositionError: Any typed error the target answered with
        """
        try:
            return await asyncio.wait_for(self._send(method, params or {}), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.logger.warning("Proxied call timed out", method=method.value, timeout=self.timeout)
            raise ProxySessionError(
                f"Proxied {method.value} to '{self.target.name}' timed out after {self.timeout}s"
            ) from e

    async def _send(self, method: RequestMethod, params: dict[str, Any]) -> Any:
        shared = await self._shared_client()
        if shared is not None:
            self._in_flight += 1
            self._idle.clear()
            try:
                return await shared.request(method, params)
            finally:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._idle.set()

        async with self._new_client() as client:
            return await client.request(method, params)

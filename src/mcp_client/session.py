"""Client session state machine.

    idle --open--> session_open --close/cancel--> closing --> idle

Cancelling forces ``closing`` from any state and always tears the
transport down, so no code path leaves a session dangling.
"""

import asyncio
from enum import Enum
from typing import Optional

from shared.errors import CompositionError, ProxySessionError
from shared.logging import get_logger
from shared.models import Request, Response
from mcp_client.transport import ClientTransport

logger = get_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    OPEN = "session_open"
    CLOSING = "closing"


class ClientSession:
    """A single connect/disconnect lifecycle over a transport."""

    def __init__(self, transport: ClientTransport) -> None:
        self.transport = transport
        self.state = SessionState.IDLE

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    async def open(self) -> None:
        """
        Connect the transport.

        Raises:
            ProxySessionError: If the session is not idle or connecting fails
        """
        if self.state is not SessionState.IDLE:
            raise ProxySessionError(f"Cannot open a session that is {self.state.value}")

        try:
            await self.transport.connect()
        except ProxySessionError:
            raise
        except Exception as e:
            raise ProxySessionError(
                f"Failed to open session with '{self.transport.target}': {e}"
            ) from e

        self.state = SessionState.OPEN
        logger.debug("Session opened", target=self.transport.target)

    async def send(self, request: Request) -> Response:
        """
        Send one request over the open session.

        A cancelled request leaves the session open: other requests may share
        it. Whoever opened the session decides whether to cancel it, as
        ``__aexit__`` does.
        """
        if self.state is not SessionState.OPEN:
            raise ProxySessionError(f"Cannot send on a session that is {self.state.value}")

        try:
            return await self.transport.request(request)
        except CompositionError:
            raise
        except Exception as e:
            raise ProxySessionError(
                f"Request {request.method.value} to '{self.transport.target}' failed: {e}"
            ) from e

    async def close(self) -> None:
        if self.state is SessionState.IDLE:
            return
        self.state = SessionState.CLOSING
        await self._teardown()

    async def cancel(self) -> None:
        """Force the session closed, whatever state it is in."""
        self.state = SessionState.CLOSING
        await self._teardown()

    async def _teardown(self) -> None:
        try:
            await self.transport.close()
        except Exception as e:
            raise ProxySessionError(
                f"Failed to close session with '{self.transport.target}': {e}"
            ) from e
        finally:
            self.state = SessionState.IDLE
            logger.debug("Session closed", target=self.transport.target)

    async def __aenter__(self) -> "ClientSession":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: object,
    ) -> None:
        if self.state is SessionState.IDLE:
            return

        try:
            if exc_type is not None and issubclass(exc_type, asyncio.CancelledError):
                await self.cancel()
            else:
                await self.close()
        except ProxySessionError:
            if exc_type is None:
                raise
            logger.warning(
                "Session teardown failed after an earlier error",
                target=self.transport.target,
                exc_info=True
            )

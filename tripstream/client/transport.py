"""
HTTP transport for the planning stream.

PlanStreamClient POSTs a chat request to the streaming endpoint and
feeds the response body, chunk by chunk, into a PlanningSession.
"""

import asyncio
import logging
from typing import Optional

import httpx

from tripstream.client.session import PlanningSession
from tripstream.shared.contracts.plan_output import ChatRequest
from tripstream.shared.logging.config import truncate


logger = logging.getLogger(__name__)

STREAM_PATH = "/api/chat/stream"


class PlanTransportError(Exception):
    """Connection failure, timeout, or non-success status for a planning turn."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlanStreamClient:
    """Client for the server's streaming chat endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Server base URL (e.g., "http://localhost:8000")
            timeout_s: Request timeout in seconds
            client: Optional pre-built AsyncClient; not closed by this object
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "PlanStreamClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def stream_turn(self, request: ChatRequest, session: PlanningSession) -> PlanningSession:
        """
        Run one planning turn against the server.

        The session is reset, fed every body chunk in arrival order and
        flushed at end of stream.

        Args:
            request: Chat request to send
            session: Session that owns the turn's document

        Returns:
            The same session

        Raises:
            PlanTransportError: On connection failure, timeout or non-200 status
        """
        turn = session.begin_turn()
        body = request.model_dump(by_alias=True, exclude_none=True)
        url = f"{self.base_url}{STREAM_PATH}"
        client = self._get_client()

        try:
            async with client.stream(
                "POST",
                url,
                json=body,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code != 200:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise PlanTransportError(
                        f"Server returned {response.status_code}: {truncate(detail, 500)}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_text():
                    session.feed(chunk)
            session.flush()
        except asyncio.CancelledError:
            session.cancel()
            raise
        except httpx.TimeoutException as e:
            logger.warning(f"[turn={turn}] [transport] Timed out: {e}")
            raise PlanTransportError(f"Planning stream timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"[turn={turn}] [transport] HTTP error: {e}")
            raise PlanTransportError(f"Planning stream failed: {e}") from e

        logger.info(
            f"[turn={turn}] [transport] Stream complete | "
            f"days={len(session.reconciler.document)}, finalized={session.reconciler.finalized}"
        )
        return session

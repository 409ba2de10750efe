"""HTTP probe backed by a shared ``httpx.AsyncClient``.

Transport errors are rendered with the same message vocabulary a browser
uses (``net::`` network errors, ``SSL`` handshake failures, ``timeout``) so
both backends classify into the same error types.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from .base import BaseProbe, NavigationFailure, ProbeOptions, ProbeSession

logger = structlog.get_logger()


def describe_transport_error(exc: httpx.HTTPError, timeout_ms: int) -> str:
    """Turn an httpx failure into a classifiable error message."""
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.TimeoutException):
        return f"Request timeout of {timeout_ms}ms exceeded: {detail}"
    if isinstance(exc, httpx.ConnectError):
        if "SSL" in detail or "CERTIFICATE" in detail.upper():
            return f"SSL handshake failed: {detail}"
        return f"net::ERR_CONNECTION_FAILED: {detail}"
    return f"{type(exc).__name__}: {detail}"


class HttpSession(ProbeSession):
    def __init__(self, client: httpx.AsyncClient, user_agent: str) -> None:
        super().__init__()
        self._client = client
        self._user_agent = user_agent

    async def navigate(self, url: str, timeout_ms: int) -> int:
        sent_at = time.time()
        entry = {"url": url, "method": "GET", "timestamp": sent_at}
        self.diagnostics.request_log.append(entry)
        # httpx timeouts apply per phase; asyncio.timeout bounds the whole visit.
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                resp = await self._client.get(
                    url,
                    headers={"User-Agent": self._user_agent},
                    timeout=timeout_ms / 1000,
                )
        except TimeoutError as exc:
            entry["error"] = "timeout"
            raise NavigationFailure(f"Request timeout of {timeout_ms}ms exceeded") from exc
        except httpx.HTTPError as exc:
            entry["error"] = str(exc)
            raise NavigationFailure(describe_transport_error(exc, timeout_ms)) from exc
        entry["status"] = resp.status_code
        entry["response_timestamp"] = time.time()
        return resp.status_code

    async def interact(self, think_time_ms: int) -> None:
        await asyncio.sleep(think_time_ms / 1000)


class HttpProbe(BaseProbe):
    """Visits URLs with plain GET requests, following redirects."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_connections: int = 100,
        verify_tls: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            verify=verify_tls,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections // 2,
            ),
        )

    @asynccontextmanager
    async def session(self, user_id: int, options: ProbeOptions) -> AsyncIterator[HttpSession]:
        yield HttpSession(self._client, options.user_agent)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
            logger.debug("http_probe_closed")

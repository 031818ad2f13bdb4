"""Page existence prober with cooldown backoff for rate limiting and blocks.

Callers only ever see a ``ProbeResult``.  Status codes, redirect targets and
the soft-404 body marker stay inside this module.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

import httpx

from variant_scanner.models import ProbeResult

logger = logging.getLogger(__name__)

USER_AGENT = "CardVariantScanner/0.1"
INVALID_PRODUCT_MARKER = "Invalid product!"

RATE_LIMITED = 429
BLOCKED = 403

SleepFunc = Callable[[float], Awaitable[None]]


class RemoteUnavailableError(RuntimeError):
    """Raised when a probe fails at the network level (DNS, connect, timeout)."""


@dataclass
class ProbeStats:
    """Counters accumulated over the lifetime of one prober."""

    requests: int = 0
    rate_limited: int = 0
    blocked: int = 0
    abandoned: int = 0
    cooldown_seconds: float = 0.0


class PageProber:
    """Checks whether a catalog page exists.

    A 429 response waits ``rate_limit_cooldown`` seconds and a 403 waits
    ``block_cooldown`` seconds before the request is retried.  Repeated
    transient responses for the same URL grow the wait by ``backoff_factor``
    up to ``max_cooldown``.  After ``max_attempts`` transient responses the
    probe is abandoned as ``INCONCLUSIVE``; ``max_attempts=None`` retries
    forever.
    """

    def __init__(
        self,
        invalid_marker: str = INVALID_PRODUCT_MARKER,
        rate_limit_cooldown: float = 60.0,
        block_cooldown: float = 300.0,
        backoff_factor: float = 2.0,
        max_cooldown: float = 1800.0,
        max_attempts: Optional[int] = 8,
        timeout: float = 30.0,
        user_agent: str = USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._marker = invalid_marker
        self._rate_limit_cooldown = rate_limit_cooldown
        self._block_cooldown = block_cooldown
        self._backoff_factor = backoff_factor
        self._max_cooldown = max_cooldown
        self._max_attempts = max_attempts
        self._timeout = timeout
        self._user_agent = user_agent
        self._client = client
        self._sleep = sleep
        self.stats = ProbeStats()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=False,
                headers={"User-Agent": self._user_agent},
            )
        return self._client

    async def probe(self, url: str) -> ProbeResult:
        """Classify ``url`` as existing, not found, or inconclusive."""
        transient = 0
        while True:
            status, result = await self._request(url)
            if result is not None:
                return result

            transient += 1
            if status == RATE_LIMITED:
                self.stats.rate_limited += 1
                base, reason = self._rate_limit_cooldown, "429 Too Many Requests"
            else:
                self.stats.blocked += 1
                base, reason = self._block_cooldown, "403 Forbidden"

            if self._max_attempts is not None and transient >= self._max_attempts:
                self.stats.abandoned += 1
                logger.warning(
                    "%s on %s: giving up after %d attempts", reason, url, transient
                )
                return ProbeResult.INCONCLUSIVE

            delay = self._cooldown(base, transient)
            logger.warning("%s on %s, waiting %.0fs (attempt %d)", reason, url, delay, transient)
            self.stats.cooldown_seconds += delay
            await self._sleep(delay)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cooldown(self, base: float, attempt: int) -> float:
        return min(base * self._backoff_factor ** (attempt - 1), self._max_cooldown)

    async def _request(self, url: str) -> Tuple[int, Optional[ProbeResult]]:
        """Send one request.  Returns the status and, unless transient, the result."""
        client = self._get_client()
        request = client.build_request("GET", url)
        self.stats.requests += 1
        try:
            resp = await client.send(request, stream=True, follow_redirects=False)
        except httpx.TransportError as exc:
            raise RemoteUnavailableError(f"Request to {url} failed: {exc}") from exc

        try:
            if resp.status_code in (RATE_LIMITED, BLOCKED):
                return resp.status_code, None

            if httpx.codes.is_redirect(resp.status_code) or resp.url != request.url:
                logger.debug("%s redirected (%d), treating as missing", url, resp.status_code)
                return resp.status_code, ProbeResult.NOT_FOUND

            try:
                await resp.aread()
            except httpx.TransportError as exc:
                raise RemoteUnavailableError(f"Reading {url} failed: {exc}") from exc

            if self._marker and self._marker in resp.text:
                logger.debug("%s returned the invalid-product page", url)
                return resp.status_code, ProbeResult.NOT_FOUND

            if resp.status_code == httpx.codes.OK:
                return resp.status_code, ProbeResult.EXISTS
            return resp.status_code, ProbeResult.NOT_FOUND
        finally:
            await resp.aclose()

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from app.config import settings
from app.core.logging import get_logger

logger = get_logger().bind(module="community_fetcher")


class CommunityFetcher:
    """
    Single-shot HTTP fetcher for one upstream civic site.

    Upstream sites are small municipal/ISD servers, so there is exactly one
    request per call: no retries, no backoff. Every failure (DNS, TLS,
    timeout, non-2xx status) degrades to ``None`` and is only logged.
    """

    def __init__(
        self,
        *,
        user_agent: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            user_agent: User-Agent header sent upstream
            timeout_s: Deadline for one whole request, in seconds
            transport: Optional httpx transport (tests inject a mock transport)
        """
        self.user_agent = user_agent or settings.COMMUNITY_USER_AGENT
        self.timeout_s = timeout_s if timeout_s is not None else settings.COMMUNITY_FETCH_TIMEOUT_S
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CommunityFetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_html(self, url: str) -> Optional[str]:
        """
        Fetch ``url`` and return its body, or ``None`` on any failure.

        Raises:
            RuntimeError: If used outside ``async with`` (programming error,
                not an upstream failure)
        """
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")

        try:
            # Deadline covers the whole request, not each read.
            response = await asyncio.wait_for(self._client.get(url), timeout=self.timeout_s)
            response.raise_for_status()
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("community_fetch_timeout", url=url, timeout_s=self.timeout_s, error=str(exc))
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning("community_fetch_bad_status", url=url, status_code=exc.response.status_code)
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "community_fetch_failed",
                url=url,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

        logger.debug("community_fetch_ok", url=url, bytes=len(response.content))
        return response.text

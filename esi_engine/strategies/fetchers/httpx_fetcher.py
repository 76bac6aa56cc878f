"""httpx-based fragment fetcher.

Fetches ESI fragments with a shared ``httpx.AsyncClient`` so connections are
pooled across includes and across requests.
"""

import asyncio
import logging

import httpx

from esi_engine.interfaces.fetcher import (
    BaseFragmentFetcher,
    FetchFailureReason,
    FetchOutcome,
    ResolvedFetch,
)

logger = logging.getLogger(__name__)


class HttpxFragmentFetcher(BaseFragmentFetcher):
    """Fragment fetcher backed by ``httpx.AsyncClient``.

    Attributes:
        client: The async HTTP client used for all fetches.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        follow_redirects: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: An existing client to reuse. The fetcher does not close
                a client it did not create.
            follow_redirects: Whether redirects are followed.
            transport: Optional transport for a newly created client.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=follow_redirects,
            transport=transport,
        )
        self._follow_redirects = follow_redirects

    async def fetch(self, request: ResolvedFetch, timeout: float) -> FetchOutcome:
        logger.debug(f"Fetching ESI fragment: {request.url}")

        try:
            async with asyncio.timeout(timeout):
                response = await self._client.get(
                    request.url,
                    headers=dict(request.headers),
                    timeout=timeout,
                    follow_redirects=self._follow_redirects,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            return FetchOutcome.failed(
                request.url,
                FetchFailureReason.TIMEOUT,
                f"Timed out after {timeout}s: {e!r}",
            )
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            return FetchOutcome.failed(
                request.url,
                FetchFailureReason.NETWORK,
                f"{type(e).__name__}: {e}",
            )

        if not response.is_success:
            return FetchOutcome.failed(
                request.url,
                FetchFailureReason.STATUS,
                f"Upstream answered {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        logger.debug(f"Fetched {len(response.content)} bytes from {request.url}")
        return FetchOutcome.succeeded(request.url, response.text, response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

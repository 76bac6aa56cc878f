"""Unit tests for the httpx fragment fetcher."""

import asyncio

import httpx
import pytest

from esi_engine.interfaces.fetcher import FetchFailureReason, ResolvedFetch
from esi_engine.strategies.fetchers import HttpxFragmentFetcher


def _fetcher(handler) -> HttpxFragmentFetcher:
    return HttpxFragmentFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestHttpxFragmentFetcher:
    """Test suite for HttpxFragmentFetcher."""

    def test_success(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, text="<div>test</div>"))

        outcome = asyncio.run(fetcher.fetch(ResolvedFetch(url="http://h/frag"), 1.0))

        assert outcome.ok
        assert outcome.text == "<div>test</div>"
        assert outcome.status_code == 200
        assert outcome.url == "http://h/frag"

    def test_headers_forwarded(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, text="ok")

        fetcher = _fetcher(handler)
        request = ResolvedFetch(url="http://h/frag", headers={"x-custom-header": "blah"})

        asyncio.run(fetcher.fetch(request, 1.0))

        assert seen["x-custom-header"] == "blah"

    def test_non_success_status(self):
        fetcher = _fetcher(lambda request: httpx.Response(404, text="not found"))

        outcome = asyncio.run(fetcher.fetch(ResolvedFetch(url="http://h/missing"), 1.0))

        assert not outcome.ok
        assert outcome.reason is FetchFailureReason.STATUS
        assert outcome.status_code == 404
        assert outcome.text == ""

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        outcome = asyncio.run(_fetcher(handler).fetch(ResolvedFetch(url="http://down/"), 1.0))

        assert outcome.reason is FetchFailureReason.NETWORK
        assert "ConnectError" in outcome.detail

    def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, text="too late")

        outcome = asyncio.run(_fetcher(handler).fetch(ResolvedFetch(url="http://slow/"), 0.05))

        assert outcome.reason is FetchFailureReason.TIMEOUT

    def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        outcome = asyncio.run(_fetcher(handler).fetch(ResolvedFetch(url="http://slow/"), 1.0))

        assert outcome.reason is FetchFailureReason.TIMEOUT

    def test_unencodable_header_is_a_network_failure(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, text="never sent"))
        request = ResolvedFetch(url="http://h/frag", headers={"x-user": "José"})

        outcome = asyncio.run(fetcher.fetch(request, 1.0))

        assert outcome.reason is FetchFailureReason.NETWORK
        assert outcome.text == ""

    def test_cancellation_propagates(self):
        async def run_test():
            ready = asyncio.Event()

            async def handler(request):
                ready.set()
                await asyncio.sleep(10)
                return httpx.Response(200)

            task = asyncio.create_task(
                _fetcher(handler).fetch(ResolvedFetch(url="http://slow/"), 30.0)
            )
            await ready.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run_test())

    def test_borrowed_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        fetcher = HttpxFragmentFetcher(client=client)

        asyncio.run(fetcher.aclose())

        assert client.is_closed is False

    def test_owned_client_is_closed(self):
        fetcher = HttpxFragmentFetcher(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        asyncio.run(fetcher.aclose())

        assert fetcher.client.is_closed is True

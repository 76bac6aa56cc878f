"""Shared fixtures for ESI engine tests."""

from collections.abc import Callable

import httpx
import pytest

from esi_engine.core.engine import SubstitutionEngine
from esi_engine.strategies.fetchers import HttpxFragmentFetcher
from esi_engine.strategies.interpolators import VarsInterpolator
from esi_engine.strategies.scanners import StateMachineScanner

FRAGMENT_HOST = "http://fragments.test"


def make_engine(handler: Callable) -> SubstitutionEngine:
    """Build an engine whose fragment requests are answered by ``handler``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SubstitutionEngine(
        scanner=StateMachineScanner(),
        fetcher=HttpxFragmentFetcher(client=client),
        interpolator=VarsInterpolator(),
    )


def static_handler(body: str, status_code: int = 200) -> Callable:
    """Handler answering every request with the same body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    return handler


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def echo_handler(recorded_requests) -> Callable:
    """Handler answering with the requested path, recording each request."""

    def handler(request: httpx.Request) -> httpx.Response:
        recorded_requests.append(request)
        return httpx.Response(200, text=f"I'm included via {request.url.path}")

    return handler

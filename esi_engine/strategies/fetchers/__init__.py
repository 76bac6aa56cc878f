"""Concrete fragment fetcher implementations."""

from esi_engine.strategies.fetchers.httpx_fetcher import HttpxFragmentFetcher

__all__ = [
    "HttpxFragmentFetcher",
]

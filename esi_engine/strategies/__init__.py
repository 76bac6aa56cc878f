"""Concrete strategy implementations."""

from esi_engine.strategies.fetchers import (
    HttpxFragmentFetcher,
)
from esi_engine.strategies.interpolators import (
    VarsInterpolator,
)
from esi_engine.strategies.scanners import (
    StateMachineScanner,
)

__all__ = [
    "StateMachineScanner",
    "HttpxFragmentFetcher",
    "VarsInterpolator",
]

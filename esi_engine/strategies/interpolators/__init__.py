"""Concrete variable interpolator implementations."""

from esi_engine.strategies.interpolators.vars import VarsInterpolator

__all__ = [
    "VarsInterpolator",
]

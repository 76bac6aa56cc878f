"""Edge Side Include resolution for FastAPI applications."""

from esi_engine.api import EsiMiddleware, EsiTemplates
from esi_engine.core import (
    ComponentFactory,
    EffectiveOptions,
    EsiConfig,
    EsiOptions,
    SubstitutionEngine,
    resolve_options,
)
from esi_engine.interfaces import SubstitutionResult

__all__ = [
    "ComponentFactory",
    "EffectiveOptions",
    "EsiConfig",
    "EsiMiddleware",
    "EsiOptions",
    "EsiTemplates",
    "SubstitutionEngine",
    "SubstitutionResult",
    "resolve_options",
]

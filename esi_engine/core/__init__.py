"""Core configuration, option resolution and the substitution engine."""

from esi_engine.core.config import Settings, get_settings
from esi_engine.core.engine import SubstitutionEngine
from esi_engine.core.factory import ComponentFactory
from esi_engine.core.options import EffectiveOptions, EsiConfig, EsiOptions, resolve_options

__all__ = [
    "Settings",
    "get_settings",
    "ComponentFactory",
    "SubstitutionEngine",
    "EffectiveOptions",
    "EsiConfig",
    "EsiOptions",
    "resolve_options",
]

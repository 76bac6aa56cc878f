"""FastAPI integration: middleware, template rendering and dependencies."""

from esi_engine.api.deps import (
    get_esi_config,
    get_esi_engine,
    mark_resolved,
    request_overrides,
)
from esi_engine.api.middleware import EsiMiddleware
from esi_engine.api.templates import EsiTemplates

__all__ = [
    "EsiMiddleware",
    "EsiTemplates",
    "get_esi_config",
    "get_esi_engine",
    "mark_resolved",
    "request_overrides",
]

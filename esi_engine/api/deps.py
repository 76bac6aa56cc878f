"""Request-scoped ESI helpers and FastAPI dependencies.

Endpoints override ESI options for a single request by setting
``request.state.esi_options`` to an EsiOptions or a plain mapping:

    request.state.esi_options = {"vars": {"USER": "alice"}}
"""

import logging
from collections.abc import MutableMapping
from typing import Any

from fastapi import Request

from esi_engine.core.engine import SubstitutionEngine
from esi_engine.core.options import EsiConfig, EsiOptions

logger = logging.getLogger(__name__)

OPTIONS_KEY = "esi_options"
RESOLVED_KEY = "esi_resolved"


def _state(scope: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    # Shares the dict behind starlette's request.state
    return scope.setdefault("state", {})


def request_overrides(scope: MutableMapping[str, Any]) -> EsiOptions | None:
    """Return the per-call overrides stored on the request, if any.

    Raises:
        pydantic.ValidationError: If the stored mapping holds invalid values.
    """
    overrides = _state(scope).get(OPTIONS_KEY)
    if overrides is None:
        return None
    if isinstance(overrides, EsiConfig):
        return EsiOptions.model_validate(overrides.model_dump())
    return EsiOptions.model_validate(dict(overrides))


def mark_resolved(scope: MutableMapping[str, Any]) -> None:
    """Flag the response of this request as already resolved."""
    _state(scope)[RESOLVED_KEY] = True


def is_resolved(scope: MutableMapping[str, Any]) -> bool:
    return bool(_state(scope).get(RESOLVED_KEY, False))


def get_esi_engine(request: Request) -> SubstitutionEngine:
    """Dependency returning the application's substitution engine.

    Raises:
        RuntimeError: If the application was not built by ``create_app``.
    """
    engine = getattr(request.app.state, "esi_engine", None)
    if engine is None:
        logger.error("No ESI engine registered on app.state")
        raise RuntimeError("ESI engine is not configured on this application")
    return engine


def get_esi_config(request: Request) -> EsiConfig:
    """Dependency returning the application's global ESI configuration."""
    return getattr(request.app.state, "esi_config", None) or EsiConfig()

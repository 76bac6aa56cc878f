"""Layered ESI option resolution.

Three layers feed every resolution call, highest precedence first:

1. Per-call overrides (``request.state.esi_options``).
2. Global middleware configuration.
3. Built-in defaults.

The result is an immutable EffectiveOptions value that is built once per
call and passed down to every component.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_DEPTH = 5


class EsiConfig(BaseModel):
    """Global ESI configuration, the middleware-wide layer.

    Every field is optional; an unset field falls through to the built-in
    default.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str | None = Field(
        default=None,
        description="Base URL used to resolve relative include sources.",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers forwarded with every fragment request.",
    )
    vars: dict[str, Any] = Field(
        default_factory=dict,
        description="Variable bindings for esi:vars regions.",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Per-fragment fetch timeout in seconds.",
    )
    max_depth: int | None = Field(
        default=None,
        ge=0,
        description="Maximum include nesting depth that is resolved.",
    )

    @field_validator("headers")
    @classmethod
    def check_header_encoding(cls, v: dict[str, str]) -> dict[str, str]:
        """Header names and values must be ASCII to go on the wire."""
        for name, value in v.items():
            if not (name.isascii() and value.isascii()):
                raise ValueError(f"Header {name!r} must contain only ASCII characters")
        return v


class EsiOptions(EsiConfig):
    """Per-call overrides, usually set on ``request.state.esi_options``."""

    pass


@dataclass(frozen=True)
class EffectiveOptions:
    """Options in force for one top-level resolution call.

    Attributes:
        base_url: Base URL for relative sources, or None.
        headers: Read-only headers forwarded with fragment requests.
        vars: Read-only variable bindings.
        timeout: Per-fragment fetch timeout in seconds.
        max_depth: Maximum include nesting depth that is resolved.
    """

    base_url: str | None = None
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    vars: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    timeout: float = DEFAULT_TIMEOUT
    max_depth: int = DEFAULT_MAX_DEPTH


def _coerce(model: type[EsiConfig], value: EsiConfig | Mapping[str, Any] | None) -> EsiConfig:
    if value is None:
        return model()
    if isinstance(value, EsiConfig):
        return value
    return model.model_validate(dict(value))


def merge_headers(*layers: Mapping[str, str]) -> dict[str, str]:
    """Merge header mappings key-wise, later layers winning.

    Header names are compared case-insensitively; the spelling from the
    winning layer is kept.
    """
    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        for name, value in layer.items():
            merged[name.lower()] = (name, value)
    return dict(merged.values())


def resolve_options(
    config: EsiConfig | Mapping[str, Any] | None = None,
    override: EsiOptions | Mapping[str, Any] | None = None,
) -> EffectiveOptions:
    """Merge the configuration layers into EffectiveOptions.

    Args:
        config: Global configuration.
        override: Per-call overrides.

    Returns:
        The frozen options for one resolution call.

    Raises:
        pydantic.ValidationError: If a mapping layer holds invalid values.
    """
    base = _coerce(EsiConfig, config)
    call = _coerce(EsiOptions, override)

    def pick(name: str, default: Any) -> Any:
        value = getattr(call, name)
        if value is None:
            value = getattr(base, name)
        return default if value is None else value

    options = EffectiveOptions(
        base_url=pick("base_url", None),
        headers=MappingProxyType(merge_headers(base.headers, call.headers)),
        vars=MappingProxyType({**base.vars, **call.vars}),
        timeout=float(pick("timeout", DEFAULT_TIMEOUT)),
        max_depth=int(pick("max_depth", DEFAULT_MAX_DEPTH)),
    )

    logger.debug(
        f"Resolved ESI options: base_url={options.base_url}, "
        f"headers={sorted(options.headers)}, vars={sorted(options.vars)}, "
        f"timeout={options.timeout}, max_depth={options.max_depth}"
    )
    return options

"""Abstract base classes and shared types for ESI processing strategies."""

from esi_engine.interfaces.errors import (
    BodyDecodeError,
    ConfigError,
    EsiError,
    ScanError,
    SubstitutionError,
    SubstitutionTimeoutError,
)
from esi_engine.interfaces.fetcher import (
    BaseFragmentFetcher,
    FetchFailureReason,
    FetchOutcome,
    ResolvedFetch,
)
from esi_engine.interfaces.interpolator import BaseVariableInterpolator
from esi_engine.interfaces.results import DirectiveFailure, FailureKind, SubstitutionResult
from esi_engine.interfaces.scanner import BaseDirectiveScanner, Directive, DirectiveKind, ScanResult

__all__ = [
    "BaseDirectiveScanner",
    "BaseFragmentFetcher",
    "BaseVariableInterpolator",
    "Directive",
    "DirectiveKind",
    "ScanResult",
    "ResolvedFetch",
    "FetchOutcome",
    "FetchFailureReason",
    "DirectiveFailure",
    "FailureKind",
    "SubstitutionResult",
    "EsiError",
    "ScanError",
    "ConfigError",
    "SubstitutionError",
    "BodyDecodeError",
    "SubstitutionTimeoutError",
]

"""Result types reported by the substitution engine."""

from dataclasses import dataclass, field
from enum import Enum

from esi_engine.interfaces.fetcher import FetchFailureReason


class FailureKind(str, Enum):
    """Category of a non-fatal, directive-local failure."""

    SCAN = "scan"
    CONFIG = "config"
    FETCH = "fetch"
    RECURSION_LIMIT = "recursion_limit"


@dataclass(frozen=True)
class DirectiveFailure:
    """A directive that could not be resolved.

    Attributes:
        kind: Failure category.
        detail: Human readable description.
        src: The include source, when known.
        depth: Nesting depth at which the failure happened (1 = top level).
        reason: Fetch failure tag for FETCH failures.
    """

    kind: FailureKind
    detail: str
    src: str | None = None
    depth: int = 1
    reason: FetchFailureReason | None = None


@dataclass(frozen=True)
class SubstitutionResult:
    """Outcome of one resolution call.

    Attributes:
        text: The reassembled document.
        processed: Number of directives resolved, fetch failures included.
        failures: Directive-local failures in document order.
    """

    text: str
    processed: int = 0
    failures: list[DirectiveFailure] = field(default_factory=list)

    @property
    def recursion_limit_reached(self) -> bool:
        return any(f.kind is FailureKind.RECURSION_LIMIT for f in self.failures)

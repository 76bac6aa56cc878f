"""Abstract base class for directive scanners.

A scanner locates ``esi:include`` and ``esi:vars`` directives in a text
body without building a parse tree.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from esi_engine.interfaces.errors import ScanError


class DirectiveKind(str, Enum):
    """Supported ESI directive kinds."""

    INCLUDE = "include"
    VARS = "vars"


@dataclass(frozen=True)
class Directive:
    """One directive occurrence found in a text body.

    Attributes:
        kind: Whether this is an include or a vars region.
        span: ``(start, end)`` offsets of the directive in the scanned text.
        attributes: Tag attributes, keyed by lowercase name.
        inner_text: Text between the open and close tags.
        closing_span: Offsets of a detached close tag, set only when an
            include's body held another include. That close tag is removed
            together with the directive.
    """

    kind: DirectiveKind
    span: tuple[int, int]
    attributes: Mapping[str, str] = field(default_factory=dict)
    inner_text: str = ""
    closing_span: tuple[int, int] | None = None

    @property
    def start(self) -> int:
        return self.span[0]

    @property
    def end(self) -> int:
        return self.span[1]

    @property
    def src(self) -> str | None:
        """Return the include source attribute, if any."""
        return self.attributes.get("src")


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one scan pass.

    Attributes:
        directives: Valid directives ordered by start offset.
        errors: Malformed occurrences that were skipped.
    """

    directives: list[Directive] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)


class BaseDirectiveScanner(ABC):
    """Abstract base class for directive scanning strategies.

    Example:
        ```python
        class StateMachineScanner(BaseDirectiveScanner):
            def scan(self, text: str) -> ScanResult:
                # Walk the text tag by tag
                pass
        ```
    """

    @abstractmethod
    def scan(self, text: str) -> ScanResult:
        """Locate all directives in ``text``.

        Args:
            text: The document or fragment text.

        Returns:
            A ScanResult with non-overlapping directives ordered by offset
            and the scan errors encountered along the way.
        """
        ...

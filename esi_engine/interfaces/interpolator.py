"""Abstract base class for ``esi:vars`` interpolation strategies."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class BaseVariableInterpolator(ABC):
    """Replaces variable tokens inside an ``esi:vars`` region."""

    @abstractmethod
    def interpolate(self, text: str, variables: Mapping[str, Any]) -> str:
        """Substitute every variable token in ``text``.

        Args:
            text: Inner text of a vars region.
            variables: Request-scoped variable bindings.

        Returns:
            The text with tokens replaced. Unbound names become empty
            strings; this method never raises for them.
        """
        ...

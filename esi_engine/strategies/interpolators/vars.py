"""ESI variable interpolator.

Replaces ``$(NAME)`` tokens inside ``esi:vars`` regions with request-scoped
values. Unbound names resolve to the empty string.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from esi_engine.interfaces.interpolator import BaseVariableInterpolator

logger = logging.getLogger(__name__)


class VarsInterpolator(BaseVariableInterpolator):
    """Interpolates ``$(NAME)`` tokens left to right.

    Text that only resembles a token, such as ``$(`` or ``$()``, is left as is.
    """

    TOKEN_PATTERN = re.compile(r"\$\(([A-Za-z0-9_.\-]+)\)")

    def interpolate(self, text: str, variables: Mapping[str, Any]) -> str:
        unresolved: list[str] = []

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            value = variables.get(name)
            if value is None:
                unresolved.append(name)
                return ""
            return str(value)

        result = self.TOKEN_PATTERN.sub(substitute, text)

        if unresolved:
            logger.debug(f"Unbound ESI variables resolved to empty string: {unresolved}")

        return result

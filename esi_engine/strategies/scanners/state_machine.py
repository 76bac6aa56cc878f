"""State-machine directive scanner.

Finds ``esi:include`` and ``esi:vars`` tags in arbitrary markup. Tag
attributes are read character by character so that quoting is respected,
and open/close tags are paired by tracking nesting depth rather than with
one greedy pattern, which keeps sibling and nested directives apart.
"""

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum, auto

from esi_engine.interfaces.errors import ScanError
from esi_engine.interfaces.scanner import (
    BaseDirectiveScanner,
    Directive,
    DirectiveKind,
    ScanResult,
)

logger = logging.getLogger(__name__)

_NAME_END = r"(?=[\s/>])"
_MARKER = re.compile(rf"<(/?)esi:(include|vars){_NAME_END}", re.IGNORECASE)
_INCLUDE_MARKER = re.compile(rf"<(/?)esi:include{_NAME_END}", re.IGNORECASE)
_VARS_MARKER = re.compile(rf"<(/?)esi:vars{_NAME_END}", re.IGNORECASE)
_CLOSE_TAG = re.compile(r"</esi:(include|vars)\s*>", re.IGNORECASE)


class _TagState(Enum):
    BEFORE_NAME = auto()
    NAME = auto()
    AFTER_NAME = auto()
    BEFORE_VALUE = auto()
    QUOTED_VALUE = auto()
    UNQUOTED_VALUE = auto()


@dataclass(frozen=True)
class Tag:
    """Attributes and extent of one opening tag.

    Attributes:
        attributes: Attribute values keyed by lowercase name. The first
            occurrence of a repeated attribute wins.
        end: Offset just past the closing ``>``.
        self_closing: Whether the tag ended with ``/>``.
    """

    attributes: dict[str, str]
    end: int
    self_closing: bool


def read_tag(text: str, pos: int) -> Tag | None:
    """Read tag attributes from ``pos`` up to the tag's closing ``>``.

    A ``>`` inside a quoted attribute value does not end the tag.

    Args:
        text: The text being scanned.
        pos: Offset just past the tag name.

    Returns:
        The parsed Tag, or None when the text ends before the tag closes.
    """
    attributes: dict[str, str] = {}
    state = _TagState.BEFORE_NAME
    name = ""
    name_start = value_start = pos
    quote = ""
    slash = False
    i = pos
    length = len(text)

    while i < length:
        ch = text[i]

        if state is _TagState.QUOTED_VALUE:
            if ch == quote:
                attributes.setdefault(name, text[value_start:i])
                state = _TagState.BEFORE_NAME
            i += 1

        elif state is _TagState.UNQUOTED_VALUE:
            if ch.isspace() or ch == ">":
                attributes.setdefault(name, text[value_start:i])
                state = _TagState.BEFORE_NAME
            else:
                i += 1

        elif state is _TagState.NAME:
            if ch.isspace() or ch in "=/>":
                name = text[name_start:i].lower()
                state = _TagState.AFTER_NAME
            else:
                i += 1

        elif state is _TagState.AFTER_NAME:
            if ch.isspace():
                i += 1
            elif ch == "=":
                state = _TagState.BEFORE_VALUE
                i += 1
            else:
                # Valueless attribute
                attributes.setdefault(name, "")
                state = _TagState.BEFORE_NAME

        elif state is _TagState.BEFORE_VALUE:
            if ch.isspace():
                i += 1
            elif ch in "\"'":
                quote = ch
                value_start = i + 1
                state = _TagState.QUOTED_VALUE
                i += 1
            elif ch == ">":
                attributes.setdefault(name, "")
                state = _TagState.BEFORE_NAME
            else:
                value_start = i
                state = _TagState.UNQUOTED_VALUE

        else:
            if ch == ">":
                return Tag(attributes=attributes, end=i + 1, self_closing=slash)
            if ch == "/":
                slash = True
            elif not ch.isspace():
                slash = False
                name_start = i
                state = _TagState.NAME
            i += 1

    return None


class StateMachineScanner(BaseDirectiveScanner):
    """Scanner that walks directive tags with explicit nesting state.

    Rules:
        - ``<esi:include src="..."/>`` and ``<esi:include src="..."></esi:include>``
          are both accepted. The body of the open/close form is discarded.
        - An include whose body holds another include is split: the outer
          directive covers only its open tag, its close tag is recorded as
          ``closing_span``, and the inner include is scanned on its own.
        - ``esi:vars`` regions pair open and close tags by depth.
        - Malformed occurrences are reported as ScanError and skipped.
    """

    def scan(self, text: str) -> ScanResult:
        directives: list[Directive] = []
        errors: list[ScanError] = []
        # Includes still waiting for their detached close tag, innermost last.
        # None stands in for a skipped malformed include.
        detached: list[int | None] = []
        pos = 0

        while True:
            match = _MARKER.search(text, pos)
            if match is None:
                break

            name = match.group(2).lower()

            if match.group(1):
                close = _CLOSE_TAG.match(text, match.start())
                if close is None:
                    pos = match.end()
                    continue
                if name == "include" and detached:
                    index = detached.pop()
                    if index is not None:
                        directives[index] = replace(
                            directives[index], closing_span=close.span()
                        )
                pos = close.end()
                continue

            tag = read_tag(text, match.end())
            if tag is None:
                errors.append(
                    ScanError(f"Unterminated <esi:{name}> tag", offset=match.start())
                )
                pos = match.end()
                continue

            if name == "include":
                pos = self._scan_include(text, match.start(), tag, directives, errors, detached)
            else:
                pos = self._scan_vars(text, match.start(), tag, directives, errors)

        if directives or errors:
            logger.debug(
                f"Scanned {len(text)} characters: {len(directives)} directives, "
                f"{len(errors)} errors"
            )

        return ScanResult(directives=directives, errors=errors)

    def _scan_include(
        self,
        text: str,
        start: int,
        tag: Tag,
        directives: list[Directive],
        errors: list[ScanError],
        detached: list[int | None],
    ) -> int:
        """Record one include directive and return the offset to resume at."""
        end = tag.end
        inner_text = ""
        close_detached = False

        if not tag.self_closing:
            boundary = self._find_include_boundary(text, tag.end)
            if boundary is not None:
                boundary_start, boundary_end, is_close = boundary
                if is_close:
                    end = boundary_end
                    inner_text = text[tag.end:boundary_start]
                else:
                    close_detached = True

        if not tag.attributes.get("src", "").strip():
            errors.append(ScanError("esi:include is missing a src attribute", offset=start))
            if close_detached:
                detached.append(None)
            return end

        directives.append(
            Directive(
                kind=DirectiveKind.INCLUDE,
                span=(start, end),
                attributes=tag.attributes,
                inner_text=inner_text,
            )
        )
        if close_detached:
            detached.append(len(directives) - 1)
        return end

    def _find_include_boundary(self, text: str, pos: int) -> tuple[int, int, bool] | None:
        """Find whichever comes first after ``pos``: a close tag or a nested open tag.

        Returns:
            ``(start, end, is_close)`` of the boundary, or None if neither exists.
        """
        while True:
            match = _INCLUDE_MARKER.search(text, pos)
            if match is None:
                return None
            if not match.group(1):
                return match.start(), match.start(), False
            close = _CLOSE_TAG.match(text, match.start())
            if close is not None:
                return close.start(), close.end(), True
            pos = match.end()

    def _scan_vars(
        self,
        text: str,
        start: int,
        tag: Tag,
        directives: list[Directive],
        errors: list[ScanError],
    ) -> int:
        """Record one vars region and return the offset to resume at."""
        if tag.self_closing:
            directives.append(
                Directive(kind=DirectiveKind.VARS, span=(start, tag.end), attributes=tag.attributes)
            )
            return tag.end

        depth = 1
        pos = tag.end
        while True:
            match = _VARS_MARKER.search(text, pos)
            if match is None:
                errors.append(ScanError("Unterminated esi:vars region", offset=start))
                return tag.end

            if match.group(1):
                close = _CLOSE_TAG.match(text, match.start())
                if close is None:
                    pos = match.end()
                    continue
                depth -= 1
                if depth == 0:
                    directives.append(
                        Directive(
                            kind=DirectiveKind.VARS,
                            span=(start, close.end()),
                            attributes=tag.attributes,
                            inner_text=text[tag.end:close.start()],
                        )
                    )
                    return close.end()
                pos = close.end()
            else:
                nested = read_tag(text, match.end())
                if nested is None:
                    pos = match.end()
                    continue
                if not nested.self_closing:
                    depth += 1
                pos = nested.end

"""ESI substitution engine.

Drives one document resolution:

1. Scan the text for directives.
2. Resolve every directive of the pass concurrently.
3. Splice the replacements back in source order.
4. Resolve fetched fragments and the directives inside vars regions one
   level deeper, until no directives remain or ``max_depth`` is reached.

Variable values are substituted only into text that has already been
scanned, so a value is never itself read as a directive.

Directive-local failures degrade output locally and are reported in the
SubstitutionResult. Only cancellation, an elapsed deadline, or an
undecodable body abort the call.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from esi_engine.core.completion import Completion, deliver
from esi_engine.core.options import EffectiveOptions
from esi_engine.core.urls import resolve_fetch
from esi_engine.interfaces.errors import (
    BodyDecodeError,
    ConfigError,
    EsiError,
    SubstitutionError,
    SubstitutionTimeoutError,
)
from esi_engine.interfaces.fetcher import BaseFragmentFetcher
from esi_engine.interfaces.interpolator import BaseVariableInterpolator
from esi_engine.interfaces.results import DirectiveFailure, FailureKind, SubstitutionResult
from esi_engine.interfaces.scanner import BaseDirectiveScanner, Directive, DirectiveKind

logger = logging.getLogger(__name__)

Body = str | bytes | bytearray | memoryview


@dataclass(frozen=True)
class _Piece:
    """Resolution of one directive. ``replacement`` None keeps the tag literal."""

    replacement: str | None
    processed: int = 0
    failures: list[DirectiveFailure] = field(default_factory=list)


def decode_body(body: Body) -> str:
    """Return ``body`` as text, decoding binary input as UTF-8.

    Raises:
        BodyDecodeError: If the body is not valid UTF-8 or not text at all.
    """
    if isinstance(body, str):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        try:
            return bytes(body).decode("utf-8")
        except UnicodeDecodeError as e:
            raise BodyDecodeError(f"Body is not valid UTF-8: {e}") from e
    raise BodyDecodeError(f"Unsupported body type: {type(body).__name__}")


def splice(
    text: str,
    directives: list[Directive],
    replacements: list[str | None],
    fill: Callable[[str], str] | None = None,
) -> str:
    """Rebuild ``text`` with each directive span swapped for its replacement.

    A None replacement leaves the directive, and its detached close tag, as
    literal text. Text between the spans is passed through ``fill`` when
    given, otherwise copied unchanged.
    """
    edits: list[tuple[int, int, str]] = []
    for directive, replacement in zip(directives, replacements):
        if replacement is None:
            edits.append((directive.start, directive.end, text[directive.start:directive.end]))
            continue
        edits.append((directive.start, directive.end, replacement))
        if directive.closing_span is not None:
            edits.append((*directive.closing_span, ""))
    edits.sort(key=lambda edit: edit[0])

    fill = fill or str
    parts: list[str] = []
    cursor = 0
    for start, end, replacement in edits:
        parts.append(fill(text[cursor:start]))
        parts.append(replacement)
        cursor = end
    parts.append(fill(text[cursor:]))
    return "".join(parts)


class SubstitutionEngine:
    """Resolves ESI directives in a document.

    The engine holds only its strategies; all per-call state lives in the
    EffectiveOptions argument and local variables, so one engine can serve
    concurrent, unrelated requests.

    Example:
        ```python
        engine = SubstitutionEngine(StateMachineScanner(), HttpxFragmentFetcher(), VarsInterpolator())
        html = await engine.process(body, resolve_options(config, overrides))
        ```
    """

    def __init__(
        self,
        scanner: BaseDirectiveScanner,
        fetcher: BaseFragmentFetcher,
        interpolator: BaseVariableInterpolator,
    ) -> None:
        self._scanner = scanner
        self._fetcher = fetcher
        self._interpolator = interpolator

    async def substitute(
        self,
        body: Body,
        options: EffectiveOptions,
        deadline: float | None = None,
    ) -> SubstitutionResult:
        """Resolve all directives in ``body``.

        Args:
            body: Document text, or UTF-8 bytes.
            options: Effective options for this call.
            deadline: Optional overall time limit in seconds.

        Returns:
            The reassembled text with processing statistics.

        Raises:
            BodyDecodeError: If ``body`` is not UTF-8.
            SubstitutionTimeoutError: If ``deadline`` elapses.
            SubstitutionError: On any unexpected failure.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        text = decode_body(body)

        try:
            async with asyncio.timeout(deadline):
                result = await self._resolve(text, options, depth=1)
        except TimeoutError as e:
            logger.error(f"ESI processing exceeded deadline of {deadline}s")
            raise SubstitutionTimeoutError(
                f"ESI processing exceeded deadline of {deadline}s"
            ) from e
        except EsiError:
            raise
        except Exception as e:
            logger.error(f"ESI processing failed: {e}", exc_info=True)
            raise SubstitutionError(f"ESI processing failed: {e}") from e

        if result.processed or result.failures:
            logger.info(
                f"ESI processing complete: {result.processed} directives, "
                f"{len(result.failures)} failures"
            )
        return result

    async def process(
        self,
        body: Body,
        options: EffectiveOptions,
        deadline: float | None = None,
    ) -> str:
        """Resolve all directives in ``body`` and return only the text."""
        result = await self.substitute(body, options, deadline=deadline)
        return result.text

    async def process_with_callback(
        self,
        body: Body,
        options: EffectiveOptions,
        callback: Completion | None = None,
        deadline: float | None = None,
    ) -> object:
        """Resolve ``body`` and hand the outcome to ``callback(error, text)``."""
        return await deliver(self.process(body, options, deadline=deadline), callback)

    async def _resolve(
        self,
        text: str,
        options: EffectiveOptions,
        depth: int,
        in_vars: bool = False,
    ) -> SubstitutionResult:
        """Resolve one pass at ``depth``.

        With ``in_vars`` the text is the raw body of a vars region: it is
        scanned first, then variables are substituted into the text between
        directives and into include attributes.
        """
        scan = self._scanner.scan(text)
        fill = self._filler(options) if in_vars else None

        failures = [
            DirectiveFailure(kind=FailureKind.SCAN, detail=str(error), depth=depth)
            for error in scan.errors
        ]
        for error in scan.errors:
            logger.warning(f"Skipping malformed ESI directive at offset {error.offset}: {error}")

        if not scan.directives:
            return SubstitutionResult(text=fill(text) if fill else text, failures=failures)

        if depth > options.max_depth:
            logger.warning(
                f"ESI recursion limit {options.max_depth} reached; "
                f"leaving {len(scan.directives)} directives unresolved"
            )
            failures.append(
                DirectiveFailure(
                    kind=FailureKind.RECURSION_LIMIT,
                    detail=(
                        f"Depth {depth} exceeds max_depth {options.max_depth}; "
                        f"{len(scan.directives)} directives left unresolved"
                    ),
                    depth=depth,
                )
            )
            return SubstitutionResult(
                text=splice(text, scan.directives, [None] * len(scan.directives), fill),
                failures=failures,
            )

        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(self._resolve_directive(directive, options, depth, in_vars))
                for directive in scan.directives
            ]

        # Joined in span order, not completion order
        pieces = [task.result() for task in tasks]

        processed = 0
        for piece in pieces:
            processed += piece.processed
            failures.extend(piece.failures)

        return SubstitutionResult(
            text=splice(text, scan.directives, [piece.replacement for piece in pieces], fill),
            processed=processed,
            failures=failures,
        )

    def _filler(self, options: EffectiveOptions) -> Callable[[str], str]:
        def fill(segment: str) -> str:
            return self._interpolator.interpolate(segment, options.vars)

        return fill

    async def _resolve_directive(
        self,
        directive: Directive,
        options: EffectiveOptions,
        depth: int,
        in_vars: bool = False,
    ) -> _Piece:
        if directive.kind is DirectiveKind.VARS:
            nested = await self._resolve(directive.inner_text, options, depth + 1, in_vars=True)
            return _Piece(nested.text, 1 + nested.processed, nested.failures)

        if in_vars:
            # Values land in attributes only, never in scanned markup
            attributes = {
                name: self._interpolator.interpolate(value, options.vars)
                for name, value in directive.attributes.items()
            }
            directive = replace(directive, attributes=attributes)

        try:
            request = resolve_fetch(directive, options)
        except ConfigError as e:
            logger.warning(f"Leaving ESI include unresolved: {e}")
            return _Piece(
                None,
                failures=[
                    DirectiveFailure(
                        kind=FailureKind.CONFIG,
                        detail=str(e),
                        src=directive.src,
                        depth=depth,
                    )
                ],
            )

        outcome = await self._fetcher.fetch(request, options.timeout)
        if not outcome.ok:
            logger.warning(f"ESI include failed ({outcome.reason.value}): {outcome.detail}")
            return _Piece(
                "",
                processed=1,
                failures=[
                    DirectiveFailure(
                        kind=FailureKind.FETCH,
                        detail=outcome.detail,
                        src=directive.src,
                        depth=depth,
                        reason=outcome.reason,
                    )
                ],
            )

        nested = await self._resolve(outcome.text, options, depth + 1)
        return _Piece(nested.text, 1 + nested.processed, nested.failures)

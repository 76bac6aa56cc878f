"""ESI response middleware.

A pure ASGI middleware that wraps the downstream ``send`` callable. HTML
responses are buffered, run through the substitution engine with the
request's effective options, and re-sent with a corrected Content-Length.
Every other message passes through untouched.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from esi_engine.api.deps import is_resolved, request_overrides
from esi_engine.core.engine import SubstitutionEngine
from esi_engine.core.factory import ComponentFactory
from esi_engine.core.options import EsiConfig, resolve_options
from esi_engine.interfaces.errors import SubstitutionError

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPES = ("text/html",)
ERROR_BODY = b"ESI processing failed"


def parse_content_type(value: str | None) -> tuple[str, str]:
    """Split a Content-Type header into ``(media_type, charset)``.

    The charset defaults to utf-8.
    """
    if not value:
        return "", "utf-8"
    media_type, _, params = value.partition(";")
    charset = "utf-8"
    for param in params.split(";"):
        key, _, param_value = param.partition("=")
        if key.strip().lower() == "charset" and param_value.strip():
            charset = param_value.strip().strip("\"'")
    return media_type.strip().lower(), charset


def _is_utf8(charset: str) -> bool:
    return charset.lower().replace("_", "-") in ("utf-8", "utf8")


class EsiMiddleware:
    """Resolves ESI directives in outgoing HTML responses.

    Example:
        ```python
        app = FastAPI()
        app.add_middleware(EsiMiddleware, base_url="http://fragments.internal")

        @app.get("/")
        async def index(request: Request):
            request.state.esi_options = {"vars": {"USER": "alice"}}
            return HTMLResponse('<esi:include src="/header"></esi:include>')
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        base_url: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        max_depth: int | None = None,
        vars: Mapping[str, Any] | None = None,
        *,
        media_types: Iterable[str] = DEFAULT_MEDIA_TYPES,
        engine: SubstitutionEngine | None = None,
        deadline: float | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The downstream ASGI application.
            base_url: Global base URL for relative include sources.
            headers: Global headers forwarded with fragment requests.
            timeout: Per-fragment fetch timeout in seconds.
            max_depth: Maximum include nesting depth.
            vars: Global esi:vars bindings.
            media_types: Response media types that are processed.
            engine: Substitution engine to use. If None, one is built from
                the global settings on first use.
            deadline: Optional time limit in seconds for a whole response.
        """
        self.app = app
        self._config = EsiConfig(
            base_url=base_url,
            headers=dict(headers or {}),
            vars=dict(vars or {}),
            timeout=timeout,
            max_depth=max_depth,
        )
        self._media_types = frozenset(
            media_type.split(";")[0].strip().lower() for media_type in media_types
        )
        self._engine = engine
        self._deadline = deadline

    @property
    def config(self) -> EsiConfig:
        return self._config

    @property
    def engine(self) -> SubstitutionEngine:
        if self._engine is None:
            self._engine = ComponentFactory().get_engine()
        return self._engine

    @property
    def deadline(self) -> float | None:
        return self._deadline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # request.state in the endpoint writes into this same dict
        scope.setdefault("state", {})

        responder = _EsiResponder(self, scope, send)
        await self.app(scope, receive, responder.send)
        await responder.finish()

    def should_process(self, scope: Scope, start: Message) -> bool:
        """Decide from the response start message whether to buffer the body."""
        if is_resolved(scope):
            return False

        headers = Headers(raw=start.get("headers", []))
        encoding = headers.get("content-encoding", "identity").lower()
        if encoding != "identity":
            return False

        media_type, _ = parse_content_type(headers.get("content-type"))
        return media_type in self._media_types


class _EsiResponder:
    """Per-request ``send`` wrapper that holds back HTML bodies."""

    def __init__(self, middleware: EsiMiddleware, scope: Scope, send: Send) -> None:
        self._middleware = middleware
        self._scope = scope
        self._send = send
        self._start: Message | None = None
        self._chunks: list[bytes] = []

    async def send(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            if self._middleware.should_process(self._scope, message):
                self._start = message
                return
        elif message_type == "http.response.body" and self._start is not None:
            self._chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                await self._flush()
            return

        await self._send(message)

    async def finish(self) -> None:
        """Flush a response whose body never signalled completion."""
        if self._start is not None:
            await self._flush()

    async def _flush(self) -> None:
        start, body = self._start, b"".join(self._chunks)
        self._start, self._chunks = None, []

        headers = MutableHeaders(raw=list(start.get("headers", [])))

        if not body:
            await self._send({**start, "headers": headers.raw})
            await self._send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        _, charset = parse_content_type(headers.get("content-type"))

        try:
            options = resolve_options(self._middleware.config, request_overrides(self._scope))
            payload = body if _is_utf8(charset) else body.decode(charset)
            text = await self._middleware.engine.process(
                payload, options, deadline=self._middleware.deadline
            )
            encoded = text.encode(charset)
        except (SubstitutionError, ValidationError, UnicodeError, LookupError) as e:
            logger.error(
                f"ESI processing failed for {self._scope.get('path', '')}: {e}",
                exc_info=True,
            )
            await self._send_error()
            return

        headers["content-length"] = str(len(encoded))
        await self._send({**start, "headers": headers.raw})
        await self._send({"type": "http.response.body", "body": encoded, "more_body": False})

    async def _send_error(self) -> None:
        await self._send(
            {
                "type": "http.response.start",
                "status": 502,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"content-length", str(len(ERROR_BODY)).encode("latin-1")),
                ],
            }
        )
        await self._send({"type": "http.response.body", "body": ERROR_BODY, "more_body": False})

"""Unit tests for the ESI response middleware."""

import asyncio

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse

from esi_engine.api.deps import mark_resolved
from esi_engine.api.middleware import ERROR_BODY, EsiMiddleware, parse_content_type

from conftest import FRAGMENT_HOST, make_engine, static_handler


def _get(app: FastAPI, path: str = "/") -> httpx.Response:
    async def run():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            return await client.get(path)

    return asyncio.run(run())


def _app(handler, **middleware_options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(EsiMiddleware, engine=make_engine(handler), **middleware_options)
    return app


# =============================================================================
# Response Processing Tests
# =============================================================================


class TestHtmlResponses:
    """Test suite for responses the middleware rewrites."""

    def test_include_in_text_body(self):
        app = _app(static_handler("<div>test</div>"))

        @app.get("/")
        async def index():
            return HTMLResponse(f'<section><esi:include src="{FRAGMENT_HOST}:8080"></esi:include></section>')

        response = _get(app)

        assert response.status_code == 200
        assert response.text == "<section><div>test</div></section>"
        assert response.headers["content-length"] == str(len(response.content))

    def test_include_in_bytes_body(self):
        app = _app(static_handler("<div>test</div>"))

        @app.get("/")
        async def index():
            body = f'<esi:include src="{FRAGMENT_HOST}"></esi:include>'.encode()
            return Response(content=body, media_type="text/html")

        assert _get(app).text == "<div>test</div>"

    def test_global_base_url(self, echo_handler):
        app = _app(echo_handler, base_url=FRAGMENT_HOST)

        @app.get("/")
        async def index():
            return HTMLResponse('<esi:include src="/header"></esi:include>')

        assert _get(app).text == "I'm included via /header"

    def test_global_headers(self, echo_handler, recorded_requests):
        app = _app(echo_handler, base_url=FRAGMENT_HOST, headers={"x-custom-header": "blah"})

        @app.get("/")
        async def index():
            return HTMLResponse('<esi:include src="/header"/>')

        _get(app)

        assert recorded_requests[0].headers["x-custom-header"] == "blah"

    def test_global_vars(self):
        app = _app(static_handler("unused"), vars={"SIMPLE_VARIABLE": "simple value"})

        @app.get("/")
        async def index():
            return HTMLResponse('<div id="simple-variable"><esi:vars>$(SIMPLE_VARIABLE)</esi:vars></div>\n')

        assert _get(app).text == '<div id="simple-variable">simple value</div>\n'

    def test_streamed_body_split_inside_tag(self):
        app = _app(static_handler("<div>test</div>"), base_url=FRAGMENT_HOST)

        @app.get("/")
        async def index():
            async def chunks():
                yield "<p><esi:incl"
                yield 'ude src="/header"/></p>'

            return StreamingResponse(chunks(), media_type="text/html")

        response = _get(app)

        assert response.text == "<p><div>test</div></p>"
        assert response.headers["content-length"] == str(len(response.content))

    def test_non_utf8_charset_is_respected(self):
        app = _app(static_handler("ü"), base_url=FRAGMENT_HOST)

        @app.get("/")
        async def index():
            body = 'café <esi:include src="/u"/>'.encode("latin-1")
            return Response(content=body, media_type="text/html; charset=latin-1")

        response = _get(app)

        assert response.content == "café ü".encode("latin-1")
        assert response.headers["content-length"] == str(len("café ü"))


# =============================================================================
# Per-Request Override Tests
# =============================================================================


class TestRequestOverrides:
    """Test suite for options set on request.state."""

    def test_base_url_from_request(self, echo_handler):
        app = _app(echo_handler)

        @app.get("/{path:path}")
        async def catch_all(request: Request, path: str):
            request.state.esi_options = {"base_url": f"{FRAGMENT_HOST}/{path}"}
            return HTMLResponse('<esi:include src="header.html"></esi:include>')

        assert _get(app, "/foo/bar/index.html").text == "I'm included via /foo/bar/header.html"

    def test_headers_from_request(self):
        def handler(request):
            if request.headers.get("x-custom-header") == "blah":
                return httpx.Response(200, text="<div>test</div>")
            return httpx.Response(200, text="you should not get this")

        app = _app(handler, base_url=FRAGMENT_HOST)

        @app.get("/")
        async def index(request: Request):
            request.state.esi_options = {"headers": {"x-custom-header": "blah"}}
            return HTMLResponse('<esi:include src="/header"></esi:include>')

        assert _get(app).text == "<div>test</div>"

    def test_request_override_wins_over_global(self):
        app = _app(static_handler("unused"), vars={"WHO": "global"})

        @app.get("/")
        async def index(request: Request):
            request.state.esi_options = {"vars": {"WHO": "request"}}
            return HTMLResponse("<esi:vars>$(WHO)</esi:vars>")

        assert _get(app).text == "request"

    def test_invalid_override_yields_error_response(self):
        app = _app(static_handler("unused"))

        @app.get("/")
        async def index(request: Request):
            request.state.esi_options = {"timeout": -1}
            return HTMLResponse("<esi:vars>$(X)</esi:vars>")

        response = _get(app)

        assert response.status_code == 502
        assert response.content == ERROR_BODY


# =============================================================================
# Passthrough and Error Tests
# =============================================================================


class TestPassthrough:
    """Test suite for responses left alone or replaced by an error."""

    def test_json_is_untouched(self):
        app = _app(static_handler("should not be fetched"))

        @app.get("/")
        async def index():
            return JSONResponse({"html": '<esi:include src="http://h/"/>'})

        assert _get(app).json() == {"html": '<esi:include src="http://h/"/>'}

    def test_already_resolved_response_is_untouched(self):
        app = _app(static_handler("should not be fetched"))

        @app.get("/")
        async def index(request: Request):
            mark_resolved(request.scope)
            return HTMLResponse('<esi:include src="http://h/"/>')

        assert _get(app).text == '<esi:include src="http://h/"/>'

    def test_empty_body(self):
        app = _app(static_handler("unused"))

        @app.get("/")
        async def index():
            return HTMLResponse("", status_code=204)

        response = _get(app)

        assert response.status_code == 204
        assert response.content == b""

    def test_invalid_utf8_yields_error_response(self):
        app = _app(static_handler("unused"))

        @app.get("/")
        async def index():
            return Response(content=b"<p>\xff\xfe</p>", media_type="text/html; charset=utf-8")

        response = _get(app)

        assert response.status_code == 502
        assert response.text == "ESI processing failed"

    def test_deadline_yields_error_response(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, text="late")

        app = _app(handler, deadline=0.05)

        @app.get("/")
        async def index():
            return HTMLResponse(f'<esi:include src="{FRAGMENT_HOST}/slow"/>')

        assert _get(app).status_code == 502

    def test_failed_fragment_does_not_fail_response(self):
        app = _app(static_handler("gone", status_code=404), base_url=FRAGMENT_HOST)

        @app.get("/")
        async def index():
            return HTMLResponse('<main><esi:include src="/missing"/></main>')

        response = _get(app)

        assert response.status_code == 200
        assert response.text == "<main></main>"


class TestShouldProcess:
    """Test suite for response selection."""

    @pytest.fixture
    def middleware(self):
        return EsiMiddleware(app=None, media_types=["text/html", "Application/XHTML+XML; charset=utf-8"])

    @staticmethod
    def _start(*headers: tuple[bytes, bytes]) -> dict:
        return {"type": "http.response.start", "status": 200, "headers": list(headers)}

    def test_html_selected(self, middleware):
        start = self._start((b"content-type", b"text/html; charset=utf-8"))
        assert middleware.should_process({}, start)

    def test_configured_media_type_selected(self, middleware):
        start = self._start((b"content-type", b"application/xhtml+xml"))
        assert middleware.should_process({}, start)

    def test_compressed_body_skipped(self, middleware):
        start = self._start(
            (b"content-type", b"text/html"),
            (b"content-encoding", b"gzip"),
        )
        assert not middleware.should_process({}, start)

    def test_other_media_type_skipped(self, middleware):
        start = self._start((b"content-type", b"text/css"))
        assert not middleware.should_process({}, start)

    def test_missing_content_type_skipped(self, middleware):
        assert not middleware.should_process({}, self._start())


def test_parse_content_type():
    assert parse_content_type("text/HTML; Charset=\"ISO-8859-1\"") == ("text/html", "ISO-8859-1")
    assert parse_content_type("text/html") == ("text/html", "utf-8")
    assert parse_content_type(None) == ("", "utf-8")

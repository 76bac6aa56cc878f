"""ESI-aware template rendering.

EsiTemplates decorates a ``Jinja2Templates`` instance: ``render`` resolves
ESI directives in the rendered markup before it is returned, and every
other attribute is delegated to the wrapped object.
"""

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from esi_engine.api.deps import mark_resolved, request_overrides
from esi_engine.core.completion import Completion, deliver
from esi_engine.core.engine import SubstitutionEngine
from esi_engine.core.options import EsiConfig, resolve_options

logger = logging.getLogger(__name__)


class EsiTemplates:
    """Decorator around Jinja2Templates that resolves ESI on render.

    Example:
        ```python
        templates = EsiTemplates(Jinja2Templates(directory="templates"), engine)

        @app.get("/")
        async def index(request: Request):
            return await templates.render(request, "index.html", {"title": "Home"})
        ```
    """

    def __init__(
        self,
        templates: Jinja2Templates,
        engine: SubstitutionEngine,
        config: EsiConfig | Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the decorator.

        Args:
            templates: The wrapped templates object.
            engine: Substitution engine used on rendered output.
            config: Global ESI configuration layer.
        """
        self._templates = templates
        self._engine = engine
        if config is None or isinstance(config, EsiConfig):
            self._config = config or EsiConfig()
        else:
            self._config = EsiConfig.model_validate(dict(config))

    def __getattr__(self, name: str) -> Any:
        return getattr(self._templates, name)

    async def render(
        self,
        request: Request,
        name: str,
        context: Mapping[str, Any] | Completion | None = None,
        callback: Completion | None = None,
        *,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Render a template and resolve its ESI directives.

        The completion callback may be passed in place of ``context``.

        Args:
            request: The current request; its ``state.esi_options`` apply.
            name: Template name.
            context: Template variables.
            callback: Optional ``callback(error, text)``.
            status_code: Status for the default response.
            headers: Extra headers for the default response.

        Returns:
            An HTMLResponse with the resolved markup, or the callback's
            return value when a callback is given.

        Raises:
            SubstitutionError: On a fatal error when no callback is given.
        """
        if callback is None and callable(context):
            context, callback = None, context

        template = self._templates.get_template(name)
        body = template.render({**(context or {}), "request": request})
        logger.debug(f"Rendered template {name}: {len(body)} characters")

        options = resolve_options(self._config, request_overrides(request.scope))

        if callback is not None:
            # Whatever response the callback builds already carries resolved text
            mark_resolved(request.scope)
            return await deliver(self._engine.process(body, options), callback)

        text = await self._engine.process(body, options)
        mark_resolved(request.scope)
        return HTMLResponse(text, status_code=status_code, headers=dict(headers or {}))

    @property
    def templates(self) -> Jinja2Templates:
        return self._templates

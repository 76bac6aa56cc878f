"""URL resolution for include sources."""

import html
from urllib.parse import urljoin, urlsplit

from esi_engine.core.options import EffectiveOptions
from esi_engine.interfaces.errors import ConfigError
from esi_engine.interfaces.fetcher import ResolvedFetch
from esi_engine.interfaces.scanner import Directive

FETCHABLE_SCHEMES = frozenset({"http", "https"})


def resolve_url(src: str, base_url: str | None) -> str:
    """Compute the absolute URL for an include source.

    An absolute ``src`` is used verbatim. A relative one is resolved
    against ``base_url`` with standard relative-reference rules, so
    ``header.html`` under ``http://h/foo/bar/index.html`` becomes
    ``http://h/foo/bar/header.html``.

    Args:
        src: The include's ``src`` attribute.
        base_url: The effective base URL, if any.

    Returns:
        An absolute http(s) URL.

    Raises:
        ConfigError: If the source is malformed, a relative source has no
            usable base URL, or the resulting scheme cannot be fetched.
    """
    src = html.unescape(src.strip())

    try:
        if urlsplit(src).scheme:
            url = src
        else:
            if not base_url:
                raise ConfigError(f"Relative include '{src}' requires a base URL")
            base = urlsplit(base_url)
            if not base.scheme or not base.netloc:
                raise ConfigError(f"Base URL '{base_url}' is not absolute")
            url = urljoin(base_url, src)

        scheme = urlsplit(url).scheme.lower()
    except ValueError as e:
        raise ConfigError(f"Malformed include source '{src}': {e}") from e

    if scheme not in FETCHABLE_SCHEMES:
        raise ConfigError(f"Unsupported include scheme '{scheme}' in '{url}'")

    return url


def resolve_fetch(directive: Directive, options: EffectiveOptions) -> ResolvedFetch:
    """Turn an include directive into a concrete request."""
    if not directive.src:
        raise ConfigError("Include directive has no src attribute")
    return ResolvedFetch(
        url=resolve_url(directive.src, options.base_url),
        headers=options.headers,
    )

"""Callback-style completion for ESI processing.

Callers either ``await`` the work directly or hand in a completion
callback of the form ``callback(error, text)``.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from esi_engine.interfaces.errors import EsiError

logger = logging.getLogger(__name__)

Completion = Callable[[BaseException | None, str | None], Any]


async def deliver(work: Awaitable[str], callback: Completion | None = None) -> Any:
    """Await ``work`` and deliver its outcome.

    Args:
        work: Awaitable producing the substituted text.
        callback: Optional ``callback(error, text)``. It receives
            ``(None, text)`` on success and ``(error, None)`` when the work
            fails with an EsiError. An awaitable return value is awaited.

    Returns:
        The text when no callback is given, otherwise the callback's result.

    Raises:
        EsiError: Only when no callback is given.
    """
    if callback is None:
        return await work

    try:
        text = await work
    except EsiError as e:
        logger.debug(f"Delivering ESI error to completion callback: {e}")
        result = callback(e, None)
    else:
        result = callback(None, text)

    if inspect.isawaitable(result):
        result = await result
    return result

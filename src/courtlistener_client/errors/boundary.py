"""
Exception boundary for user-facing operations.

Wraps an async tool function so an unhandled exception is logged and
reported as a ToolError instead of escaping to the caller.
"""

from __future__ import annotations

import asyncio
import functools
from typing import TYPE_CHECKING, Any, TypeVar

from courtlistener_client.errors.base import ValidationError
from courtlistener_client.errors.tool_error import ToolError
from courtlistener_client.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = get_logger("courtlistener_client.errors.boundary")


def tool_errors(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T | ToolError]]:
    """Decorate an async tool function with the error boundary.

    ValidationError becomes a ValidationError ToolError; any other
    exception is logged with its traceback and becomes an ApiError.
    asyncio.CancelledError is re-raised untouched.

    Example:
        >>> @tool_errors
        ... async def get_opinion(opinion_id: str) -> Opinion | ToolError:
        ...     ...
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T | ToolError:
        try:
            return await func(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except ValidationError as e:
            logger.warning("Validation failed", tool=func.__name__, error=e.message)
            return ToolError.from_validation(e)
        except Exception as e:
            logger.exception("Unhandled exception in tool", tool=func.__name__)
            return ToolError.api_error(f"API error: {e}")

    return wrapper

"""
Action boundary for mutating entry points.

Every mutating service function is wrapped with ``action`` so callers always
receive an envelope, never an exception.
"""
import functools
import logging
from typing import Any, Awaitable, Callable, Type, Union

from ..errors import OrderServiceError, RateLimitError
from ..schemas.common import ActionResult, OrderCreationResult

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."

Envelope = Union[ActionResult, OrderCreationResult]


def action(
    unexpected_message: str = UNEXPECTED_ERROR_MESSAGE,
    result_type: Type[Envelope] = ActionResult,
) -> Callable[[Callable[..., Awaitable[Envelope]]], Callable[..., Awaitable[Envelope]]]:
    """
    Convert expected service errors into failure envelopes and log everything
    else as an unexpected fault with a generic message for the caller.
    """

    def decorator(func: Callable[..., Awaitable[Envelope]]) -> Callable[..., Awaitable[Envelope]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Envelope:
            try:
                return await func(*args, **kwargs)
            except RateLimitError as e:
                logger.info(f"Rate limit hit in {func.__name__}")
                return result_type.failure(e.message, status_code=e.status_code)
            except OrderServiceError as e:
                logger.warning(f"{func.__name__} rejected ({type(e).__name__}): {e.message}")
                return result_type.failure(e.message, errors=e.errors, status_code=e.status_code)
            except Exception as e:
                logger.error(f"❌ Unexpected error in {func.__name__}: {e}", exc_info=True)
                return result_type.failure(unexpected_message, status_code=500)

        return wrapper

    return decorator

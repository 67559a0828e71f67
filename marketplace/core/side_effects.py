"""Best-effort side effects.

A primary write (booking insert, purchase cancellation, ...) is committed
before its secondary effects run. Stock reconciliation and notification
emails must never roll that write back, but their failures still have to be
visible, so every secondary effect goes through :func:`best_effort`.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(
    action: str,
    operation: Callable[[], Awaitable[T]],
    *,
    session: AsyncSession | None = None,
    **context: Any,
) -> T | None:
    """Run ``operation`` and report, but swallow, any failure.

    Args:
        action: Side-effect name used in the log record (e.g. "stock_restore")
        operation: Zero-argument coroutine factory performing the effect
        session: Session to roll back if the effect fails mid-transaction
        **context: Structured context attached to the failure log

    Returns:
        The operation's result, or None if it raised.
    """
    try:
        return await operation()
    except Exception as exc:
        logger.error(
            f"Side effect '{action}' failed: {exc}",
            exc_info=True,
            extra={"side_effect": action, **context},
        )
        if session is not None:
            await session.rollback()
        return None

"""Unit tests for best-effort side effects."""

import logging
from unittest.mock import AsyncMock

from marketplace.core.side_effects import best_effort


async def test_returns_operation_result():
    async def operation():
        return 42

    assert await best_effort("answer", operation) == 42


async def test_failure_is_logged_and_swallowed(caplog):
    async def operation():
        raise RuntimeError("smtp down")

    with caplog.at_level(logging.ERROR, logger="marketplace.core.side_effects"):
        result = await best_effort("welcome_email", operation, booking_reference="BMC-BOOK-AAAAAA")

    assert result is None
    record = caplog.records[-1]
    assert "welcome_email" in record.getMessage()
    assert record.side_effect == "welcome_email"
    assert record.booking_reference == "BMC-BOOK-AAAAAA"


async def test_failure_rolls_back_session():
    session = AsyncMock()

    async def operation():
        raise RuntimeError("deadlock")

    await best_effort("stock_restore", operation, session=session)
    session.rollback.assert_awaited_once()


async def test_success_leaves_session_alone():
    session = AsyncMock()

    async def operation():
        return True

    await best_effort("stock_restore", operation, session=session)
    session.rollback.assert_not_awaited()

import logging
from unittest.mock import AsyncMock

import pytest

from realtime_speech._async import stop_all, stop_quietly


@pytest.mark.asyncio
async def test_stop_exception():
    func1 = AsyncMock()
    func2 = AsyncMock(side_effect=ValueError("stop 2 failed"))
    func3 = AsyncMock()
    func4 = AsyncMock(side_effect=ValueError("stop 4 failed"))

    with pytest.raises(Exception, match=r"failed stop sequence") as exc_info:
        await stop_all(func1, func2, func3, func4)

    func1.assert_called_once()
    func2.assert_called_once()
    func3.assert_called_once()
    func4.assert_called_once()

    tru_message = str(exc_info.value)
    assert "ValueError('stop 2 failed')" in tru_message
    assert "ValueError('stop 4 failed')" in tru_message


@pytest.mark.asyncio
async def test_stop_success():
    func1 = AsyncMock()
    func2 = AsyncMock()

    await stop_all(func1, func2)

    func1.assert_called_once()
    func2.assert_called_once()


@pytest.mark.asyncio
async def test_stop_quietly_logs_and_continues(caplog):
    func1 = AsyncMock(side_effect=OSError("channel already closed"))
    func2 = AsyncMock()

    with caplog.at_level(logging.WARNING, logger="realtime_speech._async"):
        await stop_quietly(func1, func2)

    func2.assert_called_once()
    assert "failed to release realtime resources" in caplog.text
    assert "channel already closed" in caplog.text

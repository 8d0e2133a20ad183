"""Tests for pipeline log sinks and client log forwarding."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.filesearch.search.logging import LoguruLogSink, SessionLogSink


@pytest.fixture
def bound_logger():
    bound = MagicMock()
    bound.bind.return_value = bound
    bound.opt.return_value = bound
    return bound


@pytest.mark.asyncio
async def test_loguru_sink_writes_level(bound_logger):
    sink = LoguruLogSink(bound_logger)

    await sink.warning("slow request")

    bound_logger.log.assert_called_once_with("WARNING", "slow request")


@pytest.mark.asyncio
async def test_loguru_sink_attaches_exception_and_extra(bound_logger):
    sink = LoguruLogSink(bound_logger)
    exc = RuntimeError("boom")

    await sink.error("failed", code="X", exc=exc)

    bound_logger.bind.assert_called_once_with(code="X")
    bound_logger.opt.assert_called_once_with(exception=exc)
    bound_logger.log.assert_called_once_with("ERROR", "failed")


@pytest.mark.asyncio
async def test_session_sink_forwards_at_or_above_threshold(bound_logger):
    session = MagicMock()
    session.send_log_message = AsyncMock()
    sink = SessionLogSink(bound_logger, session, min_level="info")

    await sink.debug("hidden from client")
    await sink.info("visible")
    await sink.error("final failure", code="OPENAI_TIMEOUT", exc=RuntimeError("x"))

    calls = session.send_log_message.await_args_list
    assert len(calls) == 2
    assert calls[0].kwargs == {"level": "info", "data": "visible", "logger": "retrieveDocs"}
    assert calls[1].kwargs["level"] == "error"
    assert calls[1].kwargs["data"] == {"message": "final failure", "code": "OPENAI_TIMEOUT"}
    # debug still reaches the local log
    assert bound_logger.log.call_count == 3


@pytest.mark.asyncio
async def test_session_sink_debug_threshold(bound_logger):
    session = MagicMock()
    session.send_log_message = AsyncMock()
    sink = SessionLogSink(bound_logger, session, min_level="debug")

    await sink.debug("now forwarded")

    session.send_log_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_session_sink_survives_send_failure(bound_logger):
    session = MagicMock()
    session.send_log_message = AsyncMock(side_effect=RuntimeError("stream closed"))
    sink = SessionLogSink(bound_logger, session)

    await sink.info("still fine")

    bound_logger.debug.assert_called_once()

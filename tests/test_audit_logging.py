"""
Tests for the retrieveDocs audit trail.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger
from mcp import types
from mcp.shared.exceptions import McpError

from src.filesearch.mcp_server import FileSearchServer
from src.filesearch.search import Chunk, ErrorCode, RetrievalError, RetrievalOrchestrator, StructuredError
from src.filesearch.utils.audit import AuditLogger, _sanitize_arguments
from src.filesearch.utils.config import AuditConfig
from tests.utils import TEST_VECTOR_STORE


@pytest.fixture
def audit_logger(tmp_path):
    audit = AuditLogger(AuditConfig(log_dir=str(tmp_path)), vector_store_id=TEST_VECTOR_STORE)
    yield audit
    audit.close()


def _read_entries(audit: AuditLogger) -> list[dict]:
    logger.complete()
    with open(audit.log_file) as f:
        return [json.loads(line) for line in f if line.strip()]


def _request(arguments: dict) -> types.CallToolRequest:
    return types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name="retrieveDocs", arguments=arguments),
    )


def test_audit_file_created(tmp_path):
    audit = AuditLogger(AuditConfig(log_dir=str(tmp_path / "nested")))
    assert (tmp_path / "nested").is_dir()
    assert audit.log_file == Path(tmp_path / "nested" / "audit.jsonl")
    audit.close()
    audit.close()  # second close is a no-op


@pytest.mark.asyncio
async def test_successful_retrieval_is_logged(audit_logger):
    orchestrator = MagicMock(spec=RetrievalOrchestrator)
    orchestrator.retrieve = AsyncMock(return_value=[Chunk(id="a"), Chunk(id="b")])
    server = FileSearchServer(orchestrator, audit_logger=audit_logger)

    await server._call_tool(_request({"question": "warranty terms"}))

    entry = _read_entries(audit_logger)[0]
    assert entry["question"] == "warranty terms"
    assert entry["vector_store_id"] == TEST_VECTOR_STORE
    assert entry["status"] == "success"
    assert entry["chunk_count"] == 2
    assert "error_code" not in entry
    assert "extra_arguments" not in entry


@pytest.mark.asyncio
async def test_failed_retrieval_is_logged(audit_logger):
    orchestrator = MagicMock(spec=RetrievalOrchestrator)
    orchestrator.retrieve = AsyncMock(
        side_effect=RetrievalError(
            StructuredError(code=ErrorCode.OPENAI_TIMEOUT, message="timed out")
        )
    )
    server = FileSearchServer(orchestrator, audit_logger=audit_logger)

    with pytest.raises(McpError):
        await server._call_tool(_request({"question": "q", "api_key": "sk-leak"}))

    entry = _read_entries(audit_logger)[0]
    assert entry["status"] == "error"
    assert entry["error_code"] == "OPENAI_TIMEOUT"
    assert entry["error"] == "timed out"
    assert entry["extra_arguments"] == {"api_key": "***REDACTED***"}


def test_long_question_is_truncated(tmp_path):
    audit = AuditLogger(AuditConfig(log_dir=str(tmp_path), max_question_chars=10))
    audit.log_retrieval("x" * 50, chunk_count=0, duration_ms=5)

    entry = _read_entries(audit)[0]
    audit.close()
    assert entry["question"] == "x" * 10 + "…"


def test_writes_after_close_are_dropped(tmp_path):
    audit = AuditLogger(AuditConfig(log_dir=str(tmp_path)))
    audit.close()
    audit.log_retrieval("late", chunk_count=1, duration_ms=1)
    logger.complete()
    assert audit.log_file.read_text() == ""


def test_sensitive_arguments_redacted():
    sanitized = _sanitize_arguments(
        {"question": "q", "api_key": "sk-1", "nested": {"Authorization": "Bearer x", "keep": 1}}
    )
    assert sanitized == {
        "question": "q",
        "api_key": "***REDACTED***",
        "nested": {"Authorization": "***REDACTED***", "keep": 1},
    }


def test_sanitize_passes_through_non_dicts():
    assert _sanitize_arguments(None) is None
    assert _sanitize_arguments("plain") == "plain"

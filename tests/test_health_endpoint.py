"""
Tests for the /health endpoint and FileSearchMCP wiring.
"""

import json

import pytest
from unittest.mock import MagicMock
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.testclient import TestClient

from src.filesearch.server_app import FileSearchMCP
from src.filesearch.mcp_server import FileSearchServer
from tests.utils import TEST_VECTOR_STORE, make_app_config


@pytest.fixture
def app():
    """FileSearchMCP configured without reading config.json."""
    app = FileSearchMCP(transport="sse", host="127.0.0.1", port=18086)
    app.setup(make_app_config())
    return app


@pytest.mark.asyncio
async def test_health_reports_vector_store(app):
    response = await app.handle_health(MagicMock(spec=Request))

    assert isinstance(response, JSONResponse)
    assert response.status_code == 200
    body = json.loads(response.body.decode())
    assert body["status"] == "healthy"
    assert body["vector_store_id"] == TEST_VECTOR_STORE
    await app.close()


@pytest.mark.asyncio
async def test_health_unavailable_before_setup():
    app = FileSearchMCP(transport="sse")

    response = await app.handle_health(MagicMock(spec=Request))

    assert response.status_code == 503
    assert json.loads(response.body.decode())["status"] == "unavailable"


def test_health_route_over_http(app):
    client = TestClient(app.create_starlette_app())

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["server"] == "FileSearch-MCP-Server"


@pytest.mark.asyncio
async def test_setup_builds_server_without_audit(app):
    assert isinstance(app.server, FileSearchServer)
    assert app.audit_logger is None
    assert app.executor.debug is False
    await app.close()


@pytest.mark.asyncio
async def test_setup_enables_audit_when_dir_given(tmp_path):
    app = FileSearchMCP(transport="stdio", audit_log_dir=str(tmp_path / "audit"))
    app.setup(make_app_config(debug=True))

    assert app.audit_logger is not None
    assert app.server.audit_logger is app.audit_logger
    assert app.executor.debug is True
    await app.close()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("FILESEARCH_MCP_PORT", "9911")
    monkeypatch.setenv("FILESEARCH_MCP_TRANSPORT", "sse")
    app = FileSearchMCP()
    assert app.settings.port == 9911
    assert app.settings.transport == "sse"


@pytest.mark.asyncio
async def test_unsupported_transport_rejected(app):
    app.settings.transport = "carrier-pigeon"
    with pytest.raises(ValueError, match="Unsupported transport"):
        await app.start_server()
    await app.close()

import json
import time
from typing import Any, Optional

from mcp import server, types
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS

from src.filesearch.search import (
    LoguruLogSink,
    RetrievalError,
    RetrievalLogSink,
    RetrievalOrchestrator,
    SessionLogSink,
)
from src.filesearch.utils.audit import AuditLogger
from src.utils.logger import get_logger

SERVER_NAME = "FileSearch-MCP-Server"
SERVER_VERSION = "1.0.0"
RETRIEVE_DOCS = "retrieveDocs"

RETRIEVE_DOCS_TOOL = types.Tool(
    name=RETRIEVE_DOCS,
    description="Retrieves raw ranked chunks from OpenAI File Search based on a question.",
    inputSchema={
        "type": "object",
        "properties": {
            "question": {
                "type": "string",
                "minLength": 1,
                "description": "Natural-language question to search the vector store with.",
            }
        },
        "required": ["question"],
    },
)


class FileSearchServer(server.Server):
    """MCP server exposing the single retrieveDocs tool."""

    def __init__(
        self,
        orchestrator: RetrievalOrchestrator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(SERVER_NAME, version=SERVER_VERSION)
        self.orchestrator = orchestrator
        self.audit_logger = audit_logger
        self.logger = get_logger("FileSearchServer")
        # Minimum level forwarded to the client (set via logging/setLevel)
        self.client_log_level: types.LoggingLevel = "info"
        self._register_request_handlers()

    def _register_request_handlers(self) -> None:
        self.request_handlers[types.ListToolsRequest] = self._list_tools
        self.request_handlers[types.CallToolRequest] = self._call_tool
        self.request_handlers[types.SetLevelRequest] = self._set_level

    async def _list_tools(self, _: Any) -> types.ServerResult:
        return types.ServerResult(types.ListToolsResult(tools=[RETRIEVE_DOCS_TOOL]))

    async def _set_level(self, req: types.SetLevelRequest) -> types.ServerResult:
        self.client_log_level = req.params.level
        self.logger.info(f"Client log level set to '{req.params.level}'")
        return types.ServerResult(types.EmptyResult())

    def _log_sink(self) -> RetrievalLogSink:
        """Forward to the client when called inside a live request."""
        try:
            session = self.request_context.session
        except LookupError:
            return LoguruLogSink(self.logger)
        return SessionLogSink(self.logger, session, min_level=self.client_log_level)

    async def _call_tool(self, req: types.CallToolRequest) -> types.ServerResult:
        tool_name = req.params.name
        arguments = req.params.arguments or {}

        if tool_name != RETRIEVE_DOCS:
            self.logger.error(f"⚠️ Tool '{tool_name}' not found.")
            return types.ServerResult(
                types.CallToolResult(
                    content=[types.TextContent(type="text", text=f"Tool '{tool_name}' not found!")],
                    isError=True,
                )
            )

        question = arguments.get("question")
        if not isinstance(question, str) or len(question) < 1:
            raise McpError(ErrorData(code=INVALID_PARAMS, message="Question cannot be empty."))

        log = self._log_sink()
        await log.info(f'Received retrieveDocs request for input: "{question}"')
        start = time.monotonic()

        try:
            chunks = await self.orchestrator.retrieve(question, log)
        except RetrievalError as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            if self.audit_logger:
                self.audit_logger.log_retrieval_failure(
                    question=question,
                    arguments=arguments,
                    error_code=e.code.value,
                    error=e.error.message,
                    duration_ms=duration_ms,
                )
            raise McpError(
                ErrorData(code=INTERNAL_ERROR, message=e.error.message, data=e.error.to_dict())
            ) from e

        duration_ms = int((time.monotonic() - start) * 1000)
        if self.audit_logger:
            self.audit_logger.log_retrieval(
                question=question,
                arguments=arguments,
                chunk_count=len(chunks),
                duration_ms=duration_ms,
            )

        payload = json.dumps([chunk.to_dict() for chunk in chunks])
        return types.ServerResult(
            types.CallToolResult(content=[types.TextContent(type="text", text=payload)])
        )

import asyncio
import signal
from typing import Any, Literal, Optional

import anyio
import uvicorn
from pydantic_settings import BaseSettings, SettingsConfigDict
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from src.filesearch.config import AppConfig, load_app_config
from src.filesearch.mcp_server import SERVER_NAME, SERVER_VERSION, FileSearchServer
from src.filesearch.search import AttemptExecutor, RetrievalConfig, RetrievalOrchestrator
from src.filesearch.utils.audit import AuditLogger
from src.filesearch.utils.config import AuditConfig
from src.utils.logger import configure_logging, get_logger


class ServerSettings(BaseSettings):
    """Process settings for the FileSearch MCP server."""

    host: str = "127.0.0.1"
    port: int = 8086
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    transport: Literal["stdio", "sse"] = "stdio"
    sse_server_debug: bool = False
    config: Optional[str] = None  # Path to config.json (env: FILESEARCH_MCP_CONFIG)
    audit_log_dir: Optional[str] = None  # Audit trail disabled when unset

    model_config = SettingsConfigDict(env_prefix="FILESEARCH_MCP_")


class FileSearchMCP:
    def __init__(self, **settings: Any):
        self.settings = ServerSettings(**settings)
        configure_logging(level=self.settings.log_level)
        self.logger = get_logger("FileSearchMCP")
        self.app_config: Optional[AppConfig] = None
        self.executor: Optional[AttemptExecutor] = None
        self.server: Optional[FileSearchServer] = None
        self.audit_logger: Optional[AuditLogger] = None

    def setup(
        self,
        app_config: Optional[AppConfig] = None,
        retrieval_config: Optional[RetrievalConfig] = None,
        transport=None,
    ) -> FileSearchServer:
        """Build the pipeline and MCP server from an explicit AppConfig.

        Loads config.json and the environment when no AppConfig is given.

        Raises:
            ConfigError: if configuration is missing or invalid.
        """
        self.app_config = app_config or load_app_config(self.settings.config)
        self.executor = AttemptExecutor(
            api_key=self.app_config.openai_api_key,
            config=retrieval_config,
            debug=self.app_config.debug_openai,
            transport=transport,
        )
        orchestrator = RetrievalOrchestrator(self.executor, self.app_config)
        if self.settings.audit_log_dir:
            self.audit_logger = AuditLogger(
                AuditConfig(log_dir=self.settings.audit_log_dir),
                vector_store_id=self.app_config.vector_store_id,
            )
        self.server = FileSearchServer(orchestrator, audit_logger=self.audit_logger)
        return self.server

    async def run(self) -> None:
        """Entry point: builds the server (if needed) and serves until shutdown."""
        if self.server is None:
            self.setup()
        self.logger.info(f"🚀 Starting {SERVER_NAME} with transport: {self.settings.transport}")

        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()

        def _signal_handler(sig: int) -> None:
            self.logger.info(f"🛑 Received {signal.Signals(sig).name}, initiating graceful shutdown...")
            shutdown_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _signal_handler, sig)

        try:
            server_task = asyncio.create_task(self.start_server())
            shutdown_task = asyncio.create_task(shutdown_event.wait())
            done, pending = await asyncio.wait(
                {server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            if server_task in done:
                # Surface transport startup failures to the caller
                server_task.result()
        finally:
            await self.close()
            self.logger.info("✅ Graceful shutdown complete")

    async def close(self) -> None:
        if self.executor is not None:
            await self.executor.aclose()
        if self.audit_logger is not None:
            self.audit_logger.close()

    async def start_server(self) -> None:
        if self.settings.transport == "stdio":
            await self.start_stdio_server()
        elif self.settings.transport == "sse":
            await self.start_sse_server()
        else:
            raise ValueError(f"Unsupported transport: {self.settings.transport}")

    async def start_stdio_server(self) -> None:
        """Serve over stdio."""
        async with stdio_server() as (read_stream, write_stream):
            try:
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
            except (anyio.ClosedResourceError, ExceptionGroup) as e:
                # Stdin closing while a response is being written is expected on shutdown.
                if isinstance(e, ExceptionGroup):
                    _, unhandled = e.split(anyio.ClosedResourceError)
                    if unhandled:
                        raise unhandled
                self.logger.debug("Stdio stream closed during shutdown (expected)")

    def create_starlette_app(self) -> Starlette:
        """Starlette app with the SSE endpoints and /health."""
        sse = SseServerTransport("/messages/")

        class _SSEHandler:
            """Raw ASGI handler; handle_sse returns None after streaming."""

            def __init__(self, app: "FileSearchMCP", sse_transport: SseServerTransport):
                self._app = app
                self._sse = sse_transport

            async def __call__(self, scope, receive, send):
                async with self._sse.connect_sse(scope, receive, send) as streams:
                    await self._app.server.run(
                        streams[0],
                        streams[1],
                        self._app.server.create_initialization_options(),
                    )

        return Starlette(
            debug=self.settings.sse_server_debug,
            routes=[
                Route("/sse", endpoint=_SSEHandler(self, sse)),
                Mount("/messages/", app=sse.handle_post_message),
                Route("/health", endpoint=self.handle_health, methods=["GET"]),
            ],
        )

    async def start_sse_server(self) -> None:
        config = uvicorn.Config(
            self.create_starlette_app(),
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        await uvicorn.Server(config).serve()

    async def handle_health(self, request: Request) -> JSONResponse:
        """Report readiness and which vector store is being served."""
        if self.server is None or self.app_config is None:
            return JSONResponse(
                {"status": "unavailable", "error": "Server not initialized"},
                status_code=503,
            )
        return JSONResponse(
            {
                "status": "healthy",
                "server": SERVER_NAME,
                "version": SERVER_VERSION,
                "vector_store_id": self.app_config.vector_store_id,
            }
        )

"""Logging sinks used by the retrieval pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from mcp.server.session import ServerSession

# MCP logging levels (RFC 5424 order)
_LEVEL_ORDER = {
    "debug": 0,
    "info": 1,
    "notice": 2,
    "warning": 3,
    "error": 4,
    "critical": 5,
    "alert": 6,
    "emergency": 7,
}


class RetrievalLogSink(ABC):
    """Abstract interface for pipeline log output."""

    @abstractmethod
    async def log(self, level: str, message: str, **extra: Any) -> None: ...

    async def debug(self, message: str, **extra: Any) -> None:
        await self.log("debug", message, **extra)

    async def info(self, message: str, **extra: Any) -> None:
        await self.log("info", message, **extra)

    async def warning(self, message: str, **extra: Any) -> None:
        await self.log("warning", message, **extra)

    async def error(self, message: str, **extra: Any) -> None:
        await self.log("error", message, **extra)


class LoguruLogSink(RetrievalLogSink):
    """Writes pipeline events to a bound loguru logger."""

    def __init__(self, logger) -> None:
        self.logger = logger

    async def log(self, level: str, message: str, **extra: Any) -> None:
        exc = extra.pop("exc", None)
        bound = self.logger.bind(**extra) if extra else self.logger
        if exc is not None:
            bound = bound.opt(exception=exc)
        bound.log(level.upper(), message)


class SessionLogSink(LoguruLogSink):
    """Loguru sink that also forwards lines to the connected MCP client.

    Lines below ``min_level`` are written locally only. Tracebacks are never
    forwarded.
    """

    def __init__(
        self,
        logger,
        session: "ServerSession",
        min_level: str = "info",
        logger_name: Optional[str] = "retrieveDocs",
    ) -> None:
        super().__init__(logger)
        self.session = session
        self.min_level = min_level
        self.logger_name = logger_name

    async def log(self, level: str, message: str, **extra: Any) -> None:
        payload = {k: v for k, v in extra.items() if k != "exc"}
        await super().log(level, message, **extra)
        if _LEVEL_ORDER.get(level, 0) < _LEVEL_ORDER.get(self.min_level, 1):
            return
        data: Any = {"message": message, **payload} if payload else message
        try:
            await self.session.send_log_message(
                level=level, data=data, logger=self.logger_name
            )
        except Exception as e:
            self.logger.debug(f"Could not forward log line to client: {e}")

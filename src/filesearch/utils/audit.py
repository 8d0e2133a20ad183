"""
Audit trail for retrieveDocs invocations.

One JSONL record per call: when it ran, which vector store it searched,
a preview of the question and how it ended.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from .config import AuditConfig, DEFAULT_AUDIT_CONFIG

_SECRET_KEY = re.compile(r"(api[_-]?key|token|secret|password|auth|bearer)", re.IGNORECASE)
_MASK = "***REDACTED***"


def _sanitize_arguments(args):
    """Mask values whose key looks like a credential, at any depth."""
    if not isinstance(args, dict):
        return args
    return {
        key: _MASK if _SECRET_KEY.search(str(key)) else _sanitize_arguments(value)
        for key, value in args.items()
    }


@dataclass
class RetrievalAuditRecord:
    question: str
    vector_store_id: Optional[str]
    status: str  # "success" | "error"
    duration_ms: int
    chunk_count: Optional[int] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    extra_arguments: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_json(self) -> str:
        entry = {k: v for k, v in asdict(self).items() if v is not None and v != {}}
        return json.dumps(entry, separators=(",", ":"), default=str)


class AuditLogger:
    """
    Appends retrieval records to ``<log_dir>/<file_name>``.

    Records travel through loguru bound with ``audit=True``; the stderr
    handlers drop them and only this file sink accepts them.
    """

    def __init__(self, config: Optional[AuditConfig] = None, vector_store_id: Optional[str] = None):
        self.config = config or DEFAULT_AUDIT_CONFIG
        self.vector_store_id = vector_store_id

        log_dir = Path(self.config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = log_dir / self.config.file_name

        self._sink_id: Optional[int] = logger.add(
            str(self.log_file),
            format="{message}",
            rotation=self.config.rotation,
            retention=self.config.retention,
            compression=self.config.compression,
            enqueue=True,
            filter=lambda record: record["extra"].get("audit") is True,
        )

    def _preview(self, question: str) -> str:
        limit = self.config.max_question_chars
        return question if len(question) <= limit else question[:limit] + "…"

    @staticmethod
    def _extra(arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        extra = {k: v for k, v in (arguments or {}).items() if k != "question"}
        return _sanitize_arguments(extra)

    def log_retrieval(
        self,
        question: str,
        chunk_count: int,
        duration_ms: int,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.write(
            RetrievalAuditRecord(
                question=self._preview(question),
                vector_store_id=self.vector_store_id,
                status="success",
                duration_ms=duration_ms,
                chunk_count=chunk_count,
                extra_arguments=self._extra(arguments),
            )
        )

    def log_retrieval_failure(
        self,
        question: str,
        error_code: str,
        error: str,
        duration_ms: int,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.write(
            RetrievalAuditRecord(
                question=self._preview(question),
                vector_store_id=self.vector_store_id,
                status="error",
                duration_ms=duration_ms,
                error_code=error_code,
                error=error,
                extra_arguments=self._extra(arguments),
            )
        )

    def write(self, record: RetrievalAuditRecord) -> None:
        if self._sink_id is None:
            return
        logger.bind(audit=True).info(record.to_json())

    def close(self) -> None:
        """Detach the file sink; later writes are dropped. Idempotent."""
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None

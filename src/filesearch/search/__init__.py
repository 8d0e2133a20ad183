"""Retrieval pipeline: request building, retries, classification, normalization."""

from .backoff import backoff_delay_ms
from .errors import ErrorCode, RetrievalError, StructuredError, classify_fault, is_retryable
from .executor import AttemptExecutor
from .logging import LoguruLogSink, RetrievalLogSink, SessionLogSink
from .models import Chunk, RetrievalConfig, SearchRequest
from .normalizer import normalize_output
from .pipeline import RetrievalOrchestrator

__all__ = [
    "AttemptExecutor",
    "Chunk",
    "ErrorCode",
    "LoguruLogSink",
    "RetrievalConfig",
    "RetrievalError",
    "RetrievalLogSink",
    "RetrievalOrchestrator",
    "SearchRequest",
    "SessionLogSink",
    "StructuredError",
    "backoff_delay_ms",
    "classify_fault",
    "is_retryable",
    "normalize_output",
]

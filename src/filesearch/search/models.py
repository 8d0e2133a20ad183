"""Core data models for the retrieval pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import httpx

OPENAI_RESPONSES_URL = "https://api.openai.com/v1/responses"
FILE_SEARCH_CALL = "file_search_call"


@dataclass(frozen=True)
class Chunk:
    """A unit of retrieved text with its relevance score."""
    id: str
    text: str = ""
    score: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "score": self.score}


@dataclass
class RetrievalConfig:
    """Pipeline constants. Defaults match the upstream contract."""
    api_url: str = OPENAI_RESPONSES_URL
    model: str = "gpt-4.1-mini"
    max_num_results: int = 20
    max_attempts: int = 3
    base_delay_ms: int = 500
    jitter_ms: int = 100
    attempt_timeout_s: float = 30.0
    slow_request_warn_s: float = 25.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.attempt_timeout_s <= 0:
            raise ValueError(f"attempt_timeout_s must be > 0, got {self.attempt_timeout_s}")


@dataclass(frozen=True)
class SearchRequest:
    """Outbound body for one Responses API call with the file_search tool."""
    model: str
    question: str
    vector_store_id: str
    max_num_results: int = 20
    include: tuple[str, ...] = ("file_search_call.results",)

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "input": self.question,
            "include": list(self.include),
            "tools": [
                {
                    "type": "file_search",
                    "vector_store_ids": [self.vector_store_id],
                    "max_num_results": self.max_num_results,
                }
            ],
        }


# Attempt outcomes: the executor returns exactly one of these, never raises.

@dataclass(frozen=True)
class AttemptSucceeded:
    chunks: list[Chunk] = field(default_factory=list)


@dataclass(frozen=True)
class HttpErrorResponse:
    """Non-2xx reply. The body is left unread for the classifier."""
    response: httpx.Response

    @property
    def status_code(self) -> int:
        return self.response.status_code


@dataclass(frozen=True)
class AttemptTimedOut:
    timeout_s: float


@dataclass(frozen=True)
class AttemptRaised:
    exc: Exception


@dataclass(frozen=True)
class UnknownFault:
    value: Any


AttemptFault = Union[HttpErrorResponse, AttemptTimedOut, AttemptRaised, UnknownFault]
AttemptOutcome = Union[AttemptSucceeded, AttemptFault]

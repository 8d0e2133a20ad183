"""Single upstream call to the OpenAI Responses API with a hard deadline."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import httpx

from .logging import RetrievalLogSink
from .models import (
    AttemptOutcome,
    AttemptRaised,
    AttemptSucceeded,
    AttemptTimedOut,
    HttpErrorResponse,
    RetrievalConfig,
    SearchRequest,
    UnknownFault,
)
from .normalizer import normalize_output


class AttemptExecutor:
    """Issues one POST per call to ``execute`` and reports a tagged outcome.

    Faults are returned as values. Only cancellation of the caller escapes.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[RetrievalConfig] = None,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or RetrievalConfig()
        self.debug = debug
        self._api_key = api_key
        # The per-attempt deadline is enforced by asyncio.wait_for, not httpx.
        # Optional transport is provided for testing (httpx.MockTransport).
        self._client = httpx.AsyncClient(timeout=None, transport=transport)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": "responses=v1",
        }

    async def execute(
        self, request: SearchRequest, log: RetrievalLogSink
    ) -> AttemptOutcome:
        timeout_s = self.config.attempt_timeout_s
        try:
            return await asyncio.wait_for(self._attempt(request, log), timeout=timeout_s)
        except asyncio.TimeoutError:
            return AttemptTimedOut(timeout_s=timeout_s)
        except Exception as e:
            return AttemptRaised(exc=e)

    async def _attempt(
        self, request: SearchRequest, log: RetrievalLogSink
    ) -> AttemptOutcome:
        http_request = self._client.build_request(
            "POST",
            self.config.api_url,
            headers=self._headers(),
            content=json.dumps(request.to_payload()),
        )
        response = await self._client.send(http_request, stream=True)
        await log.debug(f"Response status {response.status_code} received")

        if not response.is_success:
            # Body stays unread; the classifier reads and closes it.
            return HttpErrorResponse(response=response)

        try:
            await response.aread()
        finally:
            await response.aclose()
        body = response.json()

        if self.debug:
            await log.debug(
                "Raw OpenAI API response data:\n" + json.dumps(body, indent=2)
            )

        if not isinstance(body, dict):
            return UnknownFault(value=body)

        await log.debug("Processing OpenAI response for file_search_call results...")
        chunks = normalize_output(body.get("output"))
        for chunk in chunks:
            await log.debug("Extracted chunk", chunk_id=chunk.id, score=chunk.score)
        await log.debug(f"Extracted {len(chunks)} chunks from file_search_call results.")
        return AttemptSucceeded(chunks=chunks)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AttemptExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

"""Bounded retry loop around the attempt executor."""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from src.utils.logger import get_logger

from .backoff import backoff_delay_ms
from .errors import RetrievalError, classify_fault, is_retryable
from .executor import AttemptExecutor
from .logging import LoguruLogSink, RetrievalLogSink
from .models import (
    AttemptRaised,
    AttemptSucceeded,
    Chunk,
    RetrievalConfig,
    SearchRequest,
)

if TYPE_CHECKING:
    from src.filesearch.config import AppConfig


class RetrievalOrchestrator:
    """Drives up to ``max_attempts`` upstream calls for one question.

    Each invocation owns its request, timer and attempt counter, so
    concurrent calls to ``retrieve`` share nothing mutable.
    """

    def __init__(
        self,
        executor: AttemptExecutor,
        app_config: "AppConfig",
        config: Optional[RetrievalConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random = random,
    ) -> None:
        self.executor = executor
        self.app_config = app_config
        self.config = config or executor.config
        self._sleep = sleep
        self._rng = rng
        self._default_sink = LoguruLogSink(get_logger("Pipeline"))

    def build_request(self, question: str) -> SearchRequest:
        return SearchRequest(
            model=self.config.model,
            question=question,
            vector_store_id=self.app_config.vector_store_id,
            max_num_results=self.config.max_num_results,
        )

    async def retrieve(
        self, question: str, log: Optional[RetrievalLogSink] = None
    ) -> list[Chunk]:
        """Return the ranked chunks for ``question`` or raise RetrievalError."""
        log = log or self._default_sink
        request = self.build_request(question)
        max_attempts = self.config.max_attempts
        start = time.monotonic()
        attempt = 0

        while True:
            await log.debug(
                f"Attempt {attempt + 1}/{max_attempts}: Sending request to OpenAI API..."
            )
            outcome = await self.executor.execute(request, log)

            elapsed_ms = int((time.monotonic() - start) * 1000)
            await log.debug(f"Attempt {attempt + 1}: finished after {elapsed_ms}ms total.")
            if elapsed_ms > self.config.slow_request_warn_s * 1000:
                await log.warning(
                    f"Attempt {attempt + 1}: OpenAI API request duration > "
                    f"{self.config.slow_request_warn_s:g} seconds: {elapsed_ms}ms"
                )

            if isinstance(outcome, AttemptSucceeded):
                await log.info(
                    f"✅ Returning {len(outcome.chunks)} chunks. Total time: {elapsed_ms}ms."
                )
                return outcome.chunks

            error = await classify_fault(
                outcome, log, read_timeout_s=self.config.attempt_timeout_s
            )
            await log.warning(
                f"⚠️ Attempt {attempt + 1}/{max_attempts} failed: {error.code.value} - {error.message}"
            )

            if attempt == max_attempts - 1 or not is_retryable(error.code):
                total_ms = int((time.monotonic() - start) * 1000)
                await log.error(
                    f"❌ Final attempt failed after {total_ms}ms: {error.message}",
                    code=error.code.value,
                    details=error.details,
                    exc=outcome.exc if isinstance(outcome, AttemptRaised) else None,
                )
                raise RetrievalError(error)

            wait_ms = backoff_delay_ms(
                attempt,
                base_ms=self.config.base_delay_ms,
                jitter_ms=self.config.jitter_ms,
                rng=self._rng,
            )
            await log.info(f"Retrying after {wait_ms}ms delay...")
            await self._sleep(wait_ms / 1000)
            attempt += 1

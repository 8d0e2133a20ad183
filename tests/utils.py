"""Shared helpers for the retrieval tests: fake upstream, recorded sleeps."""

import asyncio
import json
from typing import Callable, Optional

import httpx

from src.filesearch.config import AppConfig
from src.filesearch.search import AttemptExecutor, RetrievalConfig, RetrievalOrchestrator

TEST_VECTOR_STORE = "vs_test123"
TEST_API_KEY = "sk-test-key-0000"


def make_app_config(debug: bool = False) -> AppConfig:
    return AppConfig(
        vector_store_id=TEST_VECTOR_STORE,
        openai_api_key=TEST_API_KEY,
        debug_openai=debug,
    )


def file_search_body(*result_lists: list) -> dict:
    """Build a Responses API body with one file_search_call item per list."""
    output = [{"type": "message", "content": []}]
    for results in result_lists:
        output.append({"type": "file_search_call", "results": results})
    return {"id": "resp_1", "output": output}


class SleepRecorder:
    """Stands in for asyncio.sleep and records each requested wait."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedUpstream:
    """MockTransport handler replaying a list of responses, one per call."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps[min(len(self.requests), len(self.steps)) - 1]
        if callable(step):
            return await step(request)
        # Responses are closed after use; hand out a fresh copy each time
        return httpx.Response(step.status_code, headers=step.headers, content=step.content)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_orchestrator(
    handler: Callable,
    config: Optional[RetrievalConfig] = None,
    debug: bool = False,
):
    """Return (orchestrator, sleep_recorder) wired to a fake upstream."""
    config = config or RetrievalConfig()
    executor = AttemptExecutor(
        api_key=TEST_API_KEY,
        config=config,
        debug=debug,
        transport=httpx.MockTransport(handler),
    )
    sleeper = SleepRecorder()
    orchestrator = RetrievalOrchestrator(executor, make_app_config(debug), sleep=sleeper)
    return orchestrator, sleeper


class StallingStream(httpx.AsyncByteStream):
    """Response body that sends one piece and then never finishes."""

    async def __aiter__(self):
        yield b"partial"
        await asyncio.sleep(30)
        yield b"never sent"

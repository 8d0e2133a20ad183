"""Flattens Responses API output items into ranked chunks."""

from __future__ import annotations

import uuid
from typing import Any

from .models import FILE_SEARCH_CALL, Chunk


def _fallback_id() -> str:
    # Display identifier only; collisions are tolerable.
    return f"unknown_id_{uuid.uuid4().hex[:13]}"


def _to_chunk(result: dict[str, Any]) -> Chunk:
    chunk_id = result.get("id")
    text = result.get("text")
    score = result.get("score")
    if not isinstance(score, (int, float)) or isinstance(score, bool):
        score = 0
    return Chunk(
        id=_fallback_id() if chunk_id is None or chunk_id == "" else str(chunk_id),
        text=text if isinstance(text, str) else "",
        score=score,
    )


def normalize_output(output: Any) -> list[Chunk]:
    """Extract chunks from every file_search_call item, preserving order.

    Items of other types, items whose ``results`` is not a list and result
    entries that are not objects are skipped without error.
    """
    if not isinstance(output, list):
        return []

    chunks: list[Chunk] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") != FILE_SEARCH_CALL:
            continue
        results = item.get("results")
        if not isinstance(results, list):
            continue
        for result in results:
            if isinstance(result, dict):
                chunks.append(_to_chunk(result))
    return chunks

from __future__ import annotations
import json
from pathlib import Path
from typing import Optional, Union
from src.filesearch.config import AppConfig, load_app_config
from src.filesearch.search import AttemptExecutor, RetrievalConfig, RetrievalOrchestrator
from src.utils.logger import get_logger

logger = get_logger("cli")


def cmd_check_config(config_path: Optional[Union[str, Path]] = None, env_file: Optional[str] = ".env") -> str:
    """Validate configuration and describe it. Raises ConfigError when invalid."""
    config = load_app_config(config_path, env_file=env_file)
    lines = [
        "FileSearch MCP configuration",
        "=" * 40,
        f"  Vector store:  {config.vector_store_id}",
        f"  API key:       {config.masked_api_key()}",
        f"  Debug OpenAI:  {config.debug_openai}",
    ]
    return "\n".join(lines)


async def cmd_query(
    question: str,
    config_path: Optional[Union[str, Path]] = None,
    app_config: Optional[AppConfig] = None,
    retrieval_config: Optional[RetrievalConfig] = None,
    transport=None,
) -> str:
    """Run one retrieval and return the chunk list as pretty JSON.

    Raises:
        ValueError: if the question is empty.
        ConfigError: if configuration is invalid.
        RetrievalError: if the upstream call ultimately fails.
    """
    if not question:
        raise ValueError("Question cannot be empty.")
    app_config = app_config or load_app_config(config_path)
    async with AttemptExecutor(
        api_key=app_config.openai_api_key,
        config=retrieval_config,
        debug=app_config.debug_openai,
        transport=transport,
    ) as executor:
        orchestrator = RetrievalOrchestrator(executor, app_config)
        chunks = await orchestrator.retrieve(question)
    logger.info(f"Query returned {len(chunks)} chunks")
    return json.dumps([c.to_dict() for c in chunks], indent=2)

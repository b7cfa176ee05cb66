"""Process-level context: every long-lived client is built here and released here."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import redis.asyncio as aioredis

from agentic_orchestrator.config.settings import Settings
from agentic_orchestrator.conversation import ConversationDriver
from agentic_orchestrator.llm import StreamingLLMClient, build_llm_client
from agentic_orchestrator.publisher import ProgressPublisher
from agentic_orchestrator.task_queue import ResultStore, TaskQueue
from agentic_orchestrator.tools import ToolDispatcher
from agentic_orchestrator.tools.sandbox import sandbox_status
from agentic_orchestrator.worker import Worker
from agentic_orchestrator.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    agent_type: str
    redis: Any
    pub_redis: Any
    llm: StreamingLLMClient | None
    workspace: WorkspaceManager
    publisher: ProgressPublisher
    dispatcher: ToolDispatcher
    queue: TaskQueue
    results: ResultStore
    worker: Worker | None

    @property
    def llm_configured(self) -> bool:
        return self.llm is not None


def build_runtime(
    settings: Settings,
    *,
    redis: Any,
    pub_redis: Any | None = None,
    llm: StreamingLLMClient | None = None,
) -> Runtime:
    """Wire collaborators together. A runtime without an LLM client has no worker."""
    agent_type = settings.resolved_agent_type()
    pub_redis = pub_redis if pub_redis is not None else redis

    workspace = WorkspaceManager(settings.resolved_workspace_root())
    workspace.ensure_root()
    publisher = ProgressPublisher(pub_redis)
    dispatcher = ToolDispatcher(tool_timeout_s=settings.tool_timeout_s)
    queue = TaskQueue(redis, agent_type)
    results = ResultStore(redis, ttl_s=settings.result_ttl_s)

    worker: Worker | None = None
    if llm is not None:
        driver = ConversationDriver(
            llm=llm,
            dispatcher=dispatcher,
            publisher=publisher,
            workspace=workspace,
            settings=settings,
            agent_type=agent_type,
            max_iterations=settings.max_iterations,
        )
        worker = Worker(
            queue=queue,
            results=results,
            driver=driver,
            publisher=publisher,
            agent_type=agent_type,
            poll_timeout_s=settings.queue_poll_timeout_s,
            backoff_s=settings.loop_backoff_s,
            lock_client=redis,
            project_lock_ttl_s=settings.project_lock_ttl_s,
            project_lock_wait_s=settings.project_lock_wait_s,
        )

    return Runtime(
        settings=settings,
        agent_type=agent_type,
        redis=redis,
        pub_redis=pub_redis,
        llm=llm,
        workspace=workspace,
        publisher=publisher,
        dispatcher=dispatcher,
        queue=queue,
        results=results,
        worker=worker,
    )


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[Runtime]:
    """Connect Redis and the provider client; close everything on exit.

    Raises ConfigurationError before opening any connection when the provider
    API key is missing.
    """
    llm = build_llm_client(
        api_key=settings.resolved_anthropic_api_key(),
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
    )
    redis_url = settings.resolved_redis_url()
    # Separate connections: BRPOP blocks its connection for up to the poll timeout.
    redis = aioredis.Redis.from_url(redis_url, decode_responses=True)
    pub_redis = aioredis.Redis.from_url(redis_url, decode_responses=True)
    try:
        await redis.ping()
        await pub_redis.ping()
        logger.info("runtime event=redis_connected url=%s", redis_url)
        runtime = build_runtime(settings, redis=redis, pub_redis=pub_redis, llm=llm)
        logger.info(
            "runtime event=ready agent_type=%s workspace_root=%s",
            runtime.agent_type,
            runtime.workspace.root,
        )
        sandbox = await asyncio.to_thread(sandbox_status, settings.command_sandbox)
        if sandbox == "unconfined":
            logger.warning(
                "runtime event=sandbox_unavailable detail=%s",
                "bwrap not usable; tool commands can write outside the project workspace",
            )
        else:
            logger.info("runtime event=sandbox mode=%s", sandbox)
        yield runtime
    finally:
        await redis.aclose()
        await pub_redis.aclose()
        await llm.aclose()
        logger.info("runtime event=closed")

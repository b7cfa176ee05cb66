"""FastAPI health/control surface for one worker process."""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import Field

from agentic_orchestrator.config.settings import Settings, get_settings
from agentic_orchestrator.models import Task, WireModel
from agentic_orchestrator.runtime import Runtime, open_runtime
from agentic_orchestrator.task_queue import TaskQueue
from agentic_orchestrator.tools import CATALOGUE_VERSION, list_tools

logger = logging.getLogger(__name__)


class EnqueueTaskRequest(WireModel):
    """Accepts camelCase keys like the queue producers; snake_case also works."""

    prompt: str = Field(min_length=1)
    project_id: str = Field(default="demo", min_length=1)
    user_id: str | None = None
    agent_type: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class EnqueueTaskResponse(WireModel):
    task_id: str
    agent_type: str
    queue: str


async def _stop_worker(
    task: asyncio.Task[None], stop_event: asyncio.Event, grace_s: float
) -> None:
    stop_event.set()
    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=grace_s)
    except TimeoutError:
        logger.warning("worker event=shutdown_timeout grace_s=%s", grace_s)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app(
    *,
    runtime: Runtime | None = None,
    settings_override: Settings | None = None,
    start_worker: bool = True,
) -> FastAPI:
    settings = settings_override or (runtime.settings if runtime else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            active = runtime or await stack.enter_async_context(open_runtime(settings))
            app.state.runtime = active

            worker_task: asyncio.Task[None] | None = None
            stop_event = asyncio.Event()
            if start_worker and active.worker is not None:
                worker_task = asyncio.create_task(active.worker.run(stop_event))
            try:
                yield
            finally:
                logger.info("app event=shutdown")
                if worker_task is not None:
                    await _stop_worker(worker_task, stop_event, settings.shutdown_grace_s)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if runtime is not None:
        app.state.runtime = runtime

    def _runtime(request: Request) -> Runtime:
        active = getattr(request.app.state, "runtime", None)
        if active is None:
            raise HTTPException(status_code=503, detail="Runtime not started")
        return active

    @app.get("/health")
    @app.get("/healthz")
    @app.get("/live")
    def health(request: Request) -> dict[str, Any]:
        active = getattr(request.app.state, "runtime", None)
        worker = active.worker if active is not None else None
        return {
            "status": "ok",
            "service": settings.app_name,
            "agentType": settings.resolved_agent_type(),
            "llmConfigured": bool(active and active.llm_configured),
            "workspaceRoot": str(active.workspace.root) if active else None,
            "worker": worker.status.snapshot() if worker else None,
        }

    @app.get("/tools")
    def tools() -> dict[str, Any]:
        return {"version": CATALOGUE_VERSION, "tools": list_tools()}

    @app.post("/tasks", response_model=EnqueueTaskResponse, response_model_by_alias=True)
    async def enqueue_task(payload: EnqueueTaskRequest, request: Request) -> EnqueueTaskResponse:
        active = _runtime(request)
        agent_type = payload.agent_type or active.agent_type
        queue = (
            active.queue
            if agent_type == active.agent_type
            else TaskQueue(active.redis, agent_type)
        )
        task = Task(
            task_id=str(uuid.uuid4()),
            project_id=payload.project_id,
            user_id=payload.user_id,
            prompt=payload.prompt,
            agent_type=agent_type,
            context=payload.context,
        )
        await queue.push(task)
        return EnqueueTaskResponse(task_id=task.task_id, agent_type=agent_type, queue=queue.name)

    @app.get("/tasks/{task_id}/result")
    async def get_result(task_id: str, request: Request) -> dict[str, Any]:
        result = await _runtime(request).results.get(task_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Result not found")
        return result.to_wire()

    @app.get("/queue")
    async def queue_status(request: Request) -> dict[str, Any]:
        active = _runtime(request)
        return {"queue": active.queue.name, "depth": await active.queue.depth()}

    return app


# Module-level app for `uvicorn agentic_orchestrator.api.main:app`.
app = create_app()

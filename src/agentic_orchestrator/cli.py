"""Command line entry point: run the worker, serve the control API, or enqueue a task."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import uuid

import redis.asyncio as aioredis

from agentic_orchestrator.config.settings import Settings, get_settings
from agentic_orchestrator.errors import ConfigurationError
from agentic_orchestrator.models import Task
from agentic_orchestrator.runtime import open_runtime
from agentic_orchestrator.task_queue import TaskQueue

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def run_worker(settings: Settings) -> None:
    """Consume the queue until SIGINT/SIGTERM, then release every client."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async with open_runtime(settings) as runtime:
        if runtime.worker is None:
            raise ConfigurationError("Worker requires a configured LLM client")
        await runtime.worker.run(stop_event)


async def enqueue(settings: Settings, *, prompt: str, project_id: str, agent_type: str) -> Task:
    task = Task(
        task_id=str(uuid.uuid4()),
        project_id=project_id,
        user_id="local-user",
        prompt=prompt,
        agent_type=agent_type,
    )
    redis = aioredis.Redis.from_url(settings.resolved_redis_url(), decode_responses=True)
    try:
        await TaskQueue(redis, agent_type).push(task)
    finally:
        await redis.aclose()
    return task


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentic-orchestrator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("worker", help="Consume tasks from this agent type's queue.")

    serve = subparsers.add_parser("serve", help="Run the worker behind the HTTP control API.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    enqueue_parser = subparsers.add_parser("enqueue", help="Push a task onto a queue.")
    enqueue_parser.add_argument("prompt")
    enqueue_parser.add_argument("--project-id", default="demo")
    enqueue_parser.add_argument("--agent-type", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        if args.command == "worker":
            asyncio.run(run_worker(settings))
        elif args.command == "serve":
            import uvicorn

            from agentic_orchestrator.api.main import create_app

            uvicorn.run(
                create_app(settings_override=settings),
                host=args.host or settings.host,
                port=args.port or settings.resolved_port(),
                log_level=settings.log_level.lower(),
            )
        elif args.command == "enqueue":
            task = asyncio.run(
                enqueue(
                    settings,
                    prompt=args.prompt,
                    project_id=args.project_id,
                    agent_type=args.agent_type or settings.resolved_agent_type(),
                )
            )
            print(json.dumps({"taskId": task.task_id, "agentType": task.agent_type}))
    except ConfigurationError as exc:
        logger.error("startup event=config_error reason=%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

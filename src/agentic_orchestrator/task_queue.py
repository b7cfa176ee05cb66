"""Redis-backed work queue and terminal result store."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError

from agentic_orchestrator.errors import TaskDecodeError
from agentic_orchestrator.models import ResultRecord, Task

logger = logging.getLogger(__name__)


class QueueClient(Protocol):
    async def brpop(self, keys: list[str], timeout: int = 0) -> Any: ...

    async def lpush(self, name: str, *values: str) -> int: ...

    async def llen(self, name: str) -> int: ...


class KeyValueClient(Protocol):
    async def set(self, name: str, value: str, ex: int | None = None) -> Any: ...

    async def get(self, name: str) -> Any: ...


def queue_name(agent_type: str) -> str:
    return f"queue:{agent_type}"


def result_key(task_id: str) -> str:
    return f"result:{task_id}"


class TaskQueue:
    """List queue per agent type. ``BRPOP`` hands each entry to exactly one worker."""

    def __init__(self, redis: QueueClient, agent_type: str) -> None:
        self._redis = redis
        self.name = queue_name(agent_type)

    async def pop(self, timeout: int = 5) -> Task | None:
        item = await self._redis.brpop([self.name], timeout=timeout)
        if item is None:
            return None
        _, raw = item
        try:
            return Task.model_validate_json(raw)
        except ValidationError as exc:
            raise TaskDecodeError(f"Invalid task payload on {self.name}: {exc}") from exc

    async def push(self, task: Task) -> None:
        await self._redis.lpush(self.name, task.model_dump_json(by_alias=True))
        logger.info("queue event=push queue=%s task_id=%s", self.name, task.task_id)

    async def depth(self) -> int:
        return int(await self._redis.llen(self.name))


class ResultStore:
    """Store one terminal result per task with a bounded TTL."""

    def __init__(self, redis: KeyValueClient, *, ttl_s: int = 3600) -> None:
        self._redis = redis
        self.ttl_s = ttl_s

    async def save(self, result: ResultRecord) -> None:
        await self._redis.set(
            result_key(result.task_id),
            result.model_dump_json(by_alias=True, exclude_none=True),
            ex=self.ttl_s,
        )

    async def get(self, task_id: str) -> ResultRecord | None:
        raw = await self._redis.get(result_key(task_id))
        if raw is None:
            return None
        return ResultRecord.model_validate_json(raw)

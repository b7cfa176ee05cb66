"""Best-effort broadcast of progress events and file mutations over Redis pub/sub."""

from __future__ import annotations

import json
import logging
from typing import Any, Literal, Protocol

from agentic_orchestrator.models import ProgressEvent, ProgressEventType, ResultRecord

logger = logging.getLogger(__name__)

TASK_COMPLETED_CHANNEL = "task-completed"


class PubSubClient(Protocol):
    async def publish(self, channel: str, message: str) -> int: ...


def progress_channel(task_id: str) -> str:
    return f"progress:{task_id}"


def files_channel(project_id: str) -> str:
    return f"files:{project_id}"


class ProgressPublisher:
    """Publish task progress and file changes.

    Publishes are awaited one at a time, so events for one task reach the
    broker in emission order. A failed publish is logged and dropped; it never
    fails the task.
    """

    def __init__(self, redis: PubSubClient) -> None:
        self._redis = redis

    async def publish_progress(
        self,
        task_id: str,
        event_type: ProgressEventType,
        **fields: Any,
    ) -> ProgressEvent:
        event = ProgressEvent(type=event_type, **fields)
        await self._publish(progress_channel(task_id), event.to_wire())
        return event

    async def publish_file_change(
        self,
        project_id: str,
        *,
        action: Literal["create", "edit"],
        path: str,
        content: str,
    ) -> None:
        await self._publish(
            files_channel(project_id),
            {"action": action, "path": path, "content": content},
        )

    async def publish_task_completed(self, result: ResultRecord) -> None:
        await self._publish(
            TASK_COMPLETED_CHANNEL,
            {
                "taskId": result.task_id,
                "agentType": result.agent_type,
                "iterations": result.iterations,
                "completed": result.completed,
            },
        )

    async def _publish(self, channel: str, payload: dict[str, Any]) -> None:
        try:
            await self._redis.publish(channel, json.dumps(payload, default=str))
        except Exception as exc:  # noqa: BLE001
            logger.warning("publish event=failed channel=%s reason=%s", channel, exc)

"""Queue consumer: pop one task, run it to a terminal result, repeat."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from agentic_orchestrator.conversation import ConversationDriver, ConversationOutcome
from agentic_orchestrator.errors import TaskDecodeError
from agentic_orchestrator.locks import LockClient, ProjectLock
from agentic_orchestrator.models import ResultRecord, Task, now_ms
from agentic_orchestrator.publisher import ProgressPublisher
from agentic_orchestrator.task_queue import ResultStore, TaskQueue

logger = logging.getLogger(__name__)


@dataclass
class WorkerStatus:
    running: bool = False
    current_task_id: str | None = None
    tasks_processed: int = 0
    last_poll_at: int | None = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "currentTaskId": self.current_task_id,
            "tasksProcessed": self.tasks_processed,
            "lastPollAt": self.last_poll_at,
        }


class Worker:
    """Single-task-at-a-time consumer for one agent type's queue."""

    def __init__(
        self,
        *,
        queue: TaskQueue,
        results: ResultStore,
        driver: ConversationDriver,
        publisher: ProgressPublisher,
        agent_type: str,
        poll_timeout_s: int = 5,
        backoff_s: float = 1.0,
        lock_client: LockClient | None = None,
        project_lock_ttl_s: int = 0,
        project_lock_wait_s: float = 30.0,
    ) -> None:
        self.queue = queue
        self.results = results
        self.driver = driver
        self.publisher = publisher
        self.agent_type = agent_type
        self.poll_timeout_s = poll_timeout_s
        self.backoff_s = backoff_s
        self.lock_client = lock_client
        self.project_lock_ttl_s = project_lock_ttl_s
        self.project_lock_wait_s = project_lock_wait_s
        self.status = WorkerStatus()

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("worker event=listening queue=%s", self.queue.name)
        self.status.running = True
        try:
            while not stop_event.is_set():
                try:
                    self.status.last_poll_at = now_ms()
                    task = await self.queue.pop(timeout=self.poll_timeout_s)
                    if task is None:
                        continue
                    await self.process_task(task)
                except TaskDecodeError as exc:
                    logger.error(
                        "worker event=bad_payload queue=%s reason=%s", self.queue.name, exc
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("worker event=loop_error queue=%s", self.queue.name)
                    await _sleep_or_stop(stop_event, self.backoff_s)
        finally:
            self.status.running = False
            logger.info("worker event=stopped queue=%s", self.queue.name)

    async def process_task(self, task: Task) -> ResultRecord:
        logger.info(
            "task_run event=start task_id=%s project_id=%s agent_type=%s",
            task.task_id,
            task.project_id,
            self.agent_type,
        )
        self.status.current_task_id = task.task_id
        lock = self._project_lock(task.project_id)
        try:
            if lock is not None and not await lock.acquire():
                outcome = await self._fail_busy(task)
            else:
                outcome = await self.driver.run(task)

            result = ResultRecord(
                task_id=task.task_id,
                agent_type=self.agent_type,
                iterations=outcome.iterations,
                completed=outcome.completed,
                error=outcome.error,
                summary=outcome.summary,
                files_modified=outcome.files_modified,
            )
            await self.results.save(result)
            if result.error is None:
                await self.publisher.publish_task_completed(result)
        finally:
            if lock is not None:
                await lock.release()
            self.status.current_task_id = None

        self.status.tasks_processed += 1
        logger.info(
            "task_run event=finished task_id=%s iterations=%d completed=%s error=%s",
            task.task_id,
            result.iterations,
            result.completed,
            result.error,
        )
        return result

    def _project_lock(self, project_id: str) -> ProjectLock | None:
        if self.lock_client is None or self.project_lock_ttl_s <= 0:
            return None
        return ProjectLock(
            self.lock_client,
            project_id,
            ttl_s=self.project_lock_ttl_s,
            wait_s=self.project_lock_wait_s,
        )

    async def _fail_busy(self, task: Task) -> ConversationOutcome:
        message = f"Project {task.project_id} is busy with another task"
        await self.publisher.publish_progress(task.task_id, "task_error", error=message)
        return ConversationOutcome(iterations=0, completed=False, error=message)


async def _sleep_or_stop(stop_event: asyncio.Event, delay_s: float) -> None:
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay_s)
    except TimeoutError:
        pass

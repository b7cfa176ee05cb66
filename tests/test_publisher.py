from __future__ import annotations

import asyncio

from agentic_orchestrator.models import ResultRecord
from agentic_orchestrator.publisher import (
    TASK_COMPLETED_CHANNEL,
    ProgressPublisher,
    files_channel,
    progress_channel,
)
from fakes import FakeRedis


def test_channel_names() -> None:
    assert progress_channel("t1") == "progress:t1"
    assert files_channel("p1") == "files:p1"
    assert TASK_COMPLETED_CHANNEL == "task-completed"


def test_progress_events_are_timestamped_camel_case(fake_redis: FakeRedis) -> None:
    publisher = ProgressPublisher(fake_redis)

    event = asyncio.run(
        publisher.publish_progress("t1", "iteration_start", iteration=2, maxIterations=20)
    )

    [published] = fake_redis.events("t1")
    assert published == {
        "type": "iteration_start",
        "timestamp": event.timestamp,
        "iteration": 2,
        "maxIterations": 20,
    }
    assert event.timestamp > 0


def test_events_keep_emission_order(fake_redis: FakeRedis) -> None:
    publisher = ProgressPublisher(fake_redis)

    async def scenario() -> None:
        for index in range(5):
            await publisher.publish_progress("t1", "thinking_chunk", text=str(index))

    asyncio.run(scenario())

    assert [event["text"] for event in fake_redis.events("t1")] == ["0", "1", "2", "3", "4"]


def test_publish_failures_are_swallowed() -> None:
    broken = FakeRedis(fail_publish=True)
    publisher = ProgressPublisher(broken)
    result = ResultRecord(task_id="t1", agent_type="generic", iterations=1, completed=True)

    async def scenario() -> None:
        await publisher.publish_progress("t1", "task_started")
        await publisher.publish_file_change("p1", action="create", path="a.txt", content="x")
        await publisher.publish_task_completed(result)

    asyncio.run(scenario())

    assert broken.published == []


def test_task_completed_notification_shape(fake_redis: FakeRedis) -> None:
    publisher = ProgressPublisher(fake_redis)
    result = ResultRecord(
        task_id="t1",
        agent_type="frontend-developer",
        iterations=4,
        completed=False,
        summary="partial",
    )

    asyncio.run(publisher.publish_task_completed(result))

    assert fake_redis.messages("task-completed") == [
        {"taskId": "t1", "agentType": "frontend-developer", "iterations": 4, "completed": False}
    ]

from __future__ import annotations

import asyncio
import json
from typing import Any

from agentic_orchestrator.models import Task
from agentic_orchestrator.worker import Worker
from fakes import FakeRedis, ScriptedLLM, model_turn, text_block, tool_block


def _hello_world_llm() -> ScriptedLLM:
    return ScriptedLLM(
        [
            model_turn(
                text_block(0, "I'll create the file."),
                tool_block(
                    1,
                    "toolu_create",
                    "create_file",
                    {"path": "hello.txt", "content": "Hello, world!\n"},
                ),
                tool_block(
                    2,
                    "toolu_done",
                    "task_complete",
                    {"summary": "Created hello.txt", "files_modified": ["hello.txt"]},
                ),
                stop_reason="tool_use",
            )
        ]
    )


def _is_subsequence(expected: list[Any], actual: list[Any]) -> bool:
    remaining = iter(actual)
    return all(item in remaining for item in expected)


async def _run_until(worker: Worker, predicate, timeout_s: float = 5.0) -> None:
    stop_event = asyncio.Event()
    runner = asyncio.create_task(worker.run(stop_event))
    try:
        async with asyncio.timeout(timeout_s):
            while not predicate():
                await asyncio.sleep(0.01)
    finally:
        stop_event.set()
        await runner


def test_hello_world_task_end_to_end(make_runtime, fake_redis: FakeRedis) -> None:
    runtime = make_runtime(_hello_world_llm())
    worker = runtime.worker
    assert worker is not None
    task = Task(task_id="t1", project_id="p1", prompt="Create hello.txt")

    async def scenario() -> None:
        await runtime.queue.push(task)
        await _run_until(worker, lambda: worker.status.tasks_processed == 1)

    asyncio.run(scenario())

    project_root = runtime.workspace.project_root("p1")
    assert (project_root / "hello.txt").read_text() == "Hello, world!\n"

    observed = [
        (event["type"], event.get("tool"), (event.get("result") or {}).get("success"))
        for event in fake_redis.events("t1")
    ]
    assert _is_subsequence(
        [
            ("task_started", None, None),
            ("iteration_start", None, None),
            ("tool_start", "create_file", None),
            ("tool_executing", "create_file", None),
            ("tool_result", "create_file", True),
            ("task_completed", None, None),
        ],
        observed,
    )

    stored = json.loads(fake_redis.values["result:t1"])
    assert stored["taskId"] == "t1"
    assert stored["agentType"] == "generic"
    assert stored["iterations"] == 1
    assert stored["completed"] is True
    assert stored["summary"] == "Created hello.txt"
    assert "error" not in stored
    assert fake_redis.expirations["result:t1"] == 3600

    assert fake_redis.messages("files:p1") == [
        {"action": "create", "path": "hello.txt", "content": "Hello, world!\n"}
    ]
    assert fake_redis.messages("task-completed") == [
        {"taskId": "t1", "agentType": "generic", "iterations": 1, "completed": True}
    ]
    assert worker.status.current_task_id is None
    assert worker.status.running is False


def test_failed_task_stores_error_and_skips_completion_broadcast(
    make_runtime, fake_redis: FakeRedis
) -> None:
    llm = ScriptedLLM([[RuntimeError("connection reset")]])
    runtime = make_runtime(llm)
    assert runtime.worker is not None

    result = asyncio.run(
        runtime.worker.process_task(Task(task_id="t2", project_id="p1", prompt="x"))
    )

    assert result.completed is False
    assert result.error == "connection reset"
    stored = json.loads(fake_redis.values["result:t2"])
    assert stored["error"] == "connection reset"
    assert fake_redis.messages("task-completed") == []
    assert fake_redis.event_types("t2")[-1] == "task_error"


def test_worker_processes_tasks_in_submission_order(make_runtime, fake_redis: FakeRedis) -> None:
    llm = ScriptedLLM([model_turn(text_block(0, "done"))], repeat_last=True)
    runtime = make_runtime(llm)
    worker = runtime.worker
    assert worker is not None

    async def scenario() -> None:
        for task_id in ("first", "second", "third"):
            await runtime.queue.push(Task(task_id=task_id, project_id="p1", prompt=task_id))
        await _run_until(worker, lambda: worker.status.tasks_processed == 3)

    asyncio.run(scenario())

    completed = [message["taskId"] for message in fake_redis.messages("task-completed")]
    assert completed == ["first", "second", "third"]


def test_worker_skips_undecodable_payloads(make_runtime, fake_redis: FakeRedis) -> None:
    runtime = make_runtime(ScriptedLLM([model_turn(text_block(0, "done"))]))
    worker = runtime.worker
    assert worker is not None

    async def scenario() -> None:
        await fake_redis.lpush("queue:generic", "{not json")
        await fake_redis.lpush("queue:generic", json.dumps({"taskId": "missing-fields"}))
        await runtime.queue.push(Task(task_id="good", project_id="p1", prompt="hi"))
        await _run_until(worker, lambda: worker.status.tasks_processed == 1)

    asyncio.run(scenario())

    assert "result:good" in fake_redis.values
    assert fake_redis.lists["queue:generic"] == []


def test_worker_loop_survives_broker_errors(
    make_runtime, fake_redis: FakeRedis, monkeypatch
) -> None:
    runtime = make_runtime(ScriptedLLM([model_turn(text_block(0, "done"))]))
    worker = runtime.worker
    assert worker is not None
    original_brpop = fake_redis.brpop
    failures = {"remaining": 2}

    async def flaky_brpop(keys: list[str], timeout: int = 0):
        if failures["remaining"]:
            failures["remaining"] -= 1
            raise ConnectionError("redis went away")
        return await original_brpop(keys, timeout=timeout)

    monkeypatch.setattr(fake_redis, "brpop", flaky_brpop)

    async def scenario() -> None:
        await runtime.queue.push(Task(task_id="after-outage", project_id="p1", prompt="hi"))
        await _run_until(worker, lambda: worker.status.tasks_processed == 1)

    asyncio.run(scenario())

    assert failures["remaining"] == 0
    assert "result:after-outage" in fake_redis.values


def test_worker_stops_promptly_when_idle(make_runtime) -> None:
    runtime = make_runtime(ScriptedLLM([]))
    worker = runtime.worker
    assert worker is not None

    async def scenario() -> None:
        stop_event = asyncio.Event()
        runner = asyncio.create_task(worker.run(stop_event))
        await asyncio.sleep(0.05)
        assert worker.status.running is True
        stop_event.set()
        await asyncio.wait_for(runner, timeout=1)

    asyncio.run(scenario())

    assert worker.status.running is False
    assert worker.status.tasks_processed == 0


def test_busy_project_fails_task_without_running_model(
    make_runtime, fake_redis: FakeRedis
) -> None:
    llm = ScriptedLLM([model_turn(text_block(0, "should not run"))])
    runtime = make_runtime(llm, project_lock_ttl_s=60, project_lock_wait_s=0)
    assert runtime.worker is not None
    fake_redis.values["lock:project:p1"] = "held-by-another-worker"

    result = asyncio.run(
        runtime.worker.process_task(Task(task_id="t3", project_id="p1", prompt="x"))
    )

    assert result.error == "Project p1 is busy with another task"
    assert result.iterations == 0
    assert llm.calls == []
    assert fake_redis.events("t3") == [
        {
            "type": "task_error",
            "timestamp": fake_redis.events("t3")[0]["timestamp"],
            "error": "Project p1 is busy with another task",
        }
    ]
    assert fake_redis.values["lock:project:p1"] == "held-by-another-worker"


def test_project_lock_is_released_after_task(make_runtime, fake_redis: FakeRedis) -> None:
    runtime = make_runtime(
        ScriptedLLM([model_turn(text_block(0, "done"))]), project_lock_ttl_s=60
    )
    assert runtime.worker is not None

    result = asyncio.run(
        runtime.worker.process_task(Task(task_id="t4", project_id="p1", prompt="x"))
    )

    assert result.completed is True
    assert "lock:project:p1" not in fake_redis.values


def test_iteration_cap_stores_incomplete_result_without_error(
    make_runtime, fake_redis: FakeRedis
) -> None:
    looping = model_turn(tool_block(0, "toolu_ls", "list_files", {}), stop_reason="tool_use")
    runtime = make_runtime(ScriptedLLM([looping], repeat_last=True), max_iterations=4)
    assert runtime.worker is not None

    result = asyncio.run(
        runtime.worker.process_task(Task(task_id="t5", project_id="p1", prompt="loop"))
    )

    assert result.iterations == 4
    assert result.completed is False
    assert result.error is None
    stored = json.loads(fake_redis.values["result:t5"])
    assert stored["iterations"] == 4
    assert stored["completed"] is False
    assert "error" not in stored
    assert fake_redis.event_types("t5")[-1] == "task_warning"
    assert fake_redis.messages("task-completed")[-1]["completed"] is False

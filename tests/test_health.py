from __future__ import annotations

import asyncio
import json

from fastapi.testclient import TestClient

from agentic_orchestrator.api.main import create_app
from agentic_orchestrator.models import ResultRecord
from fakes import FakeRedis, ScriptedLLM


def test_health_endpoints(client: TestClient) -> None:
    for route in ("/health", "/healthz", "/live"):
        response = client.get(route)
        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "ok"
        assert payload["agentType"] == "generic"
        assert payload["llmConfigured"] is False
        assert payload["worker"] is None


def test_health_reports_worker_status(make_runtime) -> None:
    runtime = make_runtime(ScriptedLLM([]))
    client = TestClient(create_app(runtime=runtime, start_worker=False))

    payload = client.get("/health").json()

    assert payload["llmConfigured"] is True
    assert payload["workspaceRoot"] == str(runtime.workspace.root)
    assert payload["worker"] == {
        "running": False,
        "currentTaskId": None,
        "tasksProcessed": 0,
        "lastPollAt": None,
    }


def test_tools_endpoint_lists_catalogue(client: TestClient) -> None:
    response = client.get("/tools")

    assert response.status_code == 200
    payload = response.json()
    assert payload["version"]
    assert payload["tools"] == [
        "create_file",
        "edit_file",
        "execute_command",
        "generate_image",
        "install_package",
        "list_files",
        "read_file",
        "task_complete",
        "web_search",
    ]


def test_enqueue_task_pushes_to_agent_queue(client: TestClient, fake_redis: FakeRedis) -> None:
    response = client.post(
        "/tasks",
        json={"prompt": "Add a navbar", "project_id": "site", "context": {"page": "home"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["agentType"] == "generic"
    assert body["queue"] == "queue:generic"
    queued = json.loads(fake_redis.lists["queue:generic"][0])
    assert queued["taskId"] == body["taskId"]
    assert queued["projectId"] == "site"
    assert queued["context"] == {"page": "home"}

    depth = client.get("/queue").json()
    assert depth == {"queue": "queue:generic", "depth": 1}


def test_enqueue_task_for_other_agent_type(client: TestClient, fake_redis: FakeRedis) -> None:
    response = client.post(
        "/tasks", json={"prompt": "Design the API", "agent_type": "backend-developer"}
    )

    assert response.status_code == 200
    assert response.json()["queue"] == "queue:backend-developer"
    assert len(fake_redis.lists["queue:backend-developer"]) == 1
    assert "queue:generic" not in fake_redis.lists


def test_enqueue_accepts_camel_case_producer_keys(
    client: TestClient, fake_redis: FakeRedis
) -> None:
    response = client.post(
        "/tasks",
        json={
            "prompt": "Design the API",
            "projectId": "site",
            "userId": "u-7",
            "agentType": "backend-developer",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"taskId", "agentType", "queue"}
    assert body["agentType"] == "backend-developer"
    assert body["queue"] == "queue:backend-developer"
    queued = json.loads(fake_redis.lists["queue:backend-developer"][0])
    assert queued["projectId"] == "site"
    assert queued["userId"] == "u-7"
    assert queued["agentType"] == "backend-developer"
    assert "queue:generic" not in fake_redis.lists


def test_enqueue_rejects_empty_prompt(client: TestClient) -> None:
    response = client.post("/tasks", json={"prompt": ""})

    assert response.status_code == 422


def test_task_result_lookup(make_runtime) -> None:
    runtime = make_runtime()
    client = TestClient(create_app(runtime=runtime, start_worker=False))

    missing = client.get("/tasks/nope/result")
    asyncio.run(
        runtime.results.save(
            ResultRecord(
                task_id="done-1",
                agent_type="generic",
                iterations=3,
                completed=True,
                summary="Shipped",
            )
        )
    )
    found = client.get("/tasks/done-1/result")

    assert missing.status_code == 404
    assert found.status_code == 200
    payload = found.json()
    assert payload["taskId"] == "done-1"
    assert payload["iterations"] == 3
    assert payload["completed"] is True
    assert payload["summary"] == "Shipped"

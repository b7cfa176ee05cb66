from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from agentic_orchestrator.api.main import create_app
from agentic_orchestrator.config.settings import Settings
from agentic_orchestrator.runtime import Runtime, build_runtime
from fakes import FakeRedis, ScriptedLLM


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        agent_type="generic",
        anthropic_api_key="test-key",
        workspace_root=str(tmp_path / "workspace"),
        max_iterations=20,
        loop_backoff_s=0.0,
        command_timeout_s=5.0,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def make_runtime(settings: Settings, fake_redis: FakeRedis):
    def _make(llm: ScriptedLLM | None = None, **overrides: Any) -> Runtime:
        active_settings = settings.model_copy(update=overrides) if overrides else settings
        return build_runtime(active_settings, redis=fake_redis, llm=llm)

    return _make


@pytest.fixture
def client(make_runtime) -> TestClient:
    app = create_app(runtime=make_runtime(), start_worker=False)
    return TestClient(app)

"""Wire models shared by the queue, driver, publisher, and API.

Documents on Redis use camelCase keys (``taskId``, ``projectId``) so they stay
readable by the JavaScript producers and subscribers. Python code uses the
snake_case attribute names; the alias generator maps between the two.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Task(WireModel):
    """One unit of work submitted by an external producer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    task_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    user_id: str | None = None
    prompt: str = Field(min_length=1)
    agent_type: str = "generic"
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)

    def as_content_block(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


ProgressEventType = Literal[
    "task_started",
    "iteration_start",
    "thinking_start",
    "thinking_chunk",
    "tool_start",
    "tool_executing",
    "tool_result",
    "task_completed",
    "task_warning",
    "task_error",
]


class ProgressEvent(WireModel):
    """Timestamped step notification. Extra fields depend on ``type``."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    type: ProgressEventType
    timestamp: int = Field(default_factory=now_ms)


class ResultRecord(WireModel):
    """Terminal record written once per task, kept for a bounded TTL."""

    task_id: str
    agent_type: str
    iterations: int = Field(ge=0)
    completed: bool
    error: str | None = None
    summary: str | None = None
    files_modified: list[str] | None = None
    timestamp: int = Field(default_factory=now_ms)

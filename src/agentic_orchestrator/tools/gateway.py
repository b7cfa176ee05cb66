"""Schema-enforcing tool dispatcher with timeout and structured failures."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pydantic import ValidationError

from agentic_orchestrator.errors import ToolError
from agentic_orchestrator.tools.handlers import ToolContext
from agentic_orchestrator.tools.registry import ToolSpec, build_registry

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Validate and execute registered tools; every outcome is a ToolResult dict."""

    def __init__(
        self,
        *,
        registry: dict[str, ToolSpec] | None = None,
        tool_timeout_s: float = 300.0,
    ) -> None:
        self.registry = registry or build_registry()
        self.tool_timeout_s = tool_timeout_s

    def is_terminal(self, tool_name: str) -> bool:
        spec = self.registry.get(tool_name)
        return spec is not None and spec.terminal

    async def execute(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any]:
        started_at = time.perf_counter()
        result = await self._execute_once(tool_name, tool_input, context)
        logger.info(
            "tool_call event=finished task_id=%s tool=%s success=%s duration_ms=%s",
            context.task_id,
            tool_name,
            result["success"],
            _duration_ms(started_at),
        )
        return result

    async def _execute_once(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any]:
        spec = self.registry.get(tool_name)
        if spec is None:
            return _failure(f"Unknown tool: {tool_name}")

        if not isinstance(tool_input, dict):
            return _failure(f"Tool '{tool_name}' input must be a JSON object")

        try:
            payload = spec.validate(tool_input)
        except ValidationError as exc:
            return _failure(f"Invalid input for {tool_name}: {_validation_summary(exc)}")

        try:
            return await asyncio.wait_for(
                spec.execute(payload, context), timeout=self.tool_timeout_s
            )
        except TimeoutError:
            return _failure(f"Tool '{tool_name}' timed out after {self.tool_timeout_s:g}s")
        except (ToolError, OSError, UnicodeDecodeError) as exc:
            return _failure(str(exc) or exc.__class__.__name__)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "tool_call event=crashed task_id=%s tool=%s", context.task_id, tool_name
            )
            return _failure(f"{exc.__class__.__name__}: {exc}")


def _failure(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}


def _validation_summary(exc: ValidationError) -> str:
    parts: list[str] = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)

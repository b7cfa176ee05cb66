"""Streaming tool-calling conversation driver.

One :class:`ConversationDriver` run owns a single task's conversation:

    Idle -> IterationActive -> (ToolsPending -> IterationActive)* -> Completed | Failed

Each iteration streams one assistant turn from the provider, forwards text
deltas as ``thinking_chunk`` events while they arrive, then dispatches the
requested tools in order and feeds their results back as one user message.
The loop ends when the model stops asking for tools, when ``task_complete``
succeeds, when the iteration cap is hit, or when the provider fails.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from agentic_orchestrator.config.settings import Settings
from agentic_orchestrator.errors import ProviderError
from agentic_orchestrator.llm import StreamingLLMClient
from agentic_orchestrator.models import Task, ToolCall
from agentic_orchestrator.prompts import initial_user_message, system_prompt_for
from agentic_orchestrator.publisher import ProgressPublisher
from agentic_orchestrator.tools import ToolContext, ToolDispatcher, tool_catalogue
from agentic_orchestrator.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class Conversation:
    """Append-only message history for one task."""

    def __init__(self) -> None:
        self._messages: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._messages)

    def append_user_text(self, text: str) -> None:
        self._messages.append({"role": "user", "content": text})

    def append_assistant(self, blocks: Sequence[dict[str, Any]]) -> None:
        self._messages.append({"role": "assistant", "content": list(blocks)})

    def append_tool_results(self, blocks: Sequence[dict[str, Any]]) -> None:
        self._messages.append({"role": "user", "content": list(blocks)})


@dataclass
class AssistantTurn:
    """Finalized content of one streamed assistant response."""

    blocks: list[dict[str, Any]] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str | None = None


@dataclass(frozen=True)
class ConversationOutcome:
    iterations: int
    completed: bool
    error: str | None = None
    summary: str | None = None
    files_modified: list[str] | None = None


class ConversationDriver:
    """Run the bounded model/tool loop for a task and report every step."""

    def __init__(
        self,
        *,
        llm: StreamingLLMClient,
        dispatcher: ToolDispatcher,
        publisher: ProgressPublisher,
        workspace: WorkspaceManager,
        settings: Settings,
        agent_type: str,
        max_iterations: int = 20,
    ) -> None:
        self.llm = llm
        self.dispatcher = dispatcher
        self.publisher = publisher
        self.workspace = workspace
        self.settings = settings
        self.agent_type = agent_type
        self.max_iterations = max_iterations
        self._tools = tool_catalogue(dispatcher.registry)

    async def run(self, task: Task) -> ConversationOutcome:
        await self.publisher.publish_progress(
            task.task_id,
            "task_started",
            agentType=self.agent_type,
            message="Starting task processing...",
        )

        iterations = 0
        try:
            self.workspace.project_root(task.project_id)
            context = ToolContext(
                task_id=task.task_id,
                project_id=task.project_id,
                user_id=task.user_id,
                workspace=self.workspace,
                publisher=self.publisher,
                settings=self.settings,
            )
            system_prompt = system_prompt_for(self.agent_type)
            conversation = Conversation()
            conversation.append_user_text(initial_user_message(task.prompt, task.context))

            completed = False
            summary: str | None = None
            files_modified: list[str] | None = None
            while not completed and iterations < self.max_iterations:
                iterations += 1
                await self.publisher.publish_progress(
                    task.task_id,
                    "iteration_start",
                    iteration=iterations,
                    maxIterations=self.max_iterations,
                    message=f"Iteration {iterations}/{self.max_iterations}",
                )

                turn = await self._stream_turn(task.task_id, system_prompt, conversation)
                if turn.stop_reason == "max_tokens":
                    logger.warning(
                        "conversation event=truncated task_id=%s iteration=%d",
                        task.task_id,
                        iterations,
                    )
                if turn.blocks:
                    conversation.append_assistant(turn.blocks)

                if not turn.tool_calls:
                    completed = True
                    await self.publisher.publish_progress(
                        task.task_id,
                        "task_completed",
                        message="Agent completed thinking, no more actions needed",
                    )
                    break

                tool_result_blocks: list[dict[str, Any]] = []
                for call in turn.tool_calls:
                    result = await self._dispatch(task.task_id, call, context)
                    tool_result_blocks.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": call.id,
                            "content": json.dumps(result, default=str),
                            "is_error": not result.get("success", False),
                        }
                    )
                    if self.dispatcher.is_terminal(call.name) and result.get("success"):
                        completed = True
                        summary = result.get("summary")
                        files_modified = list(result.get("files_modified") or [])
                        await self.publisher.publish_progress(
                            task.task_id,
                            "task_completed",
                            summary=summary,
                            filesModified=files_modified,
                        )
                conversation.append_tool_results(tool_result_blocks)

            if not completed:
                logger.warning(
                    "conversation event=iteration_cap task_id=%s iterations=%d",
                    task.task_id,
                    iterations,
                )
                await self.publisher.publish_progress(
                    task.task_id,
                    "task_warning",
                    iterations=iterations,
                    message="Reached maximum iterations limit",
                )
            return ConversationOutcome(
                iterations=iterations,
                completed=completed,
                summary=summary,
                files_modified=files_modified,
            )
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            logger.exception(
                "conversation event=failed task_id=%s iterations=%d", task.task_id, iterations
            )
            await self.publisher.publish_progress(task.task_id, "task_error", error=message)
            return ConversationOutcome(iterations=iterations, completed=False, error=message)

    async def _dispatch(
        self, task_id: str, call: ToolCall, context: ToolContext
    ) -> dict[str, Any]:
        await self.publisher.publish_progress(
            task_id,
            "tool_executing",
            tool=call.name,
            toolUseId=call.id,
            input=call.input,
        )
        result = await self.dispatcher.execute(call.name, call.input, context)
        await self.publisher.publish_progress(
            task_id,
            "tool_result",
            tool=call.name,
            toolUseId=call.id,
            result=result,
        )
        return result

    async def _stream_turn(
        self,
        task_id: str,
        system_prompt: str,
        conversation: Conversation,
    ) -> AssistantTurn:
        turn = AssistantTurn()
        open_blocks: dict[int, dict[str, Any]] = {}
        json_buffers: dict[int, list[str]] = {}

        async with aclosing(
            self.llm.stream_message(
                system=system_prompt,
                messages=conversation.messages,
                tools=self._tools,
            )
        ) as stream:
            async for event in stream:
                event_type = event.get("type")

                if event_type == "content_block_start":
                    index = int(event.get("index", 0))
                    block = event.get("content_block") or {}
                    if block.get("type") == "text":
                        open_blocks[index] = {"type": "text", "text": block.get("text") or ""}
                        await self.publisher.publish_progress(
                            task_id, "thinking_start", message="Agent is thinking..."
                        )
                    elif block.get("type") == "tool_use":
                        open_blocks[index] = {
                            "type": "tool_use",
                            "id": block.get("id"),
                            "name": block.get("name"),
                        }
                        json_buffers[index] = []
                        await self.publisher.publish_progress(
                            task_id,
                            "tool_start",
                            tool=block.get("name"),
                            toolUseId=block.get("id"),
                        )

                elif event_type == "content_block_delta":
                    index = int(event.get("index", 0))
                    delta = event.get("delta") or {}
                    if delta.get("type") == "text_delta" and index in open_blocks:
                        if open_blocks[index]["type"] != "text":
                            raise ProviderError(f"Text delta for non-text content block {index}")
                        text = delta.get("text") or ""
                        open_blocks[index]["text"] += text
                        await self.publisher.publish_progress(task_id, "thinking_chunk", text=text)
                    elif delta.get("type") == "input_json_delta" and index in json_buffers:
                        json_buffers[index].append(delta.get("partial_json") or "")

                elif event_type == "content_block_stop":
                    index = int(event.get("index", 0))
                    block = open_blocks.pop(index, None)
                    if block is None:
                        continue
                    if block["type"] == "text":
                        if block["text"]:
                            turn.blocks.append(block)
                    else:
                        call = _finalize_tool_call(block, json_buffers.pop(index, []))
                        turn.tool_calls.append(call)
                        turn.blocks.append(call.as_content_block())

                elif event_type == "message_delta":
                    delta = event.get("delta") or {}
                    turn.stop_reason = delta.get("stop_reason") or turn.stop_reason

                elif event_type == "error":
                    error = event.get("error") or {}
                    raise ProviderError(f"Provider stream error: {error.get('message', error)}")

                elif event_type == "message_stop":
                    break

        if open_blocks:
            raise ProviderError("Provider stream ended with unfinished content blocks")
        return turn


def _finalize_tool_call(block: dict[str, Any], json_parts: list[str]) -> ToolCall:
    raw_json = "".join(json_parts).strip()
    try:
        tool_input = json.loads(raw_json) if raw_json else {}
    except json.JSONDecodeError as exc:
        raise ProviderError(f"Malformed input JSON for tool {block.get('name')}") from exc
    if not isinstance(tool_input, dict):
        raise ProviderError(f"Tool input for {block.get('name')} must be a JSON object")
    if not block.get("id") or not block.get("name"):
        raise ProviderError("Tool use block is missing an id or name")
    return ToolCall(id=str(block["id"]), name=str(block["name"]), input=tool_input)

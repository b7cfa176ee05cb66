"""Streaming LLM provider adapters and the client factory."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from typing import Any, Protocol

import anthropic

from agentic_orchestrator.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class StreamingLLMClient(Protocol):
    """Interface for streamed, tool-enabled model turns.

    Implementations yield provider stream events as plain dicts shaped like the
    Anthropic Messages streaming protocol (``message_start``,
    ``content_block_start``, ``content_block_delta``, ``content_block_stop``,
    ``message_delta``, ``message_stop``).
    """

    def stream_message(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncGenerator[dict[str, Any], None]: ...


class AnthropicStreamingClient:
    """Streaming adapter over the Anthropic async SDK client."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        *,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 8192,
    ) -> None:
        self._client = client
        self.model = model
        self.max_tokens = max_tokens

    async def stream_message(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncGenerator[dict[str, Any], None]:
        if _trace_enabled():
            logger.warning(
                "LLM trace request provider=anthropic model=%s messages=%d tools=%d",
                self.model,
                len(messages),
                len(tools),
            )
        try:
            stream = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
                tools=tools,
                stream=True,
            )
        except anthropic.APIError as exc:
            raise ProviderError(f"Anthropic request failed: {exc}") from exc

        try:
            async for event in stream:
                yield event.model_dump(mode="json")
        except anthropic.APIError as exc:
            raise ProviderError(f"Anthropic stream failed: {exc}") from exc
        finally:
            await stream.close()

    async def aclose(self) -> None:
        await self._client.close()


def build_llm_client(
    *,
    api_key: str,
    model: str,
    max_tokens: int,
    timeout_s: float,
    max_retries: int,
) -> AnthropicStreamingClient:
    if not api_key:
        raise ConfigurationError(
            "ANTHROPIC_API_KEY is missing. Set ORCHESTRATOR_ANTHROPIC_API_KEY "
            "or ANTHROPIC_API_KEY before starting the worker."
        )
    client = anthropic.AsyncAnthropic(
        api_key=api_key,
        timeout=timeout_s,
        max_retries=max_retries,
    )
    logger.info("llm event=configured provider=anthropic model=%s", model)
    return AnthropicStreamingClient(client, model=model, max_tokens=max_tokens)


def _trace_enabled() -> bool:
    return os.getenv("ORCHESTRATOR_LLM_TRACE", "0").strip() == "1"

"""Tooling layer for schema-validated execution."""

from agentic_orchestrator.tools.gateway import ToolDispatcher
from agentic_orchestrator.tools.handlers import ToolContext
from agentic_orchestrator.tools.registry import (
    CATALOGUE_VERSION,
    COMPLETE_TOOL_NAME,
    ToolSpec,
    build_registry,
    list_tools,
    tool_catalogue,
)

__all__ = [
    "CATALOGUE_VERSION",
    "COMPLETE_TOOL_NAME",
    "ToolContext",
    "ToolDispatcher",
    "ToolSpec",
    "build_registry",
    "list_tools",
    "tool_catalogue",
]

"""Tool registry and the schema catalogue sent to the model provider."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from agentic_orchestrator.tools import handlers
from agentic_orchestrator.tools.handlers import ToolContext
from agentic_orchestrator.tools.schemas import (
    CreateFileInput,
    CreateFileOutput,
    EditFileInput,
    EditFileOutput,
    ExecuteCommandInput,
    ExecuteCommandOutput,
    GenerateImageInput,
    GenerateImageOutput,
    InstallPackageInput,
    InstallPackageOutput,
    ListFilesInput,
    ListFilesOutput,
    ReadFileInput,
    ReadFileOutput,
    TaskCompleteInput,
    TaskCompleteOutput,
    WebSearchInput,
    WebSearchOutput,
)

# Bump whenever a tool is added, removed, or its input contract changes.
CATALOGUE_VERSION = "2024-10-22"

COMPLETE_TOOL_NAME = "task_complete"

ToolHandler = Callable[[Any, ToolContext], Awaitable[BaseModel]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    fn: ToolHandler
    terminal: bool = False

    def validate(self, tool_input: dict[str, Any]) -> BaseModel:
        return self.input_model.model_validate(tool_input)

    async def execute(self, payload: BaseModel, context: ToolContext) -> dict[str, Any]:
        raw_output = await self.fn(payload, context)
        validated = self.output_model.model_validate(raw_output.model_dump())
        return validated.model_dump(mode="json")

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": _clean_schema(self.input_model.model_json_schema()),
        }


def build_registry() -> dict[str, ToolSpec]:
    specs = [
        ToolSpec(
            name="create_file",
            description=(
                "Create a new file in the project workspace with the specified content. "
                "Use this for creating new components, pages, or any other files."
            ),
            input_model=CreateFileInput,
            output_model=CreateFileOutput,
            fn=handlers.create_file,
        ),
        ToolSpec(
            name="edit_file",
            description=(
                "Edit an existing file by replacing specific content. Provide the old content "
                "to find and the new content to replace it with."
            ),
            input_model=EditFileInput,
            output_model=EditFileOutput,
            fn=handlers.edit_file,
        ),
        ToolSpec(
            name="read_file",
            description=(
                "Read the contents of a file to understand the current code before "
                "making modifications."
            ),
            input_model=ReadFileInput,
            output_model=ReadFileOutput,
            fn=handlers.read_file,
        ),
        ToolSpec(
            name="list_files",
            description="List all files in a directory to understand the project structure.",
            input_model=ListFilesInput,
            output_model=ListFilesOutput,
            fn=handlers.list_files,
        ),
        ToolSpec(
            name="install_package",
            description="Install an npm package as a dependency or devDependency.",
            input_model=InstallPackageInput,
            output_model=InstallPackageOutput,
            fn=handlers.install_package,
        ),
        ToolSpec(
            name="web_search",
            description=(
                "Search the web for information, documentation, or examples. Use this when "
                "you need up-to-date information or API documentation."
            ),
            input_model=WebSearchInput,
            output_model=WebSearchOutput,
            fn=handlers.web_search,
        ),
        ToolSpec(
            name="execute_command",
            description=(
                "Execute a shell command in the project directory. Use for running tests, "
                "builds, or other scripts."
            ),
            input_model=ExecuteCommandInput,
            output_model=ExecuteCommandOutput,
            fn=handlers.execute_command,
        ),
        ToolSpec(
            name="generate_image",
            description="Generate an image for UI mockups, icons, or illustrations.",
            input_model=GenerateImageInput,
            output_model=GenerateImageOutput,
            fn=handlers.generate_image,
        ),
        ToolSpec(
            name=COMPLETE_TOOL_NAME,
            description=(
                "Mark the task as complete and provide a summary of what was accomplished."
            ),
            input_model=TaskCompleteInput,
            output_model=TaskCompleteOutput,
            fn=handlers.task_complete,
            terminal=True,
        ),
    ]
    return {spec.name: spec for spec in specs}


def tool_catalogue(registry: dict[str, ToolSpec] | None = None) -> list[dict[str, Any]]:
    """Tool definitions in the provider's ``tools`` parameter format."""
    active = registry if registry is not None else build_registry()
    return [spec.schema() for spec in active.values()]


def list_tools() -> list[str]:
    return sorted(build_registry().keys())


def _clean_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Drop pydantic ``title`` noise; keep types, descriptions, and required fields."""
    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "title":
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {
                name: _clean_schema(prop) if isinstance(prop, dict) else prop
                for name, prop in value.items()
            }
        elif isinstance(value, dict):
            cleaned[key] = _clean_schema(value)
        else:
            cleaned[key] = value
    return cleaned

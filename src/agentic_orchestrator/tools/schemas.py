"""Strict Pydantic schemas for tool inputs and outputs."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class ToolOutput(StrictModel):
    success: Literal[True] = True


class CreateFileInput(StrictModel):
    path: str = Field(
        min_length=1,
        description=(
            "The file path relative to the project root (e.g., 'src/components/Button.jsx')"
        ),
    )
    content: str = Field(description="The complete content of the file to create")


class CreateFileOutput(ToolOutput):
    message: str
    path: str


class EditFileInput(StrictModel):
    path: str = Field(min_length=1, description="The file path relative to the project root")
    old_content: str = Field(
        min_length=1,
        description="The exact content to find and replace (must match exactly)",
    )
    new_content: str = Field(description="The new content to replace the old content with")


class EditFileOutput(ToolOutput):
    message: str
    path: str


class ReadFileInput(StrictModel):
    path: str = Field(min_length=1, description="The file path relative to the project root")


class ReadFileOutput(ToolOutput):
    content: str
    path: str
    lines: int


class ListFilesInput(StrictModel):
    path: str = Field(
        default="",
        description="The directory path relative to the project root (empty string for root)",
    )


class ListFilesOutput(ToolOutput):
    directories: list[str]
    files: list[str]
    path: str


class InstallPackageInput(StrictModel):
    package: str = Field(min_length=1, description="The package name (e.g., 'react-router-dom')")
    dev: bool = Field(
        default=False,
        description="Whether to install as a devDependency (default: false)",
    )


class InstallPackageOutput(ToolOutput):
    message: str
    package: str
    output: str


class WebSearchInput(StrictModel):
    query: str = Field(min_length=1, description="The search query")


class SearchResult(StrictModel):
    title: str
    snippet: str


class WebSearchOutput(ToolOutput):
    message: str
    results: list[SearchResult]


class ExecuteCommandInput(StrictModel):
    command: str = Field(min_length=1, description="The command to execute (e.g., 'npm test')")


class ExecuteCommandOutput(ToolOutput):
    stdout: str
    stderr: str
    command: str
    exit_code: int


class GenerateImageInput(StrictModel):
    prompt: str = Field(min_length=1, description="The image generation prompt")
    filename: str = Field(
        min_length=1,
        description="The filename to save the image as (e.g., 'hero-image.png')",
    )


class GenerateImageOutput(ToolOutput):
    message: str
    filename: str
    note: str


class TaskCompleteInput(StrictModel):
    summary: str = Field(min_length=1, description="A brief summary of what was accomplished")
    files_modified: list[str] = Field(
        default_factory=list,
        description="List of files that were created or modified",
    )


class TaskCompleteOutput(ToolOutput):
    completed: Literal[True] = True
    summary: str
    files_modified: list[str]

"""Effectful tool implementations.

Each handler takes a validated input model plus the :class:`ToolContext` of the
running task and returns the tool's output model. Handlers raise
:class:`ToolError` (or let ``OSError`` propagate) on failure; the dispatcher
turns those into ``success=false`` results for the model.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from agentic_orchestrator.errors import ToolError
from agentic_orchestrator.tools.sandbox import SandboxMode, confine, references_parent_directory
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
    SearchResult,
    TaskCompleteInput,
    TaskCompleteOutput,
    WebSearchInput,
    WebSearchOutput,
)

if TYPE_CHECKING:
    from agentic_orchestrator.config.settings import Settings
    from agentic_orchestrator.publisher import ProgressPublisher
    from agentic_orchestrator.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

# npm package spec: optional scope, name, optional @version/range.
_PACKAGE_SPEC_RE = re.compile(
    r"^(@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9][a-z0-9._~-]*(@[A-Za-z0-9._^~<>=*|-]+)?$"
)


@dataclass(frozen=True)
class ToolContext:
    """Identifiers and collaborators available to a tool call."""

    task_id: str
    project_id: str
    user_id: str | None
    workspace: WorkspaceManager
    publisher: ProgressPublisher
    settings: Settings

    @property
    def project_root(self) -> Path:
        return self.workspace.project_root(self.project_id)


async def create_file(payload: CreateFileInput, context: ToolContext) -> CreateFileOutput:
    target = context.workspace.resolve(context.project_id, payload.path)
    if target == context.project_root or target.is_dir():
        raise ToolError(f"Cannot write file over a directory: {payload.path}")

    await asyncio.to_thread(_write_text, target, payload.content)
    rel_path = context.workspace.relative(context.project_id, target)
    await context.publisher.publish_file_change(
        context.project_id, action="create", path=rel_path, content=payload.content
    )
    return CreateFileOutput(message=f"Created file: {rel_path}", path=rel_path)


async def edit_file(payload: EditFileInput, context: ToolContext) -> EditFileOutput:
    target = context.workspace.resolve(context.project_id, payload.path)
    if not target.is_file():
        raise ToolError(f"File not found: {payload.path}")

    current = await asyncio.to_thread(target.read_text, encoding="utf-8")
    if payload.old_content not in current:
        raise ToolError(f"Old content not found in {payload.path}. The file may have changed.")

    updated = current.replace(payload.old_content, payload.new_content, 1)
    await asyncio.to_thread(_write_text, target, updated)
    rel_path = context.workspace.relative(context.project_id, target)
    await context.publisher.publish_file_change(
        context.project_id, action="edit", path=rel_path, content=updated
    )
    return EditFileOutput(message=f"Edited file: {rel_path}", path=rel_path)


async def read_file(payload: ReadFileInput, context: ToolContext) -> ReadFileOutput:
    target = context.workspace.resolve(context.project_id, payload.path)
    if not target.is_file():
        raise ToolError(f"File not found: {payload.path}")

    content = await asyncio.to_thread(target.read_text, encoding="utf-8")
    return ReadFileOutput(
        content=content,
        path=context.workspace.relative(context.project_id, target),
        lines=content.count("\n") + 1,
    )


async def list_files(payload: ListFilesInput, context: ToolContext) -> ListFilesOutput:
    target = context.workspace.resolve(context.project_id, payload.path or ".")
    if not target.is_dir():
        raise ToolError(f"Directory not found: {payload.path or '/'}")

    directories, files = await asyncio.to_thread(_scan_directory, target)
    return ListFilesOutput(
        directories=directories,
        files=files,
        path=context.workspace.relative(context.project_id, target),
    )


async def install_package(
    payload: InstallPackageInput, context: ToolContext
) -> InstallPackageOutput:
    package = payload.package.strip()
    if not _PACKAGE_SPEC_RE.match(package):
        raise ToolError(f"Invalid package name: {payload.package}")

    flag = "--save-dev" if payload.dev else "--save"
    argv = [context.settings.package_manager, "install", flag, package]
    exit_code, stdout, stderr = await _run_subprocess(
        argv,
        cwd=context.project_root,
        timeout_s=context.settings.install_timeout_s,
        sandbox=context.settings.command_sandbox,
    )
    limit = context.settings.max_tool_output_chars
    if exit_code != 0:
        raise ToolError(
            f"Installing {package} failed with exit code {exit_code}: "
            f"{_truncate(stderr or stdout, limit)}"
        )
    return InstallPackageOutput(
        message=f"Installed {package}",
        package=package,
        output=_truncate(stdout, limit),
    )


async def execute_command(
    payload: ExecuteCommandInput, context: ToolContext
) -> ExecuteCommandOutput:
    if references_parent_directory(payload.command):
        raise ToolError(
            "Command refers to a parent directory (..); "
            "commands are confined to the project workspace"
        )

    exit_code, stdout, stderr = await _run_subprocess(
        ["/bin/sh", "-c", payload.command],
        cwd=context.project_root,
        timeout_s=context.settings.command_timeout_s,
        sandbox=context.settings.command_sandbox,
    )
    limit = context.settings.max_tool_output_chars
    if exit_code != 0:
        raise ToolError(
            f"Command exited with status {exit_code}: {_truncate(stderr or stdout, limit)}"
        )
    return ExecuteCommandOutput(
        stdout=_truncate(stdout, limit),
        stderr=_truncate(stderr, limit),
        command=payload.command,
        exit_code=exit_code,
    )


async def web_search(payload: WebSearchInput, context: ToolContext) -> WebSearchOutput:
    # Placeholder until a search provider is wired in.
    return WebSearchOutput(
        message=f"Searched for: {payload.query}",
        results=[
            SearchResult(
                title="Search result placeholder",
                snippet="Web search is not connected to a provider in this deployment.",
            )
        ],
    )


async def generate_image(
    payload: GenerateImageInput, context: ToolContext
) -> GenerateImageOutput:
    # Placeholder until an image provider is wired in.
    return GenerateImageOutput(
        message=f"Would generate image: {payload.prompt}",
        filename=payload.filename,
        note="Image generation is not connected to a provider in this deployment.",
    )


async def task_complete(payload: TaskCompleteInput, context: ToolContext) -> TaskCompleteOutput:
    return TaskCompleteOutput(summary=payload.summary, files_modified=payload.files_modified)


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _scan_directory(path: Path) -> tuple[list[str], list[str]]:
    directories: list[str] = []
    files: list[str] = []
    for entry in path.iterdir():
        if entry.is_dir():
            directories.append(f"{entry.name}/")
        else:
            files.append(entry.name)
    return sorted(directories), sorted(files)


def _sandbox_env(cwd: Path) -> dict[str, str]:
    return {
        "PATH": os.environ.get("PATH", os.defpath),
        "HOME": str(cwd),
        "TMPDIR": str(cwd),
        "LANG": "C.UTF-8",
    }


async def _run_subprocess(
    argv: list[str],
    *,
    cwd: Path,
    timeout_s: float,
    sandbox: SandboxMode,
) -> tuple[int, str, str]:
    confined = await asyncio.to_thread(confine, argv, cwd, sandbox)
    proc = await asyncio.create_subprocess_exec(
        *confined,
        cwd=cwd,
        env=_sandbox_env(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except TimeoutError as exc:
        await _kill_process_group(proc)
        raise ToolError(f"Command timed out after {timeout_s:g}s") from exc
    except asyncio.CancelledError:
        await _kill_process_group(proc)
        raise

    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


async def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    await proc.wait()
    logger.warning("tool_subprocess event=killed pid=%s", proc.pid)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 15].rstrip() + "\n...[truncated]"

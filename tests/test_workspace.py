from __future__ import annotations

import os
from pathlib import Path

import pytest

from agentic_orchestrator.errors import WorkspaceError
from agentic_orchestrator.workspace import WorkspaceManager


def test_project_root_is_created_on_first_use(tmp_path: Path) -> None:
    manager = WorkspaceManager(tmp_path / "ws")

    root = manager.project_root("proj-1")

    assert root.is_dir()
    assert root == (tmp_path / "ws" / "proj-1").resolve()
    assert manager.project_root("proj-1") == root


def test_resolve_keeps_nested_paths_inside_project(tmp_path: Path) -> None:
    manager = WorkspaceManager(tmp_path)

    resolved = manager.resolve("proj", "src/components/../pages/index.js")

    assert resolved == (tmp_path / "proj" / "src" / "pages" / "index.js").resolve()
    assert manager.relative("proj", resolved) == "src/pages/index.js"


@pytest.mark.parametrize("project_id", ["proj", "other-project", "a.b_c"])
@pytest.mark.parametrize(
    "relative_path",
    ["../../escape.txt", "../sibling/file.txt", "src/../../escape.txt", "/etc/passwd"],
)
def test_resolve_rejects_paths_escaping_project_root(
    tmp_path: Path, project_id: str, relative_path: str
) -> None:
    manager = WorkspaceManager(tmp_path / "ws")

    with pytest.raises(WorkspaceError):
        manager.resolve(project_id, relative_path)


def test_resolve_rejects_symlink_pointing_outside(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    manager = WorkspaceManager(tmp_path / "ws")
    os.symlink(outside, manager.project_root("proj") / "link")

    with pytest.raises(WorkspaceError):
        manager.resolve("proj", "link/secret.txt")


@pytest.mark.parametrize("project_id", ["", "..", ".", "a/b", "..\\x"])
def test_project_root_rejects_unsafe_project_ids(tmp_path: Path, project_id: str) -> None:
    manager = WorkspaceManager(tmp_path)

    with pytest.raises(WorkspaceError):
        manager.project_root(project_id)


def test_resolving_project_root_itself_is_allowed(tmp_path: Path) -> None:
    manager = WorkspaceManager(tmp_path)

    resolved = manager.resolve("proj", "")

    assert resolved == manager.project_root("proj")
    assert manager.relative("proj", resolved) == "/"

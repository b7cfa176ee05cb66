"""Per-project workspace resolution.

Every filesystem-touching tool goes through :class:`WorkspaceManager`. Paths
supplied by the model are joined onto the project root, fully resolved
(``..`` segments collapsed, symlinks followed), and rejected unless the
result is still inside that root.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from agentic_orchestrator.errors import WorkspaceError

logger = logging.getLogger(__name__)

_FORBIDDEN_PROJECT_IDS = {"", ".", ".."}


class WorkspaceManager:
    """Map project ids to isolated directories under a single root."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def project_root(self, project_id: str) -> Path:
        """Return the project's directory, creating it on first use."""
        if (
            project_id.strip() in _FORBIDDEN_PROJECT_IDS
            or "/" in project_id
            or "\\" in project_id
            or "\x00" in project_id
        ):
            raise WorkspaceError(f"Invalid project id: {project_id!r}")

        path = self.root / project_id
        if not path.exists():
            logger.info("workspace event=create project_id=%s path=%s", project_id, path)
        path.mkdir(parents=True, exist_ok=True)
        return path.resolve()

    def resolve(self, project_id: str, relative_path: str) -> Path:
        """Resolve ``relative_path`` inside the project root or raise WorkspaceError."""
        if "\x00" in relative_path:
            raise WorkspaceError("Path contains a NUL byte")

        base = self.project_root(project_id)
        candidate = (base / relative_path).resolve()
        if candidate != base and not candidate.is_relative_to(base):
            logger.warning(
                "workspace event=path_rejected project_id=%s path=%r",
                project_id,
                relative_path,
            )
            raise WorkspaceError(f"Path escapes the project workspace: {relative_path}")
        return candidate

    def relative(self, project_id: str, path: Path) -> str:
        base = self.project_root(project_id)
        rel = path.relative_to(base)
        return PurePosixPath(*rel.parts).as_posix() if rel.parts else "/"

"""Filesystem confinement for tool subprocesses.

When bubblewrap (``bwrap``) works on the host, tool subprocesses see the host
filesystem read-only, with only the project root bound writable. Without it,
commands run unconfined apart from the working directory, the reduced
environment and the parent-directory check in ``execute_command``.
"""

from __future__ import annotations

import functools
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Literal

from agentic_orchestrator.errors import ToolError

logger = logging.getLogger(__name__)

SandboxMode = Literal["auto", "bwrap", "off"]

# A ".." path segment anywhere in a shell command line.
_PARENT_SEGMENT_RE = re.compile(r"(?:^|[\s/=<>|;&'\"(:`])\.\.(?=$|[/\s'\";|&)`])")


def references_parent_directory(command: str) -> bool:
    return _PARENT_SEGMENT_RE.search(command) is not None


def _bwrap_args(bwrap: str, project_root: Path) -> list[str]:
    root = str(project_root)
    return [
        bwrap,
        "--ro-bind", "/", "/",
        "--dev", "/dev",
        "--proc", "/proc",
        "--bind", root, root,
        "--chdir", root,
        "--unshare-pid",
        "--die-with-parent",
    ]


@functools.lru_cache(maxsize=1)
def bwrap_path() -> str | None:
    """Return the bwrap binary when it can actually create a sandbox here."""
    path = shutil.which("bwrap")
    if path is None:
        return None
    try:
        probe = subprocess.run(
            [*_bwrap_args(path, Path(tempfile.gettempdir())), "true"],
            capture_output=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("sandbox event=probe_failed reason=%s", exc)
        return None
    if probe.returncode != 0:
        logger.warning(
            "sandbox event=probe_failed status=%s stderr=%s",
            probe.returncode,
            probe.stderr.decode("utf-8", errors="replace").strip(),
        )
        return None
    return path


def sandbox_status(mode: SandboxMode) -> str:
    if mode == "off":
        return "off"
    return "bwrap" if bwrap_path() is not None else "unconfined"


def confine(argv: list[str], project_root: Path, mode: SandboxMode) -> list[str]:
    """Wrap ``argv`` so it can only write inside ``project_root``."""
    if mode == "off":
        return argv
    bwrap = bwrap_path()
    if bwrap is None:
        if mode == "bwrap":
            raise ToolError("Command sandbox (bwrap) is not available on this host")
        return argv
    return [*_bwrap_args(bwrap, project_root), *argv]

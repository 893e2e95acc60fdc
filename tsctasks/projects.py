"""Locate tsc executables and TypeScript project files in a workspace."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

DEFAULT_BIN = "tsc"
ROOT_PROJECT = "tsconfig.json"

_PROJECT_RE = re.compile(r"^tsconfig.*\.json$")
_LOCAL_BINS = ("tsc", "tsc.cmd")
_SKIPPED_DIRS = {"node_modules", ".git"}


def is_executable(cmd: Optional[str]) -> bool:
    return bool(cmd) and shutil.which(cmd) is not None


def find_tsc_bin(start: Optional[Path] = None) -> str:
    """Return the closest ``node_modules/.bin/tsc`` above ``start``, else ``tsc``."""
    directory = (start or Path.cwd()).expanduser().resolve()
    for candidate_dir in (directory, *directory.parents):
        bin_dir = candidate_dir / "node_modules" / ".bin"
        for name in _LOCAL_BINS:
            candidate = bin_dir / name
            if candidate.is_file():
                return str(candidate)
    return DEFAULT_BIN


def _git_files(workspace: Path) -> Optional[list[str]]:
    if shutil.which("git") is None:
        return None
    try:
        inside = subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=workspace,
            capture_output=True,
            text=True,
            check=False,
        )
        if inside.returncode != 0 or inside.stdout.strip() != "true":
            return None
        listed = subprocess.run(
            ["git", "ls-files"],
            cwd=workspace,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return listed.stdout.splitlines()


def _walk_files(workspace: Path) -> list[str]:
    files: list[str] = []
    for root, dirs, names in os.walk(workspace):
        dirs[:] = sorted(d for d in dirs if d not in _SKIPPED_DIRS)
        relative_root = Path(root).relative_to(workspace)
        files.extend((relative_root / name).as_posix() for name in names)
    return files


def find_projects(workspace: Path) -> list[str]:
    """Return workspace-relative paths of every ``tsconfig*.json`` file."""
    workspace = workspace.expanduser().resolve()
    files = _git_files(workspace)
    if files is None:
        files = _walk_files(workspace)
    projects = {
        path
        for path in files
        if _PROJECT_RE.match(Path(path).name)
        and "node_modules" not in Path(path).parts
    }
    return sorted(projects)


def find_monorepo_projects(workspace: Path) -> list[str]:
    """Like :func:`find_projects`, without the root config when nested ones exist."""
    projects = find_projects(workspace)
    if len(projects) <= 1:
        return projects
    return [project for project in projects if project != ROOT_PROJECT]

"""
Patch Applier — Overwrites a single file in the working copy.
"""

import os
import logging

from repair_agent.errors import WorkspaceError

logger = logging.getLogger(__name__)

# Prefixes the oracle tends to put in front of repo-relative paths
_STRIP_PREFIXES = ("./", "/", "repo/")


def normalize_relative_path(file_path: str) -> str:
    """
    Turn an oracle-supplied path into a clean repo-relative path.

    Backslashes become forward slashes and any leading "/", "./" or
    "repo/" prefixes are stripped (repeatedly).
    """
    path = file_path.strip().replace("\\", "/")
    changed = True
    while changed:
        changed = False
        for prefix in _STRIP_PREFIXES:
            if path.startswith(prefix):
                path = path[len(prefix):]
                changed = True
    return path


def write_file(repo_path: str, file_path: str, content: str) -> str:
    """
    Overwrite `file_path` (relative to `repo_path`) with `content`.
    Creates parent directories. Returns the normalized relative path.
    """
    rel_path = normalize_relative_path(file_path)
    if not rel_path:
        raise WorkspaceError(f"Empty file path after normalization: {file_path!r}")

    root = os.path.realpath(repo_path)
    target = os.path.realpath(os.path.join(root, rel_path))
    if os.path.commonpath([root, target]) != root or target == root:
        raise WorkspaceError(f"Refusing to write outside the working copy: {file_path!r}")
    if os.path.relpath(target, root).split(os.sep)[0] == ".git":
        raise WorkspaceError(f"Refusing to write into git metadata: {file_path!r}")

    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(content)

    logger.info(f"Overwrote {rel_path} ({len(content)} chars)")
    return rel_path

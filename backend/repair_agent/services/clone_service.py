"""
Clone Service — Clones a repository and renders its file tree.
"""

import os
import logging
from typing import Optional

from git import Git
from git.exc import GitCommandError

from repair_agent.config import settings
from repair_agent.errors import CloneError
from repair_agent.services.git_ops import redact_url

logger = logging.getLogger(__name__)


class CloneService:
    """Handles cloning repos and rendering their structure for the oracles."""

    # Never shown to the oracles: VCS metadata, dependency caches, build output
    EXCLUDED_DIRS = {
        ".git", ".hg", ".svn",
        "node_modules", "bower_components", "vendor",
        "__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache", ".tox",
        "venv", ".venv",
        "dist", "build", "target",
        ".next", ".nuxt", ".gradle", ".idea", ".vscode", "coverage",
    }

    def clone(self, repo_url: str, clone_dir: str, timeout: Optional[int] = None) -> str:
        """
        Clone a repository (URL or local path) into `clone_dir`.
        `clone_dir` must not exist or be empty. Returns the local path.

        The git process is killed once `timeout` seconds pass; CloneError is
        raised only after it has exited.
        """
        timeout = settings.clone_timeout if timeout is None else timeout
        logger.info(f"Cloning {redact_url(repo_url)} into {clone_dir}")
        try:
            Git().clone(
                "-c", "http.lowSpeedLimit=1",
                "-c", f"http.lowSpeedTime={timeout}",
                "--", repo_url, clone_dir,
                env={"GIT_TERMINAL_PROMPT": "0"},
                kill_after_timeout=timeout,
            )
        except GitCommandError as e:
            stderr = redact_url(str(e.stderr or e)).strip()
            if "did not complete in" in stderr:
                raise CloneError(f"Clone of {redact_url(repo_url)} timed out after {timeout}s") from e
            raise CloneError(f"Could not clone {redact_url(repo_url)}: {stderr}") from e
        except OSError as e:
            raise CloneError(f"Could not clone {redact_url(repo_url)}: {e}") from e

        logger.info(f"Successfully cloned to {clone_dir}")
        return clone_dir

    def render_tree(
        self,
        repo_path: str,
        max_depth: int = None,
        max_entries: int = None,
    ) -> str:
        """
        Render the file tree as indented text, directories first.
        Entries deeper than `max_depth` are omitted; output stops after
        `max_entries` lines.
        """
        max_depth = settings.tree_max_depth if max_depth is None else max_depth
        max_entries = settings.tree_max_entries if max_entries is None else max_entries

        lines: list[str] = []
        truncated = False

        def walk(directory: str, depth: int) -> None:
            nonlocal truncated
            try:
                entries = sorted(os.scandir(directory), key=lambda e: (not e.is_dir(), e.name.lower()))
            except OSError as e:
                logger.warning(f"Could not list {directory}: {e}")
                return

            for entry in entries:
                if len(lines) >= max_entries:
                    truncated = True
                    return
                indent = "  " * depth
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in self.EXCLUDED_DIRS:
                        continue
                    lines.append(f"{indent}{entry.name}/")
                    if depth + 1 < max_depth:
                        walk(entry.path, depth + 1)
                else:
                    lines.append(f"{indent}{entry.name}")

        walk(repo_path, 0)
        if truncated:
            lines.append(f"... (truncated after {max_entries} entries)")
        return "\n".join(lines)

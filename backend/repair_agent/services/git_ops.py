"""
Git Operations — Branch creation, committing with [AI-AGENT] prefix, and pushing.
"""

import os
import re
import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import urlsplit, urlunsplit

from git import Repo

from repair_agent.config import settings

logger = logging.getLogger(__name__)

COMMIT_PREFIX = "[AI-AGENT]"

_CREDENTIALS_RE = re.compile(r"([a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


def redact_url(text: str) -> str:
    """Mask any userinfo (tokens, passwords) embedded in URLs within `text`."""
    return _CREDENTIALS_RE.sub(r"\1***@", text)


def authenticated_url(remote_url: str, token: str) -> str:
    """Rebuild an https remote URL with the token as credentials."""
    parts = urlsplit(remote_url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return remote_url
    host = parts.hostname
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"x-access-token:{token}@{host}", parts.path, parts.query, parts.fragment))


def read_push_token() -> str:
    """Fetch the push credential from the environment at the moment of use."""
    return os.environ.get("GITHUB_TOKEN") or settings.github_token


def build_branch_name(team_name: str, leader_name: str) -> str:
    """Branch named TEAMNAME_LEADERNAME_AI_Fix."""
    return f"{_sanitize(team_name)}_{_sanitize(leader_name)}_AI_Fix"


def ensure_commit_prefix(message: str) -> str:
    message = message.strip()
    if message.startswith(COMMIT_PREFIX):
        return message
    return f"{COMMIT_PREFIX} {message}"


def _sanitize(name: str) -> str:
    """Sanitize a name for use in branch names — ALL UPPERCASE."""
    # Replace spaces and special chars with underscores
    cleaned = re.sub(r"[^a-zA-Z0-9_]", "_", name.strip())
    # Remove consecutive underscores
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_").upper()


class GitOps:
    """Handles all Git operations for a single working copy."""

    def __init__(self, repo_path: str):
        self.repo_path = repo_path
        self.repo = Repo(repo_path)

    def create_branch(self, branch_name: str) -> str:
        """Create (or reset) `branch_name` at the current HEAD and switch to it."""
        self.repo.git.checkout("-B", branch_name)
        logger.info(f"Created and switched to branch: {branch_name}")
        return branch_name

    def commit_changes(self, message: str) -> str:
        """
        Stage all changes and commit with the [AI-AGENT] prefix.
        Returns the short commit hash, or "" when there is nothing to commit.
        """
        prefixed_message = ensure_commit_prefix(message)

        self.repo.git.add("-A")
        if not self.repo.index.diff("HEAD"):
            logger.info("No changes to commit.")
            return ""

        self.repo.index.commit(prefixed_message)
        commit_hash = self.repo.head.commit.hexsha[:8]
        logger.info(f"Committed: {prefixed_message.splitlines()[0]} ({commit_hash})")
        return commit_hash

    @contextmanager
    def authenticated_remote(self, remote_url: str, token: Optional[str]) -> Iterator[None]:
        """
        Point origin at an authenticated URL for the duration of the block.
        The original URL is restored even on failure.
        """
        origin = self.repo.remote("origin")
        original_url = origin.url
        push_url = authenticated_url(remote_url, token) if token else remote_url
        self.repo.git.remote("set-url", "origin", push_url)
        try:
            yield
        finally:
            self.repo.git.remote("set-url", "origin", original_url)

    def push(self, branch_name: str, remote_url: str) -> None:
        """
        Push the branch to origin, authenticating with a token read from the
        environment just before the push. Raises GitCommandError on failure.
        """
        token = read_push_token()
        with self.authenticated_remote(remote_url, token):
            infos = self.repo.remote("origin").push(
                f"{branch_name}:{branch_name}",
                force=True,
                kill_after_timeout=settings.git_timeout,
            )
            infos.raise_if_error()
        logger.info(f"Pushed branch {branch_name} to {redact_url(remote_url)}")

    def commit_and_push(self, remote_url: str, branch_name: str, message: str) -> str:
        """
        Fresh branch, stage all, commit, push. The branch is pushed even when
        there was nothing to commit. Returns the short hash of the pushed head.
        """
        self.create_branch(branch_name)
        self.commit_changes(message)
        self.push(branch_name, remote_url)
        return self.repo.head.commit.hexsha[:8]

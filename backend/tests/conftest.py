"""Shared fixtures: fake collaborators and throwaway git repositories."""

from __future__ import annotations

import os
import socket
import threading
from pathlib import Path
from typing import Optional

import pytest
from git import Repo

from repair_agent.graph.nodes import Services
from repair_agent.models import AnalysisResult, BugType, ExecutionResult, FixProposal
from repair_agent.services.patch_applier import write_file
from repair_agent.services.workspace import Workspace


@pytest.fixture(autouse=True)
def git_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    """Commits made in tests need an author even without a global git config."""
    for var in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(var, "Repair Agent Tests")
    for var in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(var, "tests@example.com")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


# -----------------------------
# Fake collaborators
# -----------------------------


class FakeRepository:
    """Stands in for RepositoryManager; clone creates a directory, push is recorded."""

    def __init__(self, root: Path, tree: str = "src/\n  app.py\ntests/\n  test_app.py",
                 clone_error: Optional[Exception] = None, publish_error: Optional[Exception] = None):
        self.workspace = Workspace(str(root))
        self.tree = tree
        self.clone_error = clone_error
        self.publish_error = publish_error
        self.released: list[str] = []
        self.writes: list[tuple[str, str]] = []
        self.published: list[tuple[str, str, str]] = []

    def allocate(self, team_name: str) -> str:
        return self.workspace.allocate(team_name)

    def release(self, local_path: Optional[str]) -> None:
        self.released.append(local_path)
        self.workspace.release(local_path)

    def clone(self, url: str, work_dir_hint: str) -> str:
        if self.clone_error:
            raise self.clone_error
        os.makedirs(work_dir_hint, exist_ok=True)
        return work_dir_hint

    def render_tree(self, local_path: str) -> str:
        return self.tree

    def write_file(self, local_path: str, relative_file_path: str, content: str) -> str:
        rel = write_file(local_path, relative_file_path, content)
        self.writes.append((rel, content))
        return rel

    def commit_and_push(self, local_path: str, remote_url: str, branch_name: str, message: str) -> str:
        if self.publish_error:
            raise self.publish_error
        self.published.append((remote_url, branch_name, message))
        return "abc12345"


class FakeAnalyzer:
    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None):
        self.result = result or AnalysisResult(
            language="Python", install_cmd="none", test_cmd="pytest", test_score=80,
        )
        self.error = error
        self.trees: list[str] = []

    def analyze(self, tree: str) -> AnalysisResult:
        self.trees.append(tree)
        if self.error:
            raise self.error
        return self.result


class ScriptedTestRunner:
    """Returns pass/fail outcomes in order; the last outcome repeats."""

    __test__ = False

    def __init__(self, outcomes: list[bool]):
        self.outcomes = list(outcomes)
        self.calls = 0

    def run(self, repo_path: str, install_cmd: str, test_cmd: str) -> ExecutionResult:
        passed = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        output = "1 passed" if passed else f"FAILED tests/test_app.py::test_add (run {self.calls})"
        return ExecutionResult(passed=passed, output=output, return_code=0 if passed else 1)


class FakeFixGenerator:
    def __init__(self, file_path: str = "src/app.py", bug_type: BugType = BugType.LOGIC):
        self.file_path = file_path
        self.bug_type = bug_type
        self.calls: list[tuple[str, str]] = []

    def propose_fix(self, tree: str, error_log: str) -> FixProposal:
        self.calls.append((tree, error_log))
        n = len(self.calls)
        return FixProposal(
            file_path=self.file_path,
            new_file_contents=f"def add(a, b):\n    return a + b  # fix {n}\n",
            bug_type=self.bug_type,
            approx_line=2,
            commit_message=f"Fix add (attempt {n})",
        )


@pytest.fixture
def make_services(tmp_path: Path):
    """Build a Services bundle of fakes; keyword args override individual fakes."""

    def _make(outcomes: list[bool] = None, **overrides) -> Services:
        return Services(
            repository=overrides.get("repository") or FakeRepository(tmp_path / "runs"),
            analyzer=overrides.get("analyzer") or FakeAnalyzer(),
            test_runner=overrides.get("test_runner") or ScriptedTestRunner(outcomes or [True]),
            fix_generator=overrides.get("fix_generator") or FakeFixGenerator(),
        )

    return _make


# -----------------------------
# Real git repositories
# -----------------------------


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """A bare repository with one commit, usable as a clone/push remote."""
    seed_path = tmp_path / "seed"
    seed = Repo.init(seed_path)
    (seed_path / "app.py").write_text("def add(a, b):\n    return a - b\n")
    (seed_path / "README.md").write_text("# demo\n")
    seed.index.add(["app.py", "README.md"])
    seed.index.commit("initial commit")

    bare_path = tmp_path / "remote.git"
    Repo.clone_from(str(seed_path), str(bare_path), bare=True)
    return bare_path


@pytest.fixture
def silent_remote():
    """An http endpoint that accepts connections and never answers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    held: list[socket.socket] = []
    stop = threading.Event()

    def accept_forever() -> None:
        server.settimeout(0.2)
        while not stop.is_set():
            try:
                conn, _ = server.accept()
            except OSError:
                continue
            held.append(conn)

    thread = threading.Thread(target=accept_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.getsockname()[1]}/repo.git"

    stop.set()
    thread.join(timeout=5)
    for conn in held:
        conn.close()
    server.close()

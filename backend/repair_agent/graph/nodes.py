import asyncio
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from langchain_core.runnables import RunnableConfig

from repair_agent.config import settings
from repair_agent.errors import (
    AnalysisError, FixProposalError, PublishError,
)
from repair_agent.graph.state import RunState
from repair_agent.models import (
    AgentEvent, AnalysisResult, ExecutionResult, FinalStatus, FixProposal, FixRecord, FixStatus, RunPhase,
)
from repair_agent.services.build_analyzer import BuildAnalyzer
from repair_agent.services.fix_generator import FixGenerator
from repair_agent.services.git_ops import build_branch_name, redact_url
from repair_agent.services.repository import RepositoryManager
from repair_agent.services.test_runner import TestRunner

logger = logging.getLogger(__name__)


# ── Collaborator interfaces ────────────────────────────────

class Analyzer(Protocol):
    def analyze(self, tree: str) -> AnalysisResult: ...


class FixOracle(Protocol):
    def propose_fix(self, tree: str, error_log: str) -> FixProposal: ...


class Executor(Protocol):
    def run(self, repo_path: str, install_cmd: str, test_cmd: str) -> ExecutionResult: ...


@dataclass
class Services:
    """Collaborators used by the nodes. Override via config["configurable"]["services"]."""
    repository: RepositoryManager = field(default_factory=RepositoryManager)
    analyzer: Analyzer = field(default_factory=BuildAnalyzer)
    test_runner: Executor = field(default_factory=TestRunner)
    fix_generator: FixOracle = field(default_factory=FixGenerator)


default_services = Services()


def _configurable(config: Optional[RunnableConfig]) -> Dict[str, Any]:
    if not config:
        return {}
    return config.get("configurable", {}) or {}


def get_services(config: Optional[RunnableConfig]) -> Services:
    return _configurable(config).get("services") or default_services


async def emit_event(
    config: Optional[RunnableConfig],
    phase: RunPhase,
    message: str,
    data: Dict[str, Any] = None,
    event_type: str = "log",
):
    """Log a progress message and hand it to the emit callback, if any."""
    logger.info(f"[{phase.value}] {message}")
    emit = _configurable(config).get("emit")
    if emit:
        await emit(AgentEvent(event_type=event_type, phase=phase, message=message, data=data))


async def _call(fn: Callable, *args, timeout: Optional[float] = None):
    """Run a blocking collaborator call off the event loop, optionally time-boxed."""
    return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)


def _next_fix_id(fixes: list[FixRecord]) -> int:
    now_ms = int(time.time() * 1000)
    if fixes:
        return max(now_ms, fixes[-1].id + 1)
    return now_ms


# ── Nodes ──────────────────────────────────────────────────

async def setup_node(state: RunState, config: RunnableConfig) -> RunState:
    """Clones the repository into this run's working directory."""
    services = get_services(config)
    work_dir = _configurable(config).get("work_dir") or services.repository.allocate(state["team_name"])

    await emit_event(config, RunPhase.SETUP, f"Cloning {redact_url(state['repo_url'])}...", event_type="phase_change")
    # Bounded by the clone itself, which kills git on timeout
    repo_path = await _call(services.repository.clone, state["repo_url"], work_dir)

    await emit_event(config, RunPhase.SETUP, f"Cloned to {repo_path}")
    return {"repo_path": repo_path}


async def analyze_node(state: RunState, config: RunnableConfig) -> RunState:
    """Snapshots the file tree and asks the analyzer how to install and test."""
    services = get_services(config)

    await emit_event(config, RunPhase.ANALYZE, "Analyzing repository structure...", event_type="phase_change")
    structure = await _call(services.repository.render_tree, state["repo_path"])
    try:
        analysis = await _call(services.analyzer.analyze, structure, timeout=settings.llm_timeout * 2)
    except asyncio.TimeoutError as e:
        raise AnalysisError("Build analyzer timed out") from e

    await emit_event(
        config, RunPhase.ANALYZE,
        f"Detected: language={analysis.language}, install={analysis.install_cmd!r}, test={analysis.test_cmd!r}",
        data=analysis.model_dump(),
    )
    return {
        "repo_structure": structure,
        "install_cmd": analysis.install_cmd,
        "test_cmd": analysis.test_cmd,
        "test_score": analysis.test_score,
    }


async def test_node(state: RunState, config: RunnableConfig) -> RunState:
    """Runs install + tests. A failure is recorded in state, never raised."""
    services = get_services(config)
    iteration = state.get("iterations", 0)

    await emit_event(config, RunPhase.TEST, f"Running tests (iteration {iteration})...", event_type="phase_change")
    result = await _call(services.test_runner.run, state["repo_path"], state["install_cmd"], state["test_cmd"])

    await emit_event(
        config, RunPhase.TEST,
        f"Test result: {'PASSED' if result.passed else 'FAILED'}",
        data={"output": result.output[:2000], "timed_out": result.timed_out},
        event_type="test_result",
    )

    if result.passed:
        return {"final_status": FinalStatus.PASSED.value, "error_log": ""}
    return {"final_status": FinalStatus.FAILED.value, "error_log": result.output, "iterations": 1}


async def fix_node(state: RunState, config: RunnableConfig) -> RunState:
    """Asks the fix oracle for one file rewrite and applies it by overwrite."""
    services = get_services(config)

    await emit_event(
        config, RunPhase.FIX,
        f"--- Iteration {state['iterations']}/{settings.max_iterations} --- generating fix...",
        event_type="phase_change",
    )
    try:
        proposal = await _call(
            services.fix_generator.propose_fix, state["repo_structure"], state["error_log"],
            timeout=settings.llm_timeout * 2,
        )
    except asyncio.TimeoutError as e:
        raise FixProposalError("Fix oracle timed out") from e

    rel_path = await _call(
        services.repository.write_file, state["repo_path"], proposal.file_path, proposal.new_file_contents,
    )

    record = FixRecord(
        id=_next_fix_id(state.get("fixes", [])),
        file=rel_path,
        bug_type=proposal.bug_type,
        line=proposal.approx_line,
        commit_message=proposal.commit_message,
        status=FixStatus.FIXED,
    )
    await emit_event(
        config, RunPhase.FIX,
        f"Applied {record.bug_type.value} fix to {record.file}",
        data=record.model_dump(mode="json"),
        event_type="fix_applied",
    )
    return {"fixes": [record]}


async def publish_node(state: RunState, config: RunnableConfig) -> RunState:
    """Commits everything on a fresh branch and pushes it."""
    services = get_services(config)
    fixes = state.get("fixes", [])
    branch_name = build_branch_name(state["team_name"], state["leader_name"])

    message = f"Applied {len(fixes)} automated fix(es)"
    if fixes:
        message += "\n\n" + "\n".join(f"- {f.file}: {f.commit_message}" for f in fixes)

    await emit_event(config, RunPhase.PUBLISH, f"Publishing branch {branch_name}...", event_type="phase_change")
    try:
        commit_hash = await _call(
            services.repository.commit_and_push, state["repo_path"], state["repo_url"], branch_name, message,
            timeout=settings.git_timeout * 2,
        )
    except PublishError:
        raise
    except asyncio.TimeoutError as e:
        raise PublishError(
            f"Publish timed out after {settings.git_timeout * 2}s",
            final_status=state.get("final_status"), fixes=fixes,
        ) from e
    except Exception as e:
        raise PublishError(
            f"Publish failed: {redact_url(str(e))}",
            final_status=state.get("final_status"), fixes=fixes,
        ) from e

    await emit_event(config, RunPhase.PUBLISH, f"Pushed {branch_name} ({commit_hash})")

    return {"branch_name": branch_name, "final_status": state.get("final_status")}

"""
Agent Orchestrator — Runs the repair graph for one repository and reports the result.
"""

import asyncio
import json
import math
import os
import time
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from repair_agent.config import settings
from repair_agent.graph.nodes import Services, default_services
from repair_agent.graph.state import initial_state
from repair_agent.graph.workflow import agent_graph
from repair_agent.models import (
    AgentEvent, FinalStatus, RunPhase, RunReport, RunRequest,
)
from repair_agent.scoring import calculate_score

logger = logging.getLogger(__name__)

# Type alias for event callback
EventCallback = Callable[[AgentEvent], Awaitable[None]]


class Agent:
    """
    The autonomous repair agent.
    Orchestrates: clone → analyze → test → fix → test ... → publish.
    Iterates until tests pass or the iteration budget is spent.
    """

    def __init__(self, services: Optional[Services] = None, graph=None):
        self.services = services or default_services
        self.graph = graph or agent_graph

    async def run_repair(
        self,
        repo_url: str,
        team_name: str,
        leader_name: str,
        emit: Optional[EventCallback] = None,
    ) -> RunReport:
        """
        Execute the full pipeline and return the report.
        Fatal errors (clone, analysis, fix oracle, publish) propagate; the
        run's working directory is released before they do.
        """
        request = RunRequest(repo_url=repo_url, team_name=team_name, leader_name=leader_name)
        start_time = time.time()

        work_dir = self.services.repository.allocate(request.team_name)
        config = {
            "configurable": {"services": self.services, "emit": emit, "work_dir": work_dir},
            "recursion_limit": 2 * settings.max_iterations + 10,
        }

        try:
            final_state = await self.graph.ainvoke(
                initial_state(request.repo_url, request.team_name, request.leader_name),
                config=config,
            )
        except asyncio.CancelledError:
            logger.warning(f"Run for {request.team_name} cancelled")
            self.services.repository.release(work_dir)
            raise
        except Exception as e:
            logger.exception("Agent run failed")
            await self._emit(emit, RunPhase.FAILED, f"Agent error: {e}", event_type="error")
            self.services.repository.release(work_dir)
            raise

        end_time = time.time()
        report = build_report(final_state, start_time, end_time)

        if settings.write_results_json:
            self._write_results_json(report, work_dir)
        if not settings.keep_workspace:
            self.services.repository.release(work_dir)

        await self._emit(
            emit, RunPhase.DONE,
            f"Agent run complete! Status: {report.status.value}, "
            f"Fixes: {report.total_fixes}, Time: {report.time_taken}",
            data=report.model_dump(mode="json"),
            event_type="run_complete",
        )
        return report

    def _write_results_json(self, report: RunReport, work_dir: str):
        """Write the report beside the run directory so it outlives it."""
        results_path = f"{work_dir.rstrip(os.sep)}.results.json"
        try:
            with open(results_path, "w", encoding="utf-8") as f:
                json.dump(report.model_dump(mode="json"), f, indent=2)
            logger.info(f"Written results to {results_path}")
        except OSError as e:
            logger.error(f"Failed to write {results_path}: {e}")

    async def _emit(
        self,
        callback: Optional[EventCallback],
        phase: RunPhase,
        message: str,
        data: Optional[dict] = None,
        event_type: str = "log",
    ):
        if callback:
            await callback(AgentEvent(event_type=event_type, phase=phase, message=message, data=data))
        logger.info(f"[{phase.value}] {message}")


def format_duration(seconds: float) -> str:
    whole = int(math.floor(seconds))
    return f"{whole // 60}m {whole % 60}s"


def build_report(state: Mapping[str, Any], start_time: float, end_time: float) -> RunReport:
    """Terminal state + score + timing."""
    duration = round(end_time - start_time, 2)
    fixes = list(state.get("fixes") or [])
    final_status = state.get("final_status") or FinalStatus.FAILED.value
    score = calculate_score(state, duration)

    return RunReport(
        repo_url=state["repo_url"],
        team_name=state["team_name"],
        leader_name=state["leader_name"],
        branch_name=state.get("branch_name", ""),
        repo_path=state.get("repo_path", ""),
        install_cmd=state.get("install_cmd", ""),
        test_cmd=state.get("test_cmd", ""),
        test_score=state.get("test_score", 0),
        error_log=state.get("error_log", ""),
        iterations=state.get("iterations", 0),
        fixes=fixes,
        final_status=final_status,
        status=score.status,
        score=score,
        total_failures=len(fixes) + (1 if final_status == FinalStatus.FAILED.value else 0),
        total_fixes=len(fixes),
        duration_seconds=duration,
        time_taken=format_duration(duration),
        start_time=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(start_time)),
        end_time=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(end_time)),
    )

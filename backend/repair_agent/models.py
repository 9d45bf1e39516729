"""
Pydantic data models for the repair agent.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from enum import Enum
from datetime import datetime, timezone


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Enums ──────────────────────────────────────────────────

class RunPhase(str, Enum):
    SETUP = "setup"
    ANALYZE = "analyze"
    TEST = "test"
    FIX = "fix"
    PUBLISH = "publish"
    DONE = "done"
    FAILED = "failed"


class FinalStatus(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"


class RunStatus(str, Enum):
    """Status shown to the consumer of a report."""
    PASSED = "PASSED"
    FAILED = "FAILED"
    NO_TESTS = "NO_TESTS"


class BugType(str, Enum):
    LINTING = "LINTING"
    SYNTAX = "SYNTAX"
    LOGIC = "LOGIC"
    TYPE_ERROR = "TYPE_ERROR"
    IMPORT = "IMPORT"
    INDENTATION = "INDENTATION"


class FixStatus(str, Enum):
    FIXED = "Fixed"
    FAILED = "Failed"


# ── Fix history ────────────────────────────────────────────

class FixRecord(BaseModel):
    """One applied patch. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Creation timestamp in ms, strictly increasing within a run")
    file: str
    bug_type: BugType
    line: int = 0
    commit_message: str = ""
    status: FixStatus = FixStatus.FIXED


# ── Oracle contracts ───────────────────────────────────────

class AnalysisResult(BaseModel):
    """Build analyzer verdict. Accepts camelCase keys from the oracle."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    language: str = Field(..., min_length=1)
    install_cmd: str = Field(..., description="'none' when nothing needs installing")
    test_cmd: str = Field(..., min_length=1)
    test_score: float = Field(..., ge=0, le=100)


class FixProposal(BaseModel):
    """A single-file replacement proposed by the fix oracle."""
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., min_length=1, alias="file")
    new_file_contents: str = Field(..., alias="newCode")
    bug_type: BugType = Field(..., alias="bugType")
    approx_line: int = Field(0, alias="line")
    commit_message: str = Field(..., min_length=1, alias="commitMsg")

    @field_validator("approx_line")
    @classmethod
    def _clamp_line(cls, v: int) -> int:
        # Advisory only; unknown lines come back as -1
        return max(v, 0)


class ExecutionResult(BaseModel):
    """Outcome of running install + test commands."""
    passed: bool
    output: str = ""
    return_code: Optional[int] = None
    timed_out: bool = False


# ── Scoring / reporting ────────────────────────────────────

class ScoreBreakdown(BaseModel):
    """Scoring breakdown for the run."""
    base_score: int = 100
    speed_bonus: int = 0        # +10 if < 5 minutes
    efficiency_penalty: int = 0  # -2 per fix over 20
    final_score: int = 100
    status: RunStatus = RunStatus.PASSED


class RunRequest(BaseModel):
    """Input for a repair run."""
    repo_url: str = Field(..., min_length=1, description="Repository URL to repair")
    team_name: str = Field(..., min_length=1, description="Team name for branch naming")
    leader_name: str = Field(..., min_length=1, description="Team leader name for branch naming")


class RunReport(BaseModel):
    """Terminal run state plus score and timing."""
    repo_url: str
    team_name: str
    leader_name: str
    branch_name: str = ""
    repo_path: str = ""
    install_cmd: str = ""
    test_cmd: str = ""
    test_score: float = 0
    error_log: str = ""
    iterations: int = 0
    fixes: list[FixRecord] = []
    final_status: FinalStatus = FinalStatus.FAILED
    status: RunStatus = RunStatus.FAILED
    score: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    total_failures: int = 0
    total_fixes: int = 0
    duration_seconds: float = 0.0
    time_taken: str = ""
    start_time: str = ""
    end_time: str = ""


# ── Progress events ────────────────────────────────────────

class AgentEvent(BaseModel):
    """Progress event handed to the optional emit callback."""
    event_type: str  # log, phase_change, test_result, fix_applied, run_complete, error
    phase: Optional[RunPhase] = None
    message: str = ""
    data: Optional[dict] = None
    timestamp: str = Field(default_factory=_utcnow)

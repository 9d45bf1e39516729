from typing import Annotated, Any, Mapping, TypedDict

from repair_agent.models import FixRecord


# ── Field reducers ─────────────────────────────────────────
# LangGraph applies these when a node returns a partial update.
# merge_state applies the same functions outside the graph.

def replace(current: Any, update: Any) -> Any:
    """Last write wins."""
    return update


def append_fixes(current: list[FixRecord], update: list[FixRecord]) -> list[FixRecord]:
    """Concatenate new fix records onto the history. Never truncates."""
    return list(current or []) + list(update or [])


def add_iterations(current: int, update: int) -> int:
    """Add an iteration delta to the running total."""
    return (current or 0) + (update or 0)


class RunState(TypedDict, total=False):
    """
    State threaded through the repair workflow.
    Each node returns a partial dict that is merged field by field.
    """
    # Run identifiers (set once at start)
    repo_url: str
    team_name: str
    leader_name: str

    # Working copy
    repo_path: str
    branch_name: str

    # Analyzer verdict (set once by analyze)
    repo_structure: str
    install_cmd: str
    test_cmd: str
    test_score: float

    # Latest test outcome
    error_log: str
    final_status: str

    # Accumulators
    fixes: Annotated[list[FixRecord], append_fixes]
    iterations: Annotated[int, add_iterations]


FIELD_REDUCERS = {
    "fixes": append_fixes,
    "iterations": add_iterations,
}


def reducer_for(field: str):
    return FIELD_REDUCERS.get(field, replace)


def merge_state(state: Mapping[str, Any], update: Mapping[str, Any]) -> RunState:
    """Apply a partial update to a state, returning a new state.

    Scalars are replaced, ``fixes`` is appended to and ``iterations`` is
    accumulated. The input state is not modified.
    """
    merged: dict[str, Any] = dict(state)
    for field, value in update.items():
        merged[field] = reducer_for(field)(merged.get(field), value)
    return merged  # type: ignore[return-value]


def initial_state(repo_url: str, team_name: str, leader_name: str) -> RunState:
    """Fresh state with every accumulator at its zero value."""
    return {
        "repo_url": repo_url,
        "team_name": team_name,
        "leader_name": leader_name,
        "repo_path": "",
        "branch_name": "",
        "repo_structure": "",
        "install_cmd": "",
        "test_cmd": "",
        "test_score": 0,
        "error_log": "",
        "final_status": "",
        "fixes": [],
        "iterations": 0,
    }

from typing import Any, Mapping

from repair_agent.models import FinalStatus, RunStatus, ScoreBreakdown

BASE_SCORE = 100
FAILED_PENALTY = 50
NO_TESTS_PENALTY = 80
SPEED_BONUS = 10
SPEED_BONUS_SECONDS = 300
FREE_FIXES = 20
PENALTY_PER_EXTRA_FIX = 2


def no_tests_found(test_cmd: str, test_score: float) -> bool:
    cmd = (test_cmd or "").lower()
    return "no test" in cmd or "none" in cmd or test_score == 0


def calculate_score(state: Mapping[str, Any], duration_seconds: float) -> ScoreBreakdown:
    """Score a terminal run state. Pure; the final score is floored at 0 only."""
    no_tests = no_tests_found(state.get("test_cmd", ""), state.get("test_score", 0))
    failed = state.get("final_status") != FinalStatus.PASSED.value

    base_score = BASE_SCORE
    if failed:
        base_score -= FAILED_PENALTY
    if no_tests:
        base_score -= NO_TESTS_PENALTY

    speed_bonus = SPEED_BONUS if duration_seconds < SPEED_BONUS_SECONDS else 0
    fix_count = len(state.get("fixes") or [])
    efficiency_penalty = PENALTY_PER_EXTRA_FIX * max(0, fix_count - FREE_FIXES)
    final_score = max(0, base_score + speed_bonus - efficiency_penalty)

    if no_tests:
        status = RunStatus.NO_TESTS
    else:
        status = RunStatus.PASSED if not failed else RunStatus.FAILED

    return ScoreBreakdown(
        base_score=base_score,
        speed_bonus=speed_bonus,
        efficiency_penalty=efficiency_penalty,
        final_score=final_score,
        status=status,
    )

"""
Fix Generator — Asks the oracle for one file's complete replacement.
"""

import re
import logging
from typing import Optional

from pydantic import ValidationError

from repair_agent.errors import FixProposalError, OracleError
from repair_agent.models import BugType, FixProposal
from repair_agent.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

# The tail of a test log carries the failure summary
MAX_ERROR_LOG_CHARS = 12000

SYSTEM_PROMPT = (
    "You are an expert autonomous CI/CD agent. A test suite failed. Identify the "
    "single file in the repository that caused the failure and rewrite it completely "
    "so the tests pass. Respond with a single JSON object and nothing else."
)

_CODE_BLOCK_RE = re.compile(r"^```[\w+-]*\n(.*?)\n?```\s*$", re.DOTALL)


class FixGenerator:
    """Turns an error log and a file tree into a validated FixProposal."""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    def propose_fix(self, tree: str, error_log: str) -> FixProposal:
        """
        Raises FixProposalError if the oracle fails or its reply is malformed.
        Nothing is written to disk here.
        """
        try:
            raw = self.client.complete_json(SYSTEM_PROMPT, self._build_prompt(tree, error_log))
        except OracleError as e:
            raise FixProposalError(f"Fix oracle failed: {e}") from e

        try:
            proposal = FixProposal.model_validate(raw)
        except ValidationError as e:
            raise FixProposalError(f"Fix oracle returned an invalid proposal: {e}") from e

        proposal = proposal.model_copy(
            update={"new_file_contents": self._extract_code(proposal.new_file_contents)}
        )
        logger.info(
            f"[Fixer] {proposal.bug_type.value} in {proposal.file_path} "
            f"(line ~{proposal.approx_line})"
        )
        return proposal

    def _build_prompt(self, tree: str, error_log: str) -> str:
        if len(error_log) > MAX_ERROR_LOG_CHARS:
            error_log = "... (truncated)\n" + error_log[-MAX_ERROR_LOG_CHARS:]
        bug_types = ", ".join(b.value for b in BugType)
        return f"""## Repository Structure
```
{tree}
```

## Error Logs
```
{error_log}
```

## Instructions
1. Determine the EXACT file from the directory structure that caused the error
2. Rewrite the complete, corrected contents of that one file
3. Return a JSON object with exactly these keys:
   - "file": the file path relative to the repository root
   - "newCode": the complete new contents of the file
   - "bugType": one of {bug_types}
   - "line": approximate line number of the bug
   - "commitMsg": a one-line commit message describing the fix
"""

    def _extract_code(self, contents: str) -> str:
        """Unwrap contents the model wrapped in a single code block."""
        match = _CODE_BLOCK_RE.match(contents.strip())
        if match:
            return match.group(1) + "\n"
        return contents

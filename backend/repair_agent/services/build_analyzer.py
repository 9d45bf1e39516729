"""
Build Analyzer — Asks the oracle how to install and test an unknown repository.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from repair_agent.errors import AnalysisError, OracleError
from repair_agent.models import AnalysisResult
from repair_agent.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert DevOps architect. Given the file structure of a cloned "
    "repository, determine its primary language, the exact shell command that "
    "installs its dependencies and the exact shell command that runs its test suite. "
    "Respond with a single JSON object and nothing else."
)


class BuildAnalyzer:
    """Proposes install/test commands and a test-quality score for a file tree."""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    def analyze(self, tree: str) -> AnalysisResult:
        """
        Returns a validated AnalysisResult.
        Raises AnalysisError if the oracle fails or its reply is malformed.
        """
        try:
            raw = self.client.complete_json(SYSTEM_PROMPT, self._build_prompt(tree))
        except OracleError as e:
            raise AnalysisError(f"Build analyzer failed: {e}") from e

        try:
            analysis = AnalysisResult.model_validate(raw)
        except ValidationError as e:
            raise AnalysisError(f"Build analyzer returned an invalid analysis: {e}") from e

        logger.info(f"[Analyzer] Language: {analysis.language} | Test Cmd: {analysis.test_cmd}")
        return analysis

    def _build_prompt(self, tree: str) -> str:
        return f"""## Repository Structure
```
{tree}
```

## Instructions
Return a JSON object with exactly these keys:
- "language": primary programming language (e.g. Python, Node, Go)
- "installCmd": command to install dependencies, or "none" if nothing is needed
- "testCmd": command to run the tests (e.g. "pytest", "npm test"); use "echo No tests found" if there are none
- "testScore": number 0-100 rating test coverage from the files present
"""

"""Tests for the LLM client and the response validation of both oracles."""

from __future__ import annotations

import json

import httpx
import pytest

from repair_agent.errors import AnalysisError, FixProposalError, OracleError
from repair_agent.models import BugType
from repair_agent.services.build_analyzer import BuildAnalyzer
from repair_agent.services.fix_generator import MAX_ERROR_LOG_CHARS, FixGenerator
from repair_agent.services.llm_client import LLMClient, parse_json_object


class StubClient:
    """Returns a canned reply (or raises) instead of calling the API."""

    def __init__(self, reply=None, error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    def complete_json(self, system_prompt: str, user_prompt: str) -> dict:
        self.prompts.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.reply


def _chat_response(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# -----------------------------
# LLM client
# -----------------------------


class TestLLMClient:
    def test_posts_chat_request_and_parses_json(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_response('{"language": "Go"}'))

        client = LLMClient(api_key="k", api_url="https://llm.test/v1/chat", model="m",
                           transport=httpx.MockTransport(handler))

        assert client.complete_json("sys", "user") == {"language": "Go"}
        assert seen["auth"] == "Bearer k"
        assert seen["body"]["model"] == "m"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]

    def test_http_error_raises_oracle_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(429, text="rate limited"))
        client = LLMClient(api_key="k", api_url="https://llm.test/v1/chat", transport=transport)

        with pytest.raises(OracleError, match="429"):
            client.complete_json("sys", "user")

    def test_missing_choices_raises_oracle_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        client = LLMClient(api_key="k", api_url="https://llm.test/v1/chat", transport=transport)

        with pytest.raises(OracleError):
            client.complete_json("sys", "user")


class TestParseJsonObject:
    def test_plain_object(self) -> None:
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self) -> None:
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("content", ["", "   ", "not json", "[1, 2]", None])
    def test_rejects_non_objects(self, content) -> None:
        with pytest.raises(OracleError):
            parse_json_object(content)


# -----------------------------
# Build analyzer
# -----------------------------


class TestBuildAnalyzer:
    def test_valid_camel_case_reply(self) -> None:
        client = StubClient({"language": "Python", "installCmd": "pip install -r requirements.txt",
                             "testCmd": "pytest", "testScore": 72})
        result = BuildAnalyzer(client).analyze("src/\n  app.py")

        assert result.install_cmd == "pip install -r requirements.txt"
        assert result.test_cmd == "pytest"
        assert result.test_score == 72
        assert "src/\n  app.py" in client.prompts[0][1]

    @pytest.mark.parametrize(
        "reply",
        [
            {"language": "Python", "installCmd": "none", "testCmd": "pytest"},
            {"language": "Python", "installCmd": "none", "testCmd": "pytest", "testScore": 140},
            {"language": "Python", "installCmd": "none", "testCmd": "", "testScore": 50},
            {"language": "Python", "installCmd": "none", "testCmd": "pytest", "testScore": "lots"},
        ],
    )
    def test_invalid_reply_rejected(self, reply: dict) -> None:
        with pytest.raises(AnalysisError):
            BuildAnalyzer(StubClient(reply)).analyze("tree")

    def test_transport_failure_becomes_analysis_error(self) -> None:
        with pytest.raises(AnalysisError):
            BuildAnalyzer(StubClient(error=OracleError("down"))).analyze("tree")


# -----------------------------
# Fix generator
# -----------------------------


VALID_FIX = {
    "file": "src/app.py",
    "newCode": "def add(a, b):\n    return a + b\n",
    "bugType": "LOGIC",
    "line": 2,
    "commitMsg": "Fix addition operator",
}


class TestFixGenerator:
    def test_valid_reply(self) -> None:
        client = StubClient(dict(VALID_FIX))
        proposal = FixGenerator(client).propose_fix("src/\n  app.py", "AssertionError: 3 != -1")

        assert proposal.file_path == "src/app.py"
        assert proposal.bug_type == BugType.LOGIC
        assert proposal.approx_line == 2
        assert proposal.new_file_contents == VALID_FIX["newCode"]
        prompt = client.prompts[0][1]
        assert "src/\n  app.py" in prompt
        assert "AssertionError: 3 != -1" in prompt

    def test_code_fence_unwrapped(self) -> None:
        reply = dict(VALID_FIX, newCode="```python\nprint('hi')\n```")
        proposal = FixGenerator(StubClient(reply)).propose_fix("tree", "log")
        assert proposal.new_file_contents == "print('hi')\n"

    def test_unknown_line_clamped_to_zero(self) -> None:
        proposal = FixGenerator(StubClient(dict(VALID_FIX, line=-1))).propose_fix("tree", "log")
        assert proposal.approx_line == 0
        assert proposal.file_path == "src/app.py"

    def test_long_error_log_keeps_tail(self) -> None:
        client = StubClient(dict(VALID_FIX))
        log = "noise\n" * 5000 + "FINAL ERROR LINE"
        FixGenerator(client).propose_fix("tree", log)

        prompt = client.prompts[0][1]
        assert "FINAL ERROR LINE" in prompt
        assert len(prompt) < MAX_ERROR_LOG_CHARS + 2000

    @pytest.mark.parametrize(
        "reply",
        [
            dict(VALID_FIX, bugType="PERFORMANCE"),
            dict(VALID_FIX, file=""),
            {k: v for k, v in VALID_FIX.items() if k != "newCode"},
            dict(VALID_FIX, line="near the top"),
            dict(VALID_FIX, commitMsg=""),
        ],
    )
    def test_invalid_reply_rejected(self, reply: dict) -> None:
        with pytest.raises(FixProposalError):
            FixGenerator(StubClient(reply)).propose_fix("tree", "log")

    def test_transport_failure_becomes_fix_error(self) -> None:
        with pytest.raises(FixProposalError):
            FixGenerator(StubClient(error=OracleError("down"))).propose_fix("tree", "log")

"""
LLM Client — OpenAI-compatible chat completions returning a JSON object.
"""

import json
import re
import logging
from typing import Optional

import httpx

from repair_agent.config import settings
from repair_agent.errors import OracleError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*?)\n?```\s*$", re.DOTALL)


class LLMClient:
    """Thin client for a chat completions endpoint in JSON mode."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.api_url = api_url or settings.llm_api_url
        self.model = model or settings.llm_model
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.timeout = timeout or settings.llm_timeout
        self.transport = transport

    def complete_json(self, system_prompt: str, user_prompt: str) -> dict:
        """
        Send one system + user exchange and parse the reply as a JSON object.
        Raises OracleError on transport failures or a non-object reply.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.api_url, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM API HTTP error {e.response.status_code}: {e.response.text[:500]}")
            raise OracleError(f"LLM API returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"LLM API call failed: {e}")
            raise OracleError(f"LLM API call failed: {e}") from e
        except ValueError as e:
            raise OracleError("LLM API returned a non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise OracleError("LLM API response has no message content") from e

        return parse_json_object(content)


def parse_json_object(content: Optional[str]) -> dict:
    """Parse a model reply into a dict, tolerating a wrapping ```json fence."""
    if not content or not content.strip():
        raise OracleError("LLM returned an empty reply")

    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise OracleError(f"LLM reply is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise OracleError(f"LLM reply is a JSON {type(parsed).__name__}, expected an object")
    return parsed

"""
Configuration management for the repair agent.
Loads settings from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
import os


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # GitHub (read at push time only)
    github_token: str = ""

    # Oracle provider (any OpenAI-compatible chat completions endpoint)
    llm_api_key: str = ""
    llm_api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    llm_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    llm_temperature: float = 0.0
    llm_timeout: float = 120.0

    # Agent behaviour
    max_iterations: int = 3
    workspace_root: str = os.path.join(os.path.expanduser("~"), ".repair_agent", "runs")
    keep_workspace: bool = True
    write_results_json: bool = True

    # Timeouts (seconds)
    clone_timeout: int = 300
    install_timeout: int = 600
    test_timeout: int = 300
    git_timeout: int = 120

    # File tree rendering
    tree_max_depth: int = 4
    tree_max_entries: int = 400

    model_config = {
        "env_file": os.path.join(os.path.dirname(__file__), "..", "..", ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()

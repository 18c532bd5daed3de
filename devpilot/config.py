"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """devpilot configuration. All values come from environment variables."""

    # Completion provider
    llm_provider: str = Field(default="deepseek")
    provider_timeout_seconds: float = Field(default=30.0, gt=0)

    # DeepSeek (OpenAI-compatible chat completions)
    deepseek_api_key: str = Field(default="")
    deepseek_base_url: str = Field(default="https://api.deepseek.com/v1")
    deepseek_chat_model: str = Field(default="deepseek-chat")
    deepseek_coder_model: str = Field(default="deepseek-coder")

    # Anthropic
    anthropic_api_key: str = Field(default="")
    anthropic_model: str = Field(default="claude-sonnet-4-5-20250929")

    # GitHub
    github_token: str = Field(default="")

    # Conversation memory
    memory_dir: Path = Field(default=Path("data/memory"))
    memory_file: str = Field(default="memory.json")
    memory_file_prefix: str = Field(default="memory_")
    memory_layout: str = Field(default="shared")
    memory_max_messages: int = Field(default=20, ge=1, le=1000)
    memory_max_log_entries: int = Field(default=100, ge=1)
    memory_lock_timeout_seconds: float = Field(default=30.0, gt=0)
    memory_lock_poll_seconds: float = Field(default=0.05, gt=0)

    # Chat
    chat_context_messages: int = Field(default=4, ge=0)

    # Local directory that extracted files are written into
    workspace_dir: Path = Field(default=Path("."))

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def has_provider_key(self) -> bool:
        """True when the configured provider has an API key."""
        if self.llm_provider == "anthropic":
            return bool(self.anthropic_api_key)
        return bool(self.deepseek_api_key)


settings = Settings()

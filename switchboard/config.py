"""switchboard/config.py

Runtime configuration loaded from environment variables / .env file.

Configure via environment variables:
  OLLAMA_HOST            Ollama endpoint used by the model service
  OLLAMA_MODEL           model tag used for planning turns
  CONTEXT_BUDGET         transcript budget in estimated tokens
  MAX_TURNS              default plan/dispatch cycles per chat request
  CONNECT_TIMEOUT        seconds allowed for a provider handshake
  WORKSPACE_ROOT         directory served by the bundled workspace provider
"""

from __future__ import annotations

# Standard Library
from functools import lru_cache

# Third-Party Libraries
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Switchboard settings.

    Attributes:
        ollama_host: Ollama API endpoint.
        ollama_model: Model tag asked for the next action on every turn.
        context_budget: Maximum estimated transcript size sent to the model.
        message_ceiling: Estimated size above which a single message is clipped.
        max_turns: Default turn limit for a chat request.
        connect_timeout: Seconds allowed for one handshake attempt.
        connect_attempts: Total handshake attempts before giving up.
        list_tools_timeout: Seconds allowed for a provider's tool listing.
        call_tool_timeout: Seconds allowed for one tool invocation.
        model_timeout: Seconds allowed for one model completion.
        workspace_root: Directory served by the bundled workspace provider.
        api_host: Bind address for the HTTP surface.
        api_port: Port for the HTTP surface.
        log_level: Root logging level used by the entry points.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ollama_host: str = Field("http://localhost:11434", description="Ollama API endpoint.")
    ollama_model: str = Field("llama3.1:8b-instruct-q4_K_M", description="Planning model tag.")
    context_budget: int = Field(120_000, gt=0, description="Transcript budget in tokens.")
    message_ceiling: int = Field(8_000, gt=0, description="Per-message clip ceiling in tokens.")
    max_turns: int = Field(6, ge=1, description="Default plan/dispatch cycles per request.")
    connect_timeout: float = Field(30.0, gt=0)
    connect_attempts: int = Field(2, ge=1, le=5)
    list_tools_timeout: float = Field(15.0, gt=0)
    call_tool_timeout: float = Field(60.0, gt=0)
    model_timeout: float = Field(120.0, gt=0)
    workspace_root: str = Field(".", description="Root served by the workspace provider.")
    api_host: str = Field("0.0.0.0")
    api_port: int = Field(8300)
    log_level: str = Field("INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()

"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agentic-orchestrator"
    agent_type: str = ""
    host: str = "0.0.0.0"
    port: int = 0
    log_level: str = "INFO"

    redis_url: str = ""
    redis_host: str = ""
    redis_port: int = 0

    anthropic_api_key: str = ""
    llm_model: str = "claude-3-5-sonnet-20241022"
    llm_max_tokens: int = Field(default=8192, ge=1)
    llm_timeout_s: float = Field(default=600.0, ge=1.0)
    llm_max_retries: int = Field(default=2, ge=0)

    max_iterations: int = Field(default=20, ge=1)
    queue_poll_timeout_s: int = Field(default=5, ge=1)
    loop_backoff_s: float = Field(default=1.0, ge=0.0)
    result_ttl_s: int = Field(default=3600, ge=1)
    shutdown_grace_s: float = Field(default=30.0, ge=0.0)

    workspace_root: str = ""
    tool_timeout_s: float = Field(default=300.0, ge=0.01)
    command_timeout_s: float = Field(default=60.0, ge=0.01)
    install_timeout_s: float = Field(default=120.0, ge=0.01)
    package_manager: str = "npm"
    command_sandbox: Literal["auto", "bwrap", "off"] = "auto"
    max_tool_output_chars: int = Field(default=20000, ge=100)

    project_lock_ttl_s: int = Field(default=0, ge=0)
    project_lock_wait_s: float = Field(default=30.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_agent_type(self) -> str:
        return self.agent_type or os.getenv("AGENT_TYPE", "") or "generic"

    def resolved_anthropic_api_key(self) -> str:
        return self.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")

    def resolved_port(self) -> int:
        if self.port:
            return self.port
        raw = os.getenv("PORT", "")
        return int(raw) if raw.isdigit() else 8082

    def resolved_redis_url(self) -> str:
        if self.redis_url:
            return self.redis_url
        host = self.redis_host or os.getenv("REDIS_HOST", "") or "localhost"
        raw_port = os.getenv("REDIS_PORT", "")
        port = self.redis_port or (int(raw_port) if raw_port.isdigit() else 6379)
        return f"redis://{host}:{port}/0"

    def resolved_workspace_root(self) -> Path:
        raw = self.workspace_root or os.getenv("WORKSPACE_ROOT", "")
        if raw:
            return Path(raw).expanduser().resolve()
        return (Path.cwd() / ".workspace").resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

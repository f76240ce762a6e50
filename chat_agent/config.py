"""Configuration management for the chat agent backend."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_QWEN_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"


@dataclass(frozen=True)
class LLMConfig:
    """Language model endpoint configuration."""

    provider: str
    api_key: str
    model: str
    base_url: Optional[str] = None
    api_version: Optional[str] = None
    max_concurrent: int = 50


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    llm: Optional[LLMConfig] = None
    llm_provider: str = "openai"
    mcp_config_path: Optional[Path] = None
    mcp_allowed_paths: Tuple[str, ...] = (".",)
    user_skills_dir: Path = field(default_factory=lambda: Path(".agent") / "skills")
    project_skills_dir: Optional[Path] = None
    log_level: str = "INFO"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        provider = os.getenv("LLM_PROVIDER", "openai").lower()
        max_concurrent = int(os.getenv("LLM_MAX_CONCURRENT", "50"))

        llm_config = None
        if provider == "qwen":
            api_key = os.getenv("QWEN_API_KEY")
            if api_key:
                llm_config = LLMConfig(
                    provider=provider,
                    api_key=api_key,
                    base_url=os.getenv("QWEN_BASE_URL", DEFAULT_QWEN_BASE_URL),
                    model=os.getenv("QWEN_MODEL", "qwen-flash"),
                    max_concurrent=max_concurrent,
                )
        elif provider == "azure":
            api_key = os.getenv("AZURE_OPENAI_KEY")
            endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
            if api_key and endpoint:
                llm_config = LLMConfig(
                    provider=provider,
                    api_key=api_key,
                    base_url=endpoint,
                    api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                    model=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4"),
                    max_concurrent=max_concurrent,
                )
        else:
            api_key = os.getenv("OPENAI_API_KEY")
            if api_key:
                llm_config = LLMConfig(
                    provider="openai",
                    api_key=api_key,
                    base_url=os.getenv("OPENAI_API_BASE", DEFAULT_OPENAI_BASE_URL),
                    model=os.getenv("OPENAI_MODEL", "gpt-4-turbo"),
                    max_concurrent=max_concurrent,
                )

        mcp_config_path = os.getenv("MCP_CONFIG_PATH")
        allowed_paths = os.getenv("MCP_ALLOWED_PATHS")
        project_skills_dir = os.getenv("SKILLS_PROJECT_DIR")

        return cls(
            llm=llm_config,
            llm_provider=provider,
            mcp_config_path=Path(mcp_config_path) if mcp_config_path else None,
            mcp_allowed_paths=tuple(p for p in allowed_paths.split(os.pathsep) if p)
            if allowed_paths
            else (".",),
            user_skills_dir=Path(os.getenv("SKILLS_USER_DIR", str(Path(".agent") / "skills"))),
            project_skills_dir=Path(project_skills_dir) if project_skills_dir else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            environment=os.getenv("ENVIRONMENT", "development"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
        )


# Global config instance
config = Config.from_env()

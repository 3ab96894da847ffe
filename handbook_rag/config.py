"""
Runtime configuration.

Settings are read from environment variables (and a `.env` file loaded with
python-dotenv).  The Azure OpenAI credentials are mandatory: `from_env()`
raises ConfigError naming every missing variable so the server can refuse
to start.  The Tavily key is optional -- without it web search is disabled.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, SecretStr, ValidationError, field_validator

from handbook_rag.errors import ConfigError

DEFAULT_PDF_PATH = "data/employee_handbook.pdf"
DEFAULT_API_VERSION = "2024-08-01-preview"


class Settings(BaseModel):
    """Application-wide settings for the chat backend."""

    # Azure OpenAI (required)
    azure_api_key: SecretStr
    azure_deployment: str
    azure_endpoint: str
    azure_api_version: str = DEFAULT_API_VERSION

    # Web search (optional)
    tavily_api_key: Optional[SecretStr] = None

    # Document & retrieval
    pdf_path: Path = Path(DEFAULT_PDF_PATH)
    chunk_size: int = 2000
    top_k: int = 3

    # Generation
    org_name: str = "Contoso Electronics"
    temperature: float = 1.0
    max_tokens: int = 4096
    completion_timeout: float = 60.0
    search_timeout: float = 15.0

    # Server / logging
    port: int = 3001
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/server.log"

    @field_validator("chunk_size", "top_k", "max_tokens")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("completion_timeout", "search_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be > 0, got {v}")
        return v

    @property
    def search_enabled(self) -> bool:
        return self.tavily_api_key is not None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build Settings from the process environment (after loading .env)."""
        load_dotenv(env_file)

        api_key = os.getenv("AZURE_INFERENCE_SDK_KEY")
        deployment = os.getenv("DEPLOYMENT_NAME")
        endpoint = os.getenv("AZURE_INFERENCE_SDK_ENDPOINT")
        instance = os.getenv("INSTANCE_NAME")
        if not endpoint and instance:
            endpoint = f"https://{instance}.openai.azure.com"

        missing = [
            name
            for name, value in (
                ("AZURE_INFERENCE_SDK_KEY", api_key),
                ("DEPLOYMENT_NAME", deployment),
                ("AZURE_INFERENCE_SDK_ENDPOINT or INSTANCE_NAME", endpoint),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                "Required environment variables are not set: " + ", ".join(missing)
            )

        values: dict = {
            "azure_api_key": api_key,
            "azure_deployment": deployment,
            "azure_endpoint": endpoint,
            "azure_api_version": os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_API_VERSION),
            "tavily_api_key": os.getenv("TAVILY_API_KEY") or None,
            "pdf_path": os.getenv("HANDBOOK_PDF_PATH", DEFAULT_PDF_PATH),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
        optional = {
            "chunk_size": "CHUNK_SIZE",
            "top_k": "RETRIEVAL_TOP_K",
            "org_name": "ORG_NAME",
            "temperature": "LLM_TEMPERATURE",
            "max_tokens": "LLM_MAX_TOKENS",
            "completion_timeout": "COMPLETION_TIMEOUT",
            "search_timeout": "SEARCH_TIMEOUT",
            "port": "PORT",
        }
        for field, env_name in optional.items():
            if (raw := os.getenv(env_name)) is not None and raw != "":
                values[field] = raw
        if "LOG_FILE" in os.environ:
            values["log_file"] = os.environ["LOG_FILE"] or None

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

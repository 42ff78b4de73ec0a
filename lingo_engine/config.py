"""Engine configuration — all settings from environment."""

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Runtime configuration for the Lingo engine (validated via Pydantic)."""

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}

    # Local inference server
    ollama_url: str = Field(default="http://localhost:11434", alias="OLLAMA_URL")
    health_timeout_seconds: float = 5.0
    list_timeout_seconds: float = 10.0
    load_timeout_seconds: float = 60.0
    large_load_timeout_seconds: float = 180.0
    unload_timeout_seconds: float = 30.0
    switch_unload_timeout_seconds: float = 15.0
    chat_timeout_seconds: float = 120.0
    pull_timeout_seconds: float = 600.0
    # Fixed wait after bulk unload in switch() so the server can free memory
    switch_grace_seconds: float = Field(default=2.0, alias="SWITCH_GRACE_SECONDS")

    # Cloud LLM
    openai_model: str = Field(default="gpt-3.5-turbo", alias="OPENAI_MODEL")
    openai_max_tokens: int = 300
    openai_temperature: float = 0.7
    openai_timeout_seconds: float = 60.0

    # Chat
    default_main_language: str = "한국어"
    default_learning_language: str = "영어"
    title_max_chars: int = 50

    # Paths
    settings_file: str = Field(
        default=str(Path.cwd() / "data" / "model-settings.json"),
        alias="MODEL_SETTINGS_FILE",
    )

    @field_validator("ollama_url")
    @classmethod
    def validate_ollama_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid inference server URL scheme: {v}")
        return v.rstrip("/")

    @field_validator("openai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"Temperature must be 0.0-2.0, got {v}")
        return v

    @field_validator("openai_max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v < 1 or v > 200000:
            raise ValueError(f"max_tokens must be 1-200000, got {v}")
        return v

    @field_validator("switch_grace_seconds")
    @classmethod
    def validate_grace(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"switch_grace_seconds must be >= 0, got {v}")
        return v

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        if os.environ.get("LINGO_DATA_DIR"):
            return cls(settings_file=str(Path(os.environ["LINGO_DATA_DIR"]) / "model-settings.json"))
        return cls()

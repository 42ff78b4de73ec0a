"""
Lingo Engine — language-learning chat runtime.

- Local model lifecycle (load / unload / switch / status)
- Chat orchestration over cloud (litellm) or local (Ollama) backends
- SSE streaming relay
- Model settings and language recommendations
"""

__version__ = "1.0.0"

from lingo_engine.config import EngineConfig
from lingo_engine.exceptions import (
    EngineError,
    InferenceError,
    InferenceServerError,
    InferenceUnavailableError,
    LLMError,
    SettingsError,
    UnknownModelError,
)

__all__ = [
    "EngineConfig",
    "EngineError",
    "InferenceError",
    "InferenceServerError",
    "InferenceUnavailableError",
    "LLMError",
    "SettingsError",
    "UnknownModelError",
]

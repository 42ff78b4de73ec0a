"""
Model settings persisted as a small JSON file.

A missing or unreadable file yields the default (cloud backend, no key, no
model). Writes go through a temp file and ``os.replace``.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lingo_engine.exceptions import SettingsError

logger = logging.getLogger("lingo.engine.settings")

ModelType = Literal["openai", "local"]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ModelSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_type: ModelType = Field(default="openai", alias="modelType")
    model_id: str | None = Field(default=None, alias="modelId")
    openai_api_key: str | None = Field(default=None, alias="openaiApiKey")
    updated_at: str = Field(default_factory=_utcnow_iso, alias="updatedAt")

    @property
    def is_local(self) -> bool:
        return self.model_type == "local"

    def to_public(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SettingsStore:
    """Load/save ``ModelSettings`` at a fixed path."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> ModelSettings:
        if not self.path.exists():
            return ModelSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ModelSettings.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Unreadable settings file %s, using defaults: %s", self.path, exc)
            return ModelSettings()

    def save(
        self,
        model_type: ModelType,
        model_id: str | None = None,
        openai_api_key: str | None = None,
    ) -> ModelSettings:
        """Persist new settings; only the field relevant to ``model_type`` is kept."""
        settings = ModelSettings(
            model_type=model_type,
            model_id=model_id if model_type == "local" else None,
            openai_api_key=openai_api_key if model_type == "openai" else None,
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(settings.to_public(), fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("Failed to save settings to %s: %s", self.path, exc)
            raise SettingsError("Failed to save settings") from exc
        logger.info("Model settings updated: type=%s model=%s", settings.model_type, settings.model_id)
        return settings

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ── notes.py ───────────────────────────────────────────────────────────────

class NoteBody(BaseModel):
    """Request body for POST /notes and PUT /notes/{id}."""
    title: str = ""
    content: str = ""


# ── settings.py ────────────────────────────────────────────────────────────

class ModelSettingsBody(BaseModel):
    """Request body for POST /settings/model."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_type: str | None = Field(default=None, alias="modelType")
    model_id: str | None = Field(default=None, alias="modelId")
    openai_api_key: str | None = Field(default=None, alias="openaiApiKey")


class OpenAIKeyBody(BaseModel):
    """Request body for POST /settings/openai."""
    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")


# ── language.py ────────────────────────────────────────────────────────────

class LanguageRecommendationBody(BaseModel):
    """Request body for POST /language-recommendation."""
    model_config = ConfigDict(populate_by_name=True)

    native_language: str | None = Field(default=None, alias="nativeLanguage")
    target_language: str | None = Field(default=None, alias="targetLanguage")
    filter_type: str = Field(default="recommendation", alias="filterType")

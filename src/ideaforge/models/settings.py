"""User-facing provider settings (singleton per installation)."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3"


class LLMProvider(StrEnum):
    GEMINI = "gemini"
    OLLAMA = "ollama"


class AppSettings(BaseModel):
    """Which completion provider to use and how to reach it."""

    model_config = ConfigDict(populate_by_name=True)

    provider: LLMProvider = LLMProvider.GEMINI
    gemini_key: str = Field(default="", alias="geminiKey")
    ollama_endpoint: str = Field(default=DEFAULT_OLLAMA_ENDPOINT, alias="ollamaEndpoint")
    ollama_model: str = Field(default=DEFAULT_OLLAMA_MODEL, alias="ollamaModel")

    def is_configured(self) -> bool:
        if self.provider == LLMProvider.GEMINI:
            return bool(self.gemini_key.strip())
        return bool(self.ollama_endpoint.strip() and self.ollama_model.strip())

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def to_response(self) -> dict:
        key = self.gemini_key
        return {
            "_v": "1.0",
            "provider": self.provider.value,
            "gemini_key": f"{key[:4]}...{key[-4:]}" if len(key) > 8 else ("set" if key else ""),
            "ollama_endpoint": self.ollama_endpoint,
            "ollama_model": self.ollama_model,
        }

"""Structured completion payloads, validated before use."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeneratedIdea(BaseModel):
    """A title/details pair proposed by the model."""

    title: str
    details: str = ""

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title cannot be empty")
        return value


class FolderSuggestion(BaseModel):
    """One proposed folder and the ideas that belong in it."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    idea_ids: list[str] = Field(default_factory=list, alias="ideaIds")

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name cannot be empty")
        return value


class MvpSelection(BaseModel):
    """The idea judged simplest to ship as an MVP, with the model's reason."""

    model_config = ConfigDict(populate_by_name=True)

    idea_id: str = Field(alias="ideaId")
    title: str = ""
    reason: str = ""

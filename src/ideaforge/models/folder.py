"""Folder model for grouping ideas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from ideaforge.models.idea import new_id, now_ms


class Folder(BaseModel):
    """A named grouping; each idea belongs to zero or one folder."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str | None = None
    timestamp: int = Field(default_factory=now_ms)

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Folder name cannot be empty")
        return value

    def to_storage(self) -> dict:
        return self.model_dump(mode="json")

    def to_response(self) -> dict:
        return {"_v": "1.0", "id": self.id, "name": self.name, "description": self.description}

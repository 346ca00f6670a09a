"""Idea and chat message models."""

from __future__ import annotations

import time
import uuid
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ideaforge.models.migrations import SCHEMA_VERSION, migrate_idea


class IdeaStatus(StrEnum):
    DRAFT = "draft"
    VALIDATION = "validation"
    MVP = "mvp"
    COMPLETED = "completed"
    ARCHIVED = "archived"


STATUS_LABELS: dict[IdeaStatus, str] = {
    IdeaStatus.DRAFT: "Draft",
    IdeaStatus.VALIDATION: "Validation",
    IdeaStatus.MVP: "MVP",
    IdeaStatus.COMPLETED: "Completed",
    IdeaStatus.ARCHIVED: "Archived",
}

VALID_STATUSES = {s.value for s in IdeaStatus}


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    """One turn in an idea's advisor conversation.

    Array order in Idea.chat_history is authoritative; ``timestamp`` is
    informational only.
    """

    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: int = Field(default_factory=now_ms)


class Idea(BaseModel):
    """A user-authored startup idea."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    title: str = ""
    details: str = ""
    analysis: str | None = None
    # creation time; edits never touch it
    timestamp: int = Field(default_factory=now_ms)
    keywords: list[str] = Field(default_factory=list)
    chat_history: list[ChatMessage] = Field(default_factory=list, alias="chatHistory")
    related_idea_ids: list[str] = Field(default_factory=list, alias="relatedIdeaIds")
    status: IdeaStatus = IdeaStatus.DRAFT
    folder_id: str | None = Field(default=None, alias="folderId")
    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")

    @classmethod
    def from_storage(cls, data: dict) -> Idea:
        """Build an Idea from a stored record, migrating older schema versions."""
        return cls.model_validate(migrate_idea(data))

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def to_response(self, *, detail: str = "summary") -> dict:
        data = {
            "_v": "1.0",
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "folder_id": self.folder_id,
            "keywords": self.keywords,
        }
        if detail != "summary":
            data.update(
                {
                    "details": self.details,
                    "analysis": self.analysis,
                    "timestamp": self.timestamp,
                    "related_idea_ids": self.related_idea_ids,
                    "chat_history": [m.model_dump() for m in self.chat_history],
                }
            )
        return data

"""Event type constants for IdeaForge."""

from enum import StrEnum


class EventType(StrEnum):
    IDEA_CREATED = "idea.created"
    IDEA_SAVED = "idea.saved"
    IDEA_DELETED = "idea.deleted"
    IDEA_ASSIGNED = "idea.assigned"

    FOLDER_CREATED = "folder.created"
    FOLDER_DELETED = "folder.deleted"

    SETTINGS_CHANGED = "settings.changed"

    REPORT_READY = "report.ready"
    REPORT_FAILED = "report.failed"

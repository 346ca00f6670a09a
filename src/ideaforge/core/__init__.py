"""IdeaForge engines: ideas, folders, settings, AI operations and reports."""

from ideaforge.core.advisor import IdeaAdvisor, build_mvp_prompt
from ideaforge.core.autosave import DebouncedAutosave
from ideaforge.core.folders import BulkAssignResult, FolderEngine
from ideaforge.core.generator import IdeaGenerator, RaceOutcome, SparkInput
from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.projection import SortOption, ViewParams, project
from ideaforge.core.reports import Report, ReportKind, ReportStatus, ReportTracker
from ideaforge.core.session import DraftState, IdeaSession
from ideaforge.core.settings import SettingsService

__all__ = [
    "BulkAssignResult",
    "DebouncedAutosave",
    "DraftState",
    "FolderEngine",
    "IdeaAdvisor",
    "IdeaEngine",
    "IdeaGenerator",
    "IdeaSession",
    "RaceOutcome",
    "Report",
    "ReportKind",
    "ReportStatus",
    "ReportTracker",
    "SettingsService",
    "SortOption",
    "SparkInput",
    "ViewParams",
    "build_mvp_prompt",
    "project",
]

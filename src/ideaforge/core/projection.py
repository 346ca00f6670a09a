"""Filter/sort view projection over ideas and folders.

Pure functions only: no I/O and no mutation of the inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from ideaforge.models.folder import Folder
from ideaforge.models.idea import Idea

ALL = "all"
UNCATEGORIZED = "uncategorized"


class SortOption(StrEnum):
    NEWEST = "newest"
    OLDEST = "oldest"
    AZ = "az"


@dataclass(frozen=True)
class ViewParams:
    """Search, filter and sort choices for one view of the idea list.

    ``folder_selection`` is ``"all"``, ``"uncategorized"`` or a folder id.
    """

    search_query: str = ""
    status_filter: str = ALL
    folder_selection: str = ALL
    sort_option: SortOption = SortOption.NEWEST


def _folder_ids(folders: Iterable[Folder]) -> frozenset[str]:
    return frozenset(f.id for f in folders)


def is_uncategorized(idea: Idea, folder_ids: frozenset[str]) -> bool:
    """True when the idea has no folder or its folder no longer exists."""
    return not idea.folder_id or idea.folder_id not in folder_ids


def matches_search(idea: Idea, query: str) -> bool:
    if not query:
        return True
    haystack = " ".join([idea.title, idea.details, *idea.keywords])
    return query.casefold() in haystack.casefold()


def _sort_option(value: str) -> SortOption:
    # unknown keys sort like the default view instead of failing
    try:
        return SortOption(value)
    except ValueError:
        return SortOption.NEWEST


def _sort_key(option: SortOption):
    if option == SortOption.AZ:
        # casefold first; raw title breaks ties so "apple" and "Apple" order deterministically
        return lambda idea: (idea.title.casefold(), idea.title)
    return lambda idea: idea.timestamp


def project(ideas: Sequence[Idea], folders: Sequence[Folder], params: ViewParams) -> list[Idea]:
    """Return the ideas visible under ``params``, in display order."""
    folder_ids = _folder_ids(folders)
    query = params.search_query.strip()
    selection = params.folder_selection or ALL
    status = params.status_filter or ALL

    visible = []
    for idea in ideas:
        if not matches_search(idea, query):
            continue
        if status != ALL and idea.status != status:
            continue
        if selection == UNCATEGORIZED:
            if not is_uncategorized(idea, folder_ids):
                continue
        elif selection != ALL and idea.folder_id != selection:
            continue
        visible.append(idea)

    option = _sort_option(params.sort_option)
    return sorted(visible, key=_sort_key(option), reverse=option == SortOption.NEWEST)


def folder_counts(ideas: Sequence[Idea], folders: Sequence[Folder]) -> dict[str, int]:
    """Idea count per folder id, plus ``"all"`` and ``"uncategorized"``."""
    folder_ids = _folder_ids(folders)
    counts = {ALL: len(ideas), UNCATEGORIZED: 0, **{f.id: 0 for f in folders}}
    for idea in ideas:
        if is_uncategorized(idea, folder_ids):
            counts[UNCATEGORIZED] += 1
        else:
            counts[idea.folder_id] += 1
    return counts

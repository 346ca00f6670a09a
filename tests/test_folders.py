"""Tests for folders: manual assignment, deletion and bulk suggestions."""

import pytest

from ideaforge.core.projection import UNCATEGORIZED, ViewParams, folder_counts, project
from ideaforge.events.types import EventType
from ideaforge.exceptions import ConfirmationRequiredError, NotFoundError, StoreUnavailableError
from ideaforge.models.suggestions import FolderSuggestion
from ideaforge.storage.base import Entity


async def test_create_folder(folders, bus):
    events = []

    async def handler(event_type, data):
        events.append(data)

    bus.on(EventType.FOLDER_CREATED, handler)
    folder = await folders.create("  Fintech  ", "Money things")

    assert folder.name == "Fintech"
    assert folder.description == "Money things"
    assert events == [{"folder_id": folder.id, "name": "Fintech"}]
    assert [f.id for f in await folders.list_folders()] == [folder.id]


@pytest.mark.parametrize("name", ["", "   "])
async def test_create_folder_rejects_blank_name(folders, name):
    with pytest.raises(ValueError):
        await folders.create(name)


async def test_find_by_name_ignores_case(folders):
    folder = await folders.create("Fintech")
    assert (await folders.find_by_name("FINTECH")).id == folder.id
    assert await folders.find_by_name("Health") is None


async def test_assign_and_clear(folders, ideas):
    folder = await folders.create("Fintech")
    idea = await ideas.create(title="Budget bot")

    assigned = await folders.assign(idea.id, folder.id)
    assert assigned.folder_id == folder.id

    cleared = await folders.assign(idea.id, None)
    assert cleared.folder_id is None


async def test_assign_to_missing_folder(folders, ideas):
    idea = await ideas.create(title="Budget bot")
    with pytest.raises(NotFoundError):
        await folders.assign(idea.id, "no-such-folder")
    assert (await ideas.require(idea.id)).folder_id is None


async def test_assign_keeps_pending_text_edit(folders, ideas):
    folder = await folders.create("Fintech")
    idea = await ideas.create(title="Budget bot")
    session = await ideas.open_session(idea.id)
    session.edit(details="typed")

    await folders.assign(idea.id, folder.id)

    assert session.idea.details == "typed"
    assert session.idea.folder_id == folder.id


async def test_delete_requires_confirmation(folders):
    folder = await folders.create("Fintech")
    with pytest.raises(ConfirmationRequiredError):
        await folders.delete(folder.id)
    assert await folders.get(folder.id) is not None


async def test_deleted_folder_leaves_ideas_uncategorized(folders, ideas, store):
    folder = await folders.create("Fintech")
    idea = await ideas.create(title="Budget bot")
    await folders.assign(idea.id, folder.id)

    await folders.delete(folder.id, confirmed=True)

    # the idea record still points at the deleted folder
    stored = await store.get(Entity.IDEAS, idea.id)
    assert stored["folderId"] == folder.id

    all_ideas = await ideas.list_ideas()
    remaining = await folders.list_folders()
    visible = project(all_ideas, remaining, ViewParams(folder_selection=UNCATEGORIZED))
    assert [i.id for i in visible] == [idea.id]
    assert folder_counts(all_ideas, remaining)[UNCATEGORIZED] == 1


async def test_bulk_assign_creates_and_assigns(folders, ideas):
    a = await ideas.create(title="Budget bot")
    b = await ideas.create(title="Crypto tax helper")

    result = await folders.bulk_assign([FolderSuggestion(name="Fintech", idea_ids=[a.id, b.id])])

    assert result.updated == 2
    assert result.folders_created == 1
    assert result.failed == []
    folder_id = result.outcomes[0].folder_id
    assert (await ideas.require(a.id)).folder_id == folder_id
    assert (await ideas.require(b.id)).folder_id == folder_id


async def test_bulk_assign_twice_reuses_folder(folders, ideas):
    a = await ideas.create(title="Budget bot")
    b = await ideas.create(title="Crypto tax helper")
    suggestion = FolderSuggestion(name="Fintech", idea_ids=[a.id, b.id])

    first = await folders.bulk_assign([suggestion])
    second = await folders.bulk_assign([suggestion.model_copy(update={"name": "fintech"})])

    assert second.folders_created == 0
    assert second.outcomes[0].folder_id == first.outcomes[0].folder_id
    names = [f.name.casefold() for f in await folders.list_folders()]
    assert names.count("fintech") == 1


async def test_bulk_assign_skips_missing_ideas(folders, ideas):
    a = await ideas.create(title="Budget bot")

    result = await folders.bulk_assign([FolderSuggestion(name="Fintech", idea_ids=[a.id, "gone"])])

    outcome = result.outcomes[0]
    assert outcome.updated == [a.id]
    assert outcome.skipped == ["gone"]
    assert outcome.ok


async def test_bulk_assign_store_failure_does_not_stop_others(folders, ideas, store, monkeypatch):
    a = await ideas.create(title="Budget bot")
    b = await ideas.create(title="Meal planner")
    original_put = store.put

    async def flaky_put(entity, record):
        if entity == Entity.FOLDERS and record["name"] == "Broken":
            raise StoreUnavailableError("disk gone")
        return await original_put(entity, record)

    monkeypatch.setattr(store, "put", flaky_put)

    result = await folders.bulk_assign(
        [
            FolderSuggestion(name="Broken", idea_ids=[a.id]),
            FolderSuggestion(name="Food", idea_ids=[b.id]),
        ]
    )

    assert [o.ok for o in result.outcomes] == [False, True]
    assert result.outcomes[0].error == "disk gone"
    assert result.updated == 1
    assert (await ideas.require(a.id)).folder_id is None
    assert (await ideas.require(b.id)).folder_id == result.outcomes[1].folder_id

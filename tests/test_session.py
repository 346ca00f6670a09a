"""Tests for idea sessions: draft lifecycle, debounced edits and flush on close."""

import asyncio

import pytest

from ideaforge.core.session import DraftState, SessionClosedError
from ideaforge.events.types import EventType
from ideaforge.models.idea import Idea
from ideaforge.storage.base import Entity

PAST_DEBOUNCE = 0.25


@pytest.fixture
def events(bus):
    seen: list[tuple[EventType, dict]] = []

    async def record(event_type, data):
        seen.append((event_type, data))

    bus.on_all(record)
    return seen


async def _stored(store, idea_id) -> Idea | None:
    data = await store.get(Entity.IDEAS, idea_id)
    return Idea.from_storage(data) if data else None


async def test_draft_is_not_stored_until_edited(ideas, store):
    session = ideas.create_draft(title="Untitled")
    assert session.state is DraftState.TRANSIENT
    assert await _stored(store, session.id) is None
    assert await ideas.list_ideas() == []


async def test_first_edit_persists_draft(ideas, store, events):
    session = ideas.create_draft()
    session.edit(title="Pet taxi")
    await asyncio.sleep(PAST_DEBOUNCE)

    assert session.state is DraftState.PERSISTED
    assert (await _stored(store, session.id)).title == "Pet taxi"
    assert [e for e, _ in events].count(EventType.IDEA_CREATED) == 1


async def test_untouched_draft_vanishes_on_close(ideas, store):
    session = ideas.create_draft(title="Never edited")
    await session.close()
    assert await _stored(store, session.id) is None
    assert ideas.session_for(session.id) is None


async def test_explicit_save_persists_untouched_draft(ideas, store):
    session = ideas.create_draft(title="Keep")
    await session.save()
    assert session.state is DraftState.PERSISTED
    assert (await _stored(store, session.id)).title == "Keep"


async def test_edits_within_window_write_once(ideas, store, events):
    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)

    for text in ("R", "Ri", "Rides for pets"):
        session.edit(details=text)
    await asyncio.sleep(PAST_DEBOUNCE)

    saves = [e for e, _ in events if e == EventType.IDEA_SAVED]
    assert len(saves) == 1
    assert (await _stored(store, idea.id)).details == "Rides for pets"


async def test_edit_is_visible_before_it_is_saved(ideas, store):
    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)
    session.edit(details="in memory")

    assert (await ideas.get(idea.id)).details == "in memory"
    assert (await _stored(store, idea.id)).details == ""
    assert session.autosave.pending


async def test_close_flushes_pending_edit(ideas, store):
    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)
    session.edit(details="typed just before leaving")

    await session.close()
    assert (await _stored(store, idea.id)).details == "typed just before leaving"
    assert session.closed


async def test_create_edit_reload(ideas, store, bus):
    from ideaforge.core.ideas import IdeaEngine

    idea = await ideas.create(title="X")
    session = await ideas.open_session(idea.id)
    session.edit(details="Y")
    await asyncio.sleep(PAST_DEBOUNCE)

    reloaded = await IdeaEngine(store, bus).get(idea.id)
    assert reloaded.title == "X"
    assert reloaded.details == "Y"


async def test_edit_after_close_raises(ideas):
    session = ideas.create_draft()
    await session.close()
    with pytest.raises(SessionClosedError):
        session.edit(title="late")


async def test_edit_only_text_fields(ideas):
    session = ideas.create_draft()
    with pytest.raises(ValueError):
        session.edit(status="mvp")


async def test_apply_cannot_change_id(ideas):
    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)
    with pytest.raises(ValueError):
        await session.apply(lambda current: current.model_copy(update={"id": "other"}))


async def test_apply_persists_immediately_with_pending_edits(ideas, store):
    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)
    session.edit(details="typed")

    await session.apply(lambda current: current.model_copy(update={"keywords": ["pets"]}))
    stored = await _stored(store, idea.id)
    assert stored.keywords == ["pets"]
    assert stored.details == "typed"


async def test_open_session_returns_same_session(ideas):
    idea = await ideas.create(title="Pet taxi")
    first = await ideas.open_session(idea.id)
    assert await ideas.open_session(idea.id) is first

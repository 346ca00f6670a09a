"""Tests for JSON backup export and import."""

import json

import pytest

from ideaforge.core.backup import BACKUP_VERSION, export_backup, import_backup, parse_backup
from ideaforge.exceptions import BackupError
from ideaforge.models.settings import LLMProvider


async def test_export_contains_everything(ideas, folders, settings):
    folder = await folders.create("Fintech")
    idea = await ideas.create(title="Budget bot", keywords=["money"])
    await folders.assign(idea.id, folder.id)

    data = json.loads(await export_backup(ideas, folders, settings))

    assert data["version"] == BACKUP_VERSION
    assert isinstance(data["timestamp"], int)
    assert data["ideas"][0]["id"] == idea.id
    assert data["ideas"][0]["folderId"] == folder.id
    assert data["folders"][0]["name"] == "Fintech"
    assert data["settings"]["geminiKey"] == "test-key"


async def test_export_then_import_into_empty_store(ideas, folders, settings, tmp_path, bus):
    from ideaforge.core.folders import FolderEngine
    from ideaforge.core.ideas import IdeaEngine
    from ideaforge.core.settings import SettingsService
    from ideaforge.storage.sqlite_store import SQLiteStore

    folder = await folders.create("Fintech")
    idea = await ideas.create(title="Budget bot", details="Tracks spend")
    await folders.assign(idea.id, folder.id)
    text = await export_backup(ideas, folders, settings)

    other = SQLiteStore(tmp_path / "other.db")
    await other.initialize()
    try:
        other_ideas = IdeaEngine(other, bus)
        other_settings = SettingsService(other, bus)
        await other_settings.load()

        result = await import_backup(text, other, other_ideas, other_settings)

        assert (result.ideas, result.folders, result.settings_applied) == (1, 1, True)
        restored = await other_ideas.require(idea.id)
        assert restored.details == "Tracks spend"
        assert restored.folder_id == folder.id
        assert [f.name for f in await FolderEngine(other, bus, other_ideas).list_folders()] == ["Fintech"]
        assert other_settings.current.gemini_key == "test-key"
    finally:
        await other.close()


async def test_import_upserts_existing_ids(ideas, store, settings):
    idea = await ideas.create(title="Old title")
    text = json.dumps({"ideas": [{**idea.to_storage(), "title": "New title"}]})

    result = await import_backup(text, store, ideas, settings)

    assert result.ideas == 1
    assert not result.settings_applied
    assert (await ideas.require(idea.id)).title == "New title"
    assert len(await ideas.list_ideas()) == 1


async def test_import_migrates_legacy_ideas(ideas, store, settings):
    text = json.dumps({"ideas": [{"id": "old-1", "title": "Legacy", "timestamp": 5}]})
    await import_backup(text, store, ideas, settings)

    idea = await ideas.require("old-1")
    assert idea.status == "draft"
    assert idea.chat_history == []


async def test_import_applies_settings(ideas, store, settings):
    text = json.dumps({"ideas": [], "settings": {"provider": "ollama", "ollamaModel": "llama3"}})
    await import_backup(text, store, ideas, settings)

    assert settings.current.provider == LLMProvider.OLLAMA
    assert settings.current.ollama_model == "llama3"


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        json.dumps({"version": 1}),
        json.dumps({"ideas": "nope"}),
        json.dumps({"ideas": [{"id": "x", "chatHistory": [{"role": "robot", "content": "?"}]}]}),
    ],
)
def test_parse_rejects_invalid_documents(text):
    with pytest.raises(BackupError, match="Invalid backup file"):
        parse_backup(text)


async def test_invalid_import_writes_nothing(ideas, store, settings):
    text = json.dumps({"ideas": [{"id": "ok", "title": "Fine"}, {"id": "bad", "status": "shipped"}]})

    with pytest.raises(BackupError):
        await import_backup(text, store, ideas, settings)
    assert await ideas.list_ideas() == []

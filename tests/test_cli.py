"""Tests for the ideaforge CLI."""

import json

import pytest
from click.testing import CliRunner

from ideaforge.cli import main


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("IDEAFORGE_WORKSPACE", "IDEAFORGE_STORE", "IDEAFORGE_REST_URL"):
        monkeypatch.delenv(name, raising=False)
    ws = tmp_path / "ws"
    result = CliRunner().invoke(main, ["-w", str(ws), "init"])
    assert result.exit_code == 0, result.output
    return ws


def _invoke(workspace, *args, **kwargs):
    return CliRunner().invoke(main, ["-w", str(workspace), *args], **kwargs)


def _idea_ids(workspace) -> dict[str, str]:
    path = workspace / "export.json"
    assert _invoke(workspace, "export", str(path)).exit_code == 0
    backup = json.loads(path.read_text())
    return {i["title"]: i["id"] for i in backup["ideas"]}


def test_init_creates_workspace(workspace):
    assert (workspace / "ideaforge.db").exists()
    assert (workspace / "config.yaml").exists()


def test_status(workspace):
    result = _invoke(workspace, "status")
    assert result.exit_code == 0
    assert "Ideas: 0" in result.output
    assert "Provider: gemini" in result.output


def test_new_and_list(workspace):
    assert _invoke(workspace, "new", "Pet taxi", "-d", "Rides for pets").exit_code == 0
    assert _invoke(workspace, "new", "Apple orchard").exit_code == 0

    result = _invoke(workspace, "list", "--sort", "az")
    assert result.exit_code == 0
    assert result.output.index("Apple orchard") < result.output.index("Pet taxi")

    result = _invoke(workspace, "list", "--search", "rides")
    assert "Pet taxi" in result.output
    assert "Apple orchard" not in result.output


def test_list_empty(workspace):
    result = _invoke(workspace, "list")
    assert "No ideas found." in result.output


def test_show_by_prefix(workspace):
    _invoke(workspace, "new", "Pet taxi", "-d", "Rides for pets")
    idea_id = _idea_ids(workspace)["Pet taxi"]

    result = _invoke(workspace, "show", idea_id[:8])
    assert result.exit_code == 0
    assert "Rides for pets" in result.output


def test_show_missing(workspace):
    result = _invoke(workspace, "show", "nope")
    assert result.exit_code == 1
    assert "Idea not found" in result.output


def test_new_rejects_blank_title(workspace):
    result = _invoke(workspace, "new", "   ")
    assert result.exit_code == 1
    assert "cannot be empty" in result.output


def test_delete_asks_first(workspace):
    _invoke(workspace, "new", "Pet taxi")
    idea_id = _idea_ids(workspace)["Pet taxi"]

    result = _invoke(workspace, "delete", idea_id, input="n\n")
    assert "Cancelled." in result.output
    assert "Pet taxi" in _idea_ids(workspace)

    result = _invoke(workspace, "delete", idea_id, "--yes")
    assert result.exit_code == 0
    assert _idea_ids(workspace) == {}


def test_export_and_import(workspace, tmp_path):
    _invoke(workspace, "new", "Pet taxi")
    backup = tmp_path / "backup.json"
    assert _invoke(workspace, "export", str(backup)).exit_code == 0

    other = tmp_path / "other"
    CliRunner().invoke(main, ["-w", str(other), "init"])
    result = _invoke(other, "import", str(backup))
    assert result.exit_code == 0
    assert "Imported 1 ideas" in result.output
    assert "Pet taxi" in _idea_ids(other)


def test_import_invalid_file(workspace, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    result = _invoke(workspace, "import", str(bad))
    assert result.exit_code == 1
    assert "Invalid backup file" in result.output


def test_settings_set_and_show(workspace):
    result = _invoke(workspace, "settings", "set", "--provider", "ollama", "--ollama-model", "phi3")
    assert result.exit_code == 0

    result = _invoke(workspace, "settings", "show")
    assert "ollama" in result.output
    assert "phi3" in result.output


def test_settings_set_nothing(workspace):
    result = _invoke(workspace, "settings", "set")
    assert result.exit_code == 1


def test_folders_lists_uncategorized(workspace):
    _invoke(workspace, "new", "Pet taxi")
    result = _invoke(workspace, "folders")
    assert result.exit_code == 0
    assert "uncategorized" in result.output


def test_status_checks_ollama(workspace):
    _invoke(workspace, "settings", "set", "--provider", "ollama", "--ollama-endpoint", "http://127.0.0.1:9")
    result = _invoke(workspace, "status")
    assert result.exit_code == 0
    assert "Ollama: not reachable" in result.output

"""Tests for CLI commands: help, config, queue, check, preview, due, study."""

import json
import logging
from datetime import date, timedelta

import pytest
import yaml
from typer.testing import CliRunner

from mneme.interface import cli
from mneme.interface.cli import _parse_grade, app

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    if cli._file_handler is not None:
        root.removeHandler(cli._file_handler)
        cli._file_handler.close()
        cli._file_handler = None


@pytest.fixture
def store(tmp_path, mock_home):
    today = date.today()
    path = tmp_path / "store.yaml"
    doc = {
        "questions": [
            {"id": "acid-a", "deck_id": "db", "type": "SHORT", "prompt": "All-or-nothing property?", "answer": "atomicity"},
            {"id": "sql-decl", "deck_id": "db", "type": "BOOLEAN", "prompt": "SQL is declarative.", "answer": "true"},
            {"id": "tcp", "deck_id": "net", "type": "KEYWORD", "prompt": "Describe TCP.", "keywords": ["tcp", "연결지향", "신뢰성"]},
        ],
        "reviews": {
            "sql-decl": {"due": (today - timedelta(days=1)).isoformat(), "ease": 2.5, "interval": 6, "count": 2, "correct": 2},
            "tcp": {"due": (today + timedelta(days=4)).isoformat(), "ease": 2.3, "interval": 4, "count": 1, "correct": 1},
        },
    }
    path.write_text(yaml.safe_dump(doc, allow_unicode=True), encoding="utf-8")
    return path


def invoke(store, *args, **kwargs):
    return runner.invoke(app, ["--store", str(store), *args], **kwargs)


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition" in result.stdout
    for command in ("study", "queue", "check", "preview", "due", "config"):
        assert command in result.stdout


# --- Config ---


def test_config_show_masks_api_key(mock_home, monkeypatch):
    monkeypatch.setenv("MNEME_ESCALATION_API_KEY", "sk-secret")
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["daily_review_limit"] == 30
    assert data["escalation_api_key"] == "***"


@pytest.mark.parametrize(
    "flags, level",
    [([], logging.WARNING), (["-v"], logging.INFO), (["-vv"], logging.DEBUG)],
)
def test_verbosity_flags_set_log_level(mock_home, flags, level):
    result = runner.invoke(app, [*flags, "config", "show"])
    assert result.exit_code == 0
    assert logging.getLogger().level == level


def test_verbosity_from_env(mock_home, monkeypatch):
    monkeypatch.setenv("MNEME_VERBOSE", "1")
    result = runner.invoke(app, ["config", "show"])
    assert json.loads(result.stdout)["verbose"] == 1
    assert logging.getLogger().level == logging.INFO


def test_log_file_is_written_under_log_dir(store, mock_home):
    result = invoke(store, "-v", "queue", "db")
    assert result.exit_code == 0
    log_file = mock_home / ".config/mneme/logs/mneme.log"
    assert "Started session_" in log_file.read_text(encoding="utf-8")


# --- Queue ---


def test_queue_json(store):
    result = invoke(store, "queue", "db", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["count"] == 2
    assert [item["id"] for item in data["items"]] == ["sql-decl", "acid-a"]
    assert [item["src"] for item in data["items"]] == ["due", "new"]
    assert data["daily_limit_reached"] is False


def test_queue_text_empty_deck(store):
    result = invoke(store, "queue", "nothing-here")
    assert result.exit_code == 0
    assert "No questions queued." in result.stdout


# --- Check ---


def test_check_correct(store):
    result = invoke(store, "check", "acid-a", "atomicty")
    assert result.exit_code == 0
    assert "Correct" in result.stdout
    assert "Suggested grade: easy" in result.stdout


def test_check_keyword_partial(store):
    result = invoke(store, "check", "tcp", "TCP는 연결지향")
    assert result.exit_code == 0
    assert "Incorrect (score 0.67, local)" in result.stdout
    assert "Missing: 신뢰성" in result.stdout


def test_check_unknown_question(store):
    result = invoke(store, "check", "nope", "x")
    assert result.exit_code == 1
    assert "Question not found: nope" in result.output


# --- Preview / due ---


def test_preview_reviewed_question(store):
    result = invoke(store, "preview", "sql-decl")
    assert result.exit_code == 0
    today = date.today()
    assert f"easy  -> {(today + timedelta(days=20)).isoformat()}" in result.stdout
    assert f"again -> {today.isoformat()} (today)" in result.stdout


def test_preview_new_question(store):
    result = invoke(store, "preview", "acid-a")
    assert result.exit_code == 0
    assert "never reviewed" in result.stdout


def test_due_lists_only_due(store):
    result = invoke(store, "due", "--json")
    assert result.exit_code == 0
    assert [item["id"] for item in json.loads(result.stdout)] == ["sql-decl"]


# --- Study ---


def test_study_session_persists_reviews(store):
    # Answer both questions and accept the suggested grades
    result = invoke(store, "study", "db", input="true\n\natomicity\n\n")
    assert result.exit_code == 0, result.output
    assert "Done: 2/2 correct (100%)" in result.stdout

    doc = yaml.safe_load(store.read_text(encoding="utf-8"))
    assert doc["reviews"]["acid-a"]["count"] == 1
    assert doc["reviews"]["sql-decl"]["count"] == 3
    assert doc["daily_stats"]["reviews_done"] == 1
    assert doc["daily_stats"]["total_done"] == 2


def test_study_quit_early(store):
    result = invoke(store, "study", "db", input=":quit\n")
    assert result.exit_code == 0
    assert "Done: 0/0 correct" in result.stdout
    doc = yaml.safe_load(store.read_text(encoding="utf-8"))
    assert "acid-a" not in doc["reviews"]


def test_study_rejects_unknown_grade(store):
    result = invoke(store, "study", "net", "--count", "1", input="tcp 연결지향 신뢰성\nmaybe\ngood\n")
    assert result.exit_code == 0, result.output
    assert "Pick again, hard, good or easy." in result.stdout


def test_parse_grade_aliases():
    assert _parse_grade("A") == 0
    assert _parse_grade(" hard ") == 1
    assert _parse_grade("2") == 2
    assert _parse_grade("e") == 3
    assert _parse_grade("perfect") is None

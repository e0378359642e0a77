import json

from typer.testing import CliRunner

from taskorder.cli import app

runner = CliRunner()


def _invoke(db, *args):
    return runner.invoke(app, ["--db", str(db), *args])


def test_add_block_and_schedule(tmp_path):
    db = tmp_path / "tasks.json"

    result = _invoke(db, "init", "--hours", "09:00-17:30", "--capacity", "480")
    assert result.exit_code == 0, result.stdout

    assert _invoke(db, "add", "Design", "-d", "60").exit_code == 0
    result = _invoke(db, "add", "Build", "-d", "30", "--depends", "T-1")
    assert result.exit_code == 0, result.stdout
    assert "T-2" in result.stdout

    result = _invoke(db, "schedule", "--start", "2026-03-02T09:00")
    assert result.exit_code == 0, result.stdout
    assert "Planned 90 min" in result.stdout
    assert "0 due-date violations" in result.stdout

    # nothing was committed
    raw = json.loads(db.read_text())
    assert "scheduled_start" not in raw["items"]["T-1"]

    result = _invoke(db, "schedule", "--start", "2026-03-02T09:00", "--commit")
    assert result.exit_code == 0, result.stdout
    raw = json.loads(db.read_text())
    assert raw["items"]["T-1"]["scheduled_start"] == "2026-03-02T09:00:00"
    assert raw["items"]["T-2"]["scheduled_end"] == "2026-03-02T10:30:00"


def test_block_rejects_cycle(tmp_path):
    db = tmp_path / "tasks.json"
    _invoke(db, "add", "A")
    _invoke(db, "add", "B", "--depends", "T-1")

    result = _invoke(db, "block", "T-1", "T-2")
    assert result.exit_code == 1
    assert "cycle" in result.stdout

    result = _invoke(db, "block", "T-1", "T-1")
    assert result.exit_code == 1
    assert "invalid_reference" in result.stdout


def test_subtask_cannot_depend_on_parent(tmp_path):
    db = tmp_path / "tasks.json"
    _invoke(db, "add", "Parent")
    result = _invoke(db, "add", "Child", "--parent", "T-1", "--depends", "T-1")
    assert result.exit_code == 1
    assert "T-2" not in json.loads(db.read_text())["items"]


def test_next_and_done(tmp_path):
    db = tmp_path / "tasks.json"
    _invoke(db, "add", "First", "-p", "high")
    _invoke(db, "add", "Second", "--depends", "T-1")

    result = _invoke(db, "next")
    assert result.exit_code == 0, result.stdout
    assert "T-1 First" in result.stdout
    assert "T-2" not in result.stdout

    assert _invoke(db, "done", "T-1").exit_code == 0
    result = _invoke(db, "next")
    assert "T-2 Second" in result.stdout


def test_order_shows_scores(tmp_path):
    db = tmp_path / "tasks.json"
    _invoke(db, "add", "Slow", "-d", "120")
    _invoke(db, "add", "Urgent", "-d", "120", "--due", "2000-01-01T00:00")

    result = _invoke(db, "order")
    assert result.exit_code == 0, result.stdout
    assert result.stdout.index("T-2") < result.stdout.index("T-1")


def test_unknown_item(tmp_path):
    db = tmp_path / "tasks.json"
    result = _invoke(db, "done", "T-9")
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_bad_working_hours(tmp_path):
    db = tmp_path / "tasks.json"
    result = _invoke(db, "init", "--hours", "18:00-09:00")
    assert result.exit_code == 1
    assert "configuration" in result.stdout


def test_negative_duration_is_refused(tmp_path):
    db = tmp_path / "tasks.json"
    result = _invoke(db, "add", "Broken", "-d", "-60")
    assert result.exit_code != 0
    assert not db.exists()


def test_schedule_and_next_with_filters(tmp_path):
    db = tmp_path / "tasks.json"
    _invoke(db, "add", "Launch")
    _invoke(db, "add", "Slides", "-d", "30", "--parent", "T-1")
    _invoke(db, "add", "Vendor call", "-d", "60", "-p", "high")
    _invoke(db, "block", "T-2", "T-3")

    result = _invoke(db, "schedule", "--start", "2026-03-02T09:00", "--parent", "T-1")
    assert result.exit_code == 0, result.stdout
    assert "Planned 30 min" in result.stdout

    result = _invoke(db, "next", "--search", "vendor")
    assert result.exit_code == 0, result.stdout
    assert "T-3 Vendor call" in result.stdout
    assert "T-2" not in result.stdout

    result = _invoke(db, "order", "--priority", "urgent")
    assert result.exit_code == 1
    assert "configuration" in result.stdout

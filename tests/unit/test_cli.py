from __future__ import annotations

import json
from pathlib import Path

import pytest

from pm_intelligence import main as cli
from pm_intelligence.store import IssueStore
from pm_intelligence.workflow import WorkflowState


@pytest.fixture
def state_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, make_issue, seed) -> IssueStore:
    for name in ("ORCHESTRATOR_GITHUB_TOKEN", "PM_REPOSITORY", "PM_SLOW_CALL_THRESHOLD_MS", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PM_STATE_PATH", str(tmp_path / "state"))
    monkeypatch.chdir(tmp_path)
    # Leave the root logger alone; pytest owns it.
    monkeypatch.setattr(cli, "configure_logging", lambda level, **kwargs: None)

    store = IssueStore(tmp_path / "state" / "issues.json")
    seed(
        store,
        make_issue(1, workflow=WorkflowState.BACKLOG),
        make_issue(2, workflow=WorkflowState.READY),
    )
    return store


def test_parse_issue_numbers_accepts_commas_and_hashes() -> None:
    assert cli._parse_issue_numbers(["1,2", "#3", " 4 ,"]) == [1, 2, 3, 4]


def test_parse_issue_numbers_rejects_non_positive() -> None:
    with pytest.raises(ValueError):
        cli._parse_issue_numbers(["0"])


def test_board_prints_json(state_store: IssueStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["board"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["total"] == 2
    assert data["byWorkflow"] == {"Backlog": 1, "Ready": 1}


def test_bulk_move_updates_store(state_store: IssueStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["bulk-move", "1,2", "--to", "active"]) == 0

    data = json.loads(capsys.readouterr().out)
    # WIP limit: the second move is refused once #1 is Active.
    assert [r["status"] for r in data["results"]] == ["moved", "error"]
    assert state_store.get_item(1).workflow is WorkflowState.ACTIVE
    assert state_store.get_item(2).workflow is WorkflowState.READY


def test_bulk_move_dry_run(state_store: IssueStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["bulk-move", "1", "2", "--to", "Ready", "--dry-run"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["summary"] == "DRY RUN: Would move 1 of 2 items to Ready. 1 already in Ready."
    assert state_store.get_item(1).workflow is WorkflowState.BACKLOG


def test_tool_error_exits_1(state_store: IssueStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["move", "1", "--to", "Done"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Error: Invalid transition")


def test_invalid_issue_number_exits_2(state_store: IssueStore) -> None:
    assert cli.main(["bulk-move", "abc", "--to", "Ready"]) == 2


def test_sync_without_token_exits_1(state_store: IssueStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["sync"]) == 1
    assert "ORCHESTRATOR_GITHUB_TOKEN" in capsys.readouterr().err


def test_bad_settings_exit_2(state_store: IssueStore, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PM_SLOW_CALL_THRESHOLD_MS", "-5")

    assert cli.main(["board"]) == 2

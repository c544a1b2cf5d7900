"""CLI tests: every command runs in-process against a throwaway task store."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from tmboard.cli import main
from tmboard.io_utils import read_json, write_text


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    return CliRunner()


@pytest.fixture
def board_dir(taskmaster, make_raw_task):
    """Hub project 'web': #1 done, #2 <- 1 (with subtasks), #3 <- 2."""
    taskmaster.write_hub({
        "web": [
            make_raw_task(1, status="done"),
            make_raw_task(2, status="in-progress", dependencies=[1], subtasks=[
                {"id": 1, "title": "Sub 1", "status": "done"},
                {"id": 2, "title": "Sub 2", "status": "pending"},
            ]),
            make_raw_task(3, dependencies=[2]),
        ]
    })
    return taskmaster


def _invoke(runner: CliRunner, tm, *args: str):
    return runner.invoke(main, ["--base", str(tm.base), *args])


def _web_tasks(tm) -> list[dict]:
    return read_json(tm.hub_path)["web"]["tasks"]


# ── Main entry and help ──────────────────────────────────────────────


class TestCliHelpAndVersion:
    """Basic entry: --help, --version, -h."""

    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "tmboard" in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0
        assert "board" in r.output

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert "tmboard" in r.output
        assert "0.3.0" in r.output

    @pytest.mark.parametrize("group", ["subtask", "deps"])
    def test_subgroup_help(self, cli_runner, group):
        r = cli_runner.invoke(main, [group, "--help"])
        assert r.exit_code == 0


# ── Read commands ────────────────────────────────────────────────────


class TestReadCommands:
    """projects, board, phases, critical-path, ready."""

    def test_projects(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "projects")
        assert r.exit_code == 0
        assert "web" in r.output

    def test_projects_empty(self, cli_runner, taskmaster):
        r = _invoke(cli_runner, taskmaster, "projects")
        assert r.exit_code == 0
        assert "No projects" in r.output

    def test_board_lanes(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "board", "web")
        assert r.exit_code == 0
        assert "DONE" in r.output
        assert "IN-PROGRESS" in r.output
        assert "WAITING" in r.output
        assert "1/2" in r.output

    def test_board_json(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "board", "web", "--json")
        assert r.exit_code == 0
        tasks = json.loads(r.output)["web"]["tasks"]
        assert tasks[2]["blockedBy"] == [2]
        assert tasks[2]["depth"] == 2
        assert "blockedBy" not in _web_tasks(board_dir)[2]

    def test_board_unknown_project(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "board", "nope")
        assert r.exit_code == 1
        assert "Unknown project" in r.output

    def test_phases(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "phases", "web")
        assert r.exit_code == 0
        assert "PHASE 0" in r.output
        assert "PHASE 2" in r.output

    def test_critical_path(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "critical-path", "web")
        assert r.exit_code == 0
        assert "#1 -> #2 -> #3" in r.output

    def test_ready_nothing(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "ready", "web")
        assert r.exit_code == 0
        assert "Nothing is ready" in r.output

    def test_ready_lists_unblocked(self, cli_runner, taskmaster, make_raw_task):
        taskmaster.write_hub({"web": [make_raw_task(1, status="done"), make_raw_task(2, dependencies=[1])]})
        r = _invoke(cli_runner, taskmaster, "ready", "web")
        assert r.exit_code == 0
        assert "#2" in r.output


# ── Task mutations ───────────────────────────────────────────────────


class TestTaskCommands:
    """status, set, add, delete."""

    def test_status(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "status", "web", "3", "in-progress")
        assert r.exit_code == 0
        assert _web_tasks(board_dir)[2]["status"] == "in-progress"

    def test_status_missing_task(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "status", "web", "42", "done")
        assert r.exit_code == 1
        assert "not found" in r.output
        assert "web#42" in r.output

    def test_set_fields(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "set", "web", "3", "--branch", "feat/x",
                    "--criterion", "passes", "--criterion", "documented")
        assert r.exit_code == 0
        raw = _web_tasks(board_dir)[2]
        assert raw["branch"] == "feat/x"
        assert raw["acceptanceCriteria"] == ["passes", "documented"]
        assert raw["title"] == "Task 3"

    def test_set_rejects_blank_title(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "set", "web", "3", "--title", "  ")
        assert r.exit_code == 2

    def test_add(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "add", "web", "New task", "-p", "high", "-s", "one", "-s", "two")
        assert r.exit_code == 0
        raw = _web_tasks(board_dir)[3]
        assert raw["id"] == 4
        assert raw["priority"] == "high"
        assert [s["id"] for s in raw["subtasks"]] == [1, 2]

    def test_add_bad_priority(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "add", "web", "x", "-p", "urgent")
        assert r.exit_code == 2

    def test_add_unknown_project(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "add", "nope", "x")
        assert r.exit_code == 1

    def test_delete(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "delete", "web", "3")
        assert r.exit_code == 0
        assert [t["id"] for t in _web_tasks(board_dir)] == [1, 2]


# ── Subtasks ─────────────────────────────────────────────────────────


class TestSubtaskCommands:
    """subtask add / status / delete."""

    def test_add_nested(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "subtask", "add", "web", "2", "Child", "--parent", "2")
        assert r.exit_code == 0
        parent = _web_tasks(board_dir)[1]["subtasks"][1]
        assert parent["subtasks"] == [{"id": 1, "title": "Child", "status": "pending"}]

    def test_add_missing_parent(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "subtask", "add", "web", "2", "Child", "--parent", "9")
        assert r.exit_code == 1
        assert "web#2.9" in r.output

    def test_status_completes_task(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "subtask", "status", "web", "2", "2", "done")
        assert r.exit_code == 0
        assert _web_tasks(board_dir)[1]["status"] == "done"

    def test_delete(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "subtask", "delete", "web", "2", "1")
        assert r.exit_code == 0
        assert [s["id"] for s in _web_tasks(board_dir)[1]["subtasks"]] == [2]


# ── Dependencies ─────────────────────────────────────────────────────


class TestDepsCommands:
    """deps add / remove / validate / fix."""

    def test_add_and_remove(self, cli_runner, board_dir):
        assert _invoke(cli_runner, board_dir, "deps", "add", "web", "3", "1").exit_code == 0
        assert _web_tasks(board_dir)[2]["dependencies"] == [2, 1]
        assert _invoke(cli_runner, board_dir, "deps", "remove", "web", "3", "2").exit_code == 0
        assert _web_tasks(board_dir)[2]["dependencies"] == [1]

    def test_add_self_edge_rejected(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "deps", "add", "web", "3", "3")
        assert r.exit_code == 1
        assert _web_tasks(board_dir)[2]["dependencies"] == [2]

    def test_validate_clean(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "deps", "validate", "web")
        assert r.exit_code == 0
        assert "valid" in r.output

    def test_validate_reports_and_strict_fails(self, cli_runner, taskmaster, make_raw_task):
        taskmaster.write_hub({"web": [make_raw_task(1, dependencies=[9]), make_raw_task(2, dependencies=[2])]})
        r = _invoke(cli_runner, taskmaster, "deps", "validate", "web")
        assert r.exit_code == 0
        assert "2 dependency issue" in r.output
        assert "non-existent #9" in r.output
        r = _invoke(cli_runner, taskmaster, "deps", "validate", "web", "--strict")
        assert r.exit_code == 1

    def test_fix(self, cli_runner, taskmaster, make_raw_task):
        taskmaster.write_hub({"web": [make_raw_task(1, dependencies=[9]), make_raw_task(2, dependencies=[2, 1])]})
        r = _invoke(cli_runner, taskmaster, "deps", "fix", "web")
        assert r.exit_code == 0
        assert "removed 2" in r.output
        assert [t["dependencies"] for t in _web_tasks(taskmaster)] == [[], [1]]

    def test_fix_unknown_project(self, cli_runner, board_dir):
        r = _invoke(cli_runner, board_dir, "deps", "fix", "nope")
        assert r.exit_code == 1


# ── Store failures ───────────────────────────────────────────────────


class TestStoreFailure:
    """A corrupt task file ends the command with exit code 1."""

    def test_corrupt_hub_on_write(self, cli_runner, taskmaster):
        taskmaster.hub_path.parent.mkdir(parents=True, exist_ok=True)
        write_text(taskmaster.hub_path, "{nope")
        r = _invoke(cli_runner, taskmaster, "status", "web", "1", "done")
        assert r.exit_code == 1
        assert "not valid JSON" in r.output

    def test_env_var_base(self, cli_runner, board_dir, monkeypatch):
        monkeypatch.setenv("TASKMASTER_BASE", str(board_dir.base))
        r = cli_runner.invoke(main, ["projects"])
        assert r.exit_code == 0
        assert "web" in r.output

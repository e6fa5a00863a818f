"""E2E test: the full command-line workflow.

init -> create -> scenario -> steps -> status -> views -> list/show -> validate
-> regenerate -> delete, plus the error exit codes.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from mucm.cli import cli

pytestmark = pytest.mark.e2e

RENDERED = Path("docs") / "use-cases" / "authentication"


@pytest.fixture
def runner(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["init", "--name", "Shop"])
    assert result.exit_code == 0, result.output
    return runner


class TestFullWorkflow:
    def test_init_to_delete(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["create", "User Login", "-c", "authentication", "-p", "high", "--field", "business_value=Retention"],
        )
        assert result.exit_code == 0, result.output
        assert "Created UC-AUT-001: User Login" in result.output
        assert (tmp_path / RENDERED / "UC-AUT-001-business-normal.md").exists()

        result = runner.invoke(cli, ["scenario", "add", "UC-AUT-001", "Happy Path"])
        assert result.exit_code == 0, result.output
        assert "Added scenario UC-AUT-001-S01: Happy Path" in result.output

        result = runner.invoke(
            cli,
            ["step", "add", "UC-AUT-001", "UC-AUT-001-S01", "Enters credentials", "--receiver", "System"],
        )
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["scenario", "status", "UC-AUT-001", "UC-AUT-001-S01", "implemented"])
        assert result.exit_code == 0, result.output
        assert "UC-AUT-001 is implemented" in result.output

        result = runner.invoke(cli, ["view", "add", "UC-AUT-001", "developer"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / RENDERED / "UC-AUT-001-developer-normal.md").exists()

        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "UC-AUT-001" in result.output
        assert "implemented" in result.output

        result = runner.invoke(cli, ["show", "UC-AUT-001"])
        assert result.exit_code == 0
        assert "UC-AUT-001: User Login" in result.output
        assert "1. User -> System: Enters credentials" in result.output

        result = runner.invoke(cli, ["validate"])
        assert result.exit_code == 0, result.output
        assert "No problems found." in result.output

        result = runner.invoke(cli, ["regenerate"])
        assert result.exit_code == 0
        assert "Regenerated 3 file(s)." in result.output

        result = runner.invoke(cli, ["delete", "UC-AUT-001", "--yes"])
        assert result.exit_code == 0
        assert "Deleted UC-AUT-001." in result.output
        assert not (tmp_path / RENDERED / "UC-AUT-001-business-normal.md").exists()

    def test_delete_asks_first(self, runner: CliRunner, tmp_path: Path) -> None:
        runner.invoke(cli, ["create", "User Login", "-c", "authentication"])
        result = runner.invoke(cli, ["delete", "UC-AUT-001"], input="n\n")
        assert "Aborted." in result.output
        assert (tmp_path / RENDERED / "UC-AUT-001-business-normal.md").exists()

    def test_init_twice_warns(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already initialized" in result.output

    def test_actors(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["actor", "add", "shopper", "Shopper", "--field", "goal=Buy"])
        assert result.exit_code == 0
        assert "Added persona shopper: Shopper" in result.output
        result = runner.invoke(cli, ["actor", "list"])
        assert "shopper" in result.output
        result = runner.invoke(cli, ["actor", "remove", "shopper"])
        assert "Removed actor shopper" in result.output


class TestErrorExitCodes:
    def test_not_initialized(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["list"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_missing_use_case(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["show", "UC-AUT-404"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_invalid_transition(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["create", "User Login", "-c", "authentication"])
        runner.invoke(cli, ["scenario", "add", "UC-AUT-001", "Happy Path"])
        runner.invoke(cli, ["scenario", "status", "UC-AUT-001", "UC-AUT-001-S01", "tested"])
        result = runner.invoke(cli, ["scenario", "status", "UC-AUT-001", "UC-AUT-001-S01", "in_progress"])
        assert result.exit_code == 1
        assert "Cannot move scenario status" in result.output

    def test_bad_field_pair(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["create", "User Login", "-c", "authentication", "--field", "oops"])
        assert result.exit_code == 1
        assert "Expected KEY=VALUE" in result.output

    def test_validate_reports_problems(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["create", "User Login", "-c", "authentication"])
        result = runner.invoke(cli, ["validate"])
        assert result.exit_code == 1
        assert "missing_required_field" in result.output

    def test_strict_render_failure(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--strict", "create", "User Login", "-c", "authentication"])
        assert result.exit_code == 2
        assert "Error:" in result.output

    def test_broken_record_is_a_system_error(self, runner: CliRunner, tmp_path: Path) -> None:
        runner.invoke(cli, ["create", "User Login", "-c", "authentication"])
        source = tmp_path / "use-cases-data" / "authentication" / "UC-AUT-001.toml"
        source.write_text("id = \n")
        result = runner.invoke(cli, ["show", "UC-AUT-001"])
        assert result.exit_code == 2

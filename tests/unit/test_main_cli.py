"""Unit tests for the backlog_agent.main CLI module.

This module tests:
- Configuration loading and error handling
- campaign run (dry-run rehearsals, options, invalid input)
- audit categories / audit prompt
- budget status
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from backlog_agent.main import cli

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep structlog's global configuration out of CLI tests."""
    with patch("backlog_agent.main.configure_logging") as configure:
        yield configure


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "backlog-agent.yaml"
    path.write_text(
        """
budget:
  dailyLimitUsd: 20
  monthly_limit_usd: 100
  per_issue_limit_usd: 4
parallel:
  max_concurrent: 2
logging:
  level: WARNING
"""
    )
    return path


@pytest.fixture
def issues_file(tmp_path):
    path = tmp_path / "issues.yaml"
    path.write_text(
        """
- url: https://github.com/acme/api/issues/1
  title: Crash on empty profile
  number: 1
  labels: [bug]
- url: https://github.com/acme/api/issues/2
  title: Slow search
- id: acme/api#3
  url: https://github.com/acme/api/issues/3
  title: Typo in README
  state: abandoned
"""
    )
    return path


# =============================================================================
# Group options
# =============================================================================


class TestCliGroup:
    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "--config" in result.output
        assert "--log-level" in result.output

    def test_missing_config_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "budget", "status"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_log_level_from_config(self, cli_runner, config_file, no_logging_setup):
        cli_runner.invoke(cli, ["--config", str(config_file), "budget", "status"])

        no_logging_setup.assert_called_once_with("WARNING")

    def test_log_level_option_wins(self, cli_runner, config_file, no_logging_setup):
        cli_runner.invoke(cli, ["--config", str(config_file), "--log-level", "DEBUG", "budget", "status"])

        no_logging_setup.assert_called_once_with("DEBUG")


# =============================================================================
# campaign run
# =============================================================================


class TestCampaignRun:
    def test_dry_run(self, cli_runner, issues_file):
        result = cli_runner.invoke(cli, ["campaign", "run", str(issues_file)])

        assert result.exit_code == 0, result.output
        assert "[1] started" in result.output
        assert "issue-succeeded https://github.com/acme/api/issues/1" in result.output
        assert "issue-succeeded acme/api#3" in result.output
        assert "completed" in result.output
        assert "Processed 3 issue(s): 3 succeeded, 0 failed, 0 skipped; total cost $0.00" in result.output

    def test_max_issues_and_concurrency(self, cli_runner, config_file, issues_file):
        result = cli_runner.invoke(
            cli,
            ["--config", str(config_file), "campaign", "run", str(issues_file), "--max-issues", "2", "--concurrency", "2"],
        )

        assert result.exit_code == 0, result.output
        assert "Processed 2 issue(s)" in result.output

    def test_audit_category(self, cli_runner, issues_file):
        result = cli_runner.invoke(cli, ["campaign", "run", str(issues_file), "--category", "security"])

        assert result.exit_code == 0, result.output
        assert "category=security" in result.output

    def test_unknown_category(self, cli_runner, issues_file):
        result = cli_runner.invoke(cli, ["campaign", "run", str(issues_file), "--category", "astrology"])

        assert result.exit_code == 1
        assert "Unknown audit category: astrology" in result.output
        assert "started" not in result.output

    def test_dry_run_toggle_not_offered(self, cli_runner, issues_file):
        result = cli_runner.invoke(cli, ["campaign", "run", str(issues_file), "--no-dry-run"])

        assert result.exit_code == 2
        assert "No such option" in result.output

    def test_help_describes_rehearsal(self, cli_runner):
        result = cli_runner.invoke(cli, ["campaign", "run", "--help"])

        assert result.exit_code == 0
        assert "dry-run processor" in result.output
        assert "--dry-run" not in result.output

    def test_invalid_issues_file(self, cli_runner, tmp_path):
        path = tmp_path / "issues.yaml"
        path.write_text("url: https://github.com/acme/api/issues/1\n")

        result = cli_runner.invoke(cli, ["campaign", "run", str(path)])

        assert result.exit_code == 1
        assert "must contain a YAML list" in result.output

    def test_entry_without_title(self, cli_runner, tmp_path):
        path = tmp_path / "issues.yaml"
        path.write_text("- url: https://github.com/acme/api/issues/1\n")

        result = cli_runner.invoke(cli, ["campaign", "run", str(path)])

        assert result.exit_code == 1
        assert "needs at least 'url' and 'title'" in result.output

    def test_unknown_state(self, cli_runner, tmp_path):
        path = tmp_path / "issues.yaml"
        path.write_text("- url: https://github.com/acme/api/issues/1\n  title: x\n  state: wontfix\n")

        result = cli_runner.invoke(cli, ["campaign", "run", str(path)])

        assert result.exit_code == 1
        assert "unknown state: wontfix" in result.output

    def test_invalid_number(self, cli_runner, tmp_path):
        path = tmp_path / "issues.yaml"
        path.write_text("- url: https://github.com/acme/api/issues/1\n  title: x\n  number: abc\n")

        result = cli_runner.invoke(cli, ["campaign", "run", str(path)])

        assert result.exit_code == 1
        assert "Error: Issue entry 1 has invalid number: abc" in result.output

    def test_labels_must_be_a_list(self, cli_runner, tmp_path):
        path = tmp_path / "issues.yaml"
        path.write_text("- url: https://github.com/acme/api/issues/1\n  title: x\n  labels: bug\n")

        result = cli_runner.invoke(cli, ["campaign", "run", str(path)])

        assert result.exit_code == 1
        assert "Error: Issue entry 1 labels must be a list: bug" in result.output

    def test_zero_concurrency_rejected(self, cli_runner, issues_file):
        result = cli_runner.invoke(cli, ["campaign", "run", str(issues_file), "--concurrency", "0"])

        assert result.exit_code == 2


# =============================================================================
# audit
# =============================================================================


class TestAudit:
    def test_categories(self, cli_runner):
        result = cli_runner.invoke(cli, ["audit", "categories"])

        assert result.exit_code == 0
        for category in ("security", "documentation", "code-quality", "performance", "test-coverage"):
            assert category in result.output
        assert "Security Auditor" in result.output

    def test_prompt(self, cli_runner):
        result = cli_runner.invoke(
            cli,
            ["audit", "prompt", "performance", "--owner", "acme", "--repo", "widgets", "--repo-path", "/work/widgets"],
        )

        assert result.exit_code == 0
        assert "You are performing a performance audit for the repository acme/widgets." in result.output
        assert "Repository path: /work/widgets" in result.output
        assert "File patterns:" in result.output

    def test_prompt_unknown_category(self, cli_runner):
        result = cli_runner.invoke(cli, ["audit", "prompt", "astrology", "--owner", "acme", "--repo", "widgets"])

        assert result.exit_code == 1
        assert "Unknown audit category: astrology" in result.output


# =============================================================================
# budget
# =============================================================================


class TestBudgetStatus:
    def test_defaults(self, cli_runner):
        result = cli_runner.invoke(cli, ["budget", "status"])

        assert result.exit_code == 0
        assert "Daily limit:         $50.00" in result.output
        assert "Per-iteration limit: $2.00" in result.output

    def test_from_config(self, cli_runner, config_file):
        result = cli_runner.invoke(cli, ["--config", str(config_file), "budget", "status"])

        assert result.exit_code == 0
        assert "Daily limit:         $20.00" in result.output
        assert "Monthly limit:       $100.00" in result.output
        assert "Effective per-issue: $4.00" in result.output

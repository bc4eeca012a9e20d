"""CLI entry point for backlog-agent."""

import asyncio
import sys
import uuid
from pathlib import Path
from typing import Any

import click
import structlog
import yaml

from backlog_agent.audit.auditors import AuditContext, create_auditor, get_available_categories
from backlog_agent.campaigns.models import Campaign, CampaignEvent, CampaignOptions, CampaignResult
from backlog_agent.campaigns.runner import CampaignRunner
from backlog_agent.config.settings import AgentSettings
from backlog_agent.engine.budget import BudgetGuard
from backlog_agent.enums import FailurePolicy, IssueState
from backlog_agent.exceptions import BacklogAgentError, ConfigurationError
from backlog_agent.models.domain import Issue
from backlog_agent.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option("--config", default=None, help="Path to YAML configuration file")
@click.option("--log-level", default=None, help="Logging level (overrides logging.level)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """backlog-agent: Budgeted AI campaigns over issue backlogs."""
    try:
        settings = AgentSettings.from_yaml(config) if config else AgentSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    configure_logging(log_level or settings.logging.level)
    ctx.obj = {"settings": settings}


# ----------------------------------------------------------------------
# campaign
# ----------------------------------------------------------------------


@cli.group()
def campaign() -> None:
    """Run campaigns over a list of issues."""


@campaign.command("run")
@click.argument("issues_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Issues processed at once")
@click.option("--category", default=None, help="Audit category for audit campaigns")
@click.option("--max-issues", type=click.IntRange(min=0), default=None, help="Process at most this many issues")
@click.option("--abort-on-failure", is_flag=True, help="Stop the campaign after the first failure")
@click.option("--name", default=None, help="Campaign name")
@click.pass_context
def run_campaign(
    ctx: click.Context,
    issues_file: Path,
    concurrency: int | None,
    category: str | None,
    max_issues: int | None,
    abort_on_failure: bool,
    name: str | None,
) -> None:
    """Rehearse a campaign over the issues listed in ISSUES_FILE.

    Issues go through the dry-run processor; no agent is invoked and
    nothing is spent.
    """
    settings: AgentSettings = ctx.obj["settings"]
    try:
        issues = _load_issues(issues_file)
        options = CampaignOptions(
            max_concurrent=concurrency or settings.parallel.max_concurrent,
            failure_policy=FailurePolicy.ABORT_CAMPAIGN if abort_on_failure else FailurePolicy.CONTINUE,
            dry_run=True,
            category=category,
            max_issues=max_issues,
        )
        campaign = Campaign(
            id=f"campaign-{uuid.uuid4().hex[:8]}",
            name=name or issues_file.stem,
            issues=issues,
            options=options,
        )
        result = asyncio.run(_run_campaign(settings, campaign))
    except BacklogAgentError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("campaign_run_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    click.echo(
        f"Processed {result.processed} issue(s): {result.succeeded} succeeded, "
        f"{result.failed} failed, {result.skipped} skipped; total cost ${result.total_cost:.2f}"
    )
    if result.stop_reason:
        click.echo(f"Stopped early: {result.stop_reason}")
    if result.failed:
        sys.exit(1)


async def _run_campaign(settings: AgentSettings, campaign: Campaign) -> CampaignResult:
    runner = CampaignRunner.for_campaign(campaign, settings, budget=BudgetGuard(settings.budget))
    runner.on_event(_echo_event)
    return await runner.run(campaign)


def _echo_event(event: CampaignEvent) -> None:
    details = " ".join(
        f"{key}={value}" for key, value in event.data.items() if value is not None and key != "result"
    )
    line = f"[{event.sequence}] {event.type}"
    if event.issue_id:
        line += f" {event.issue_id}"
    if details:
        line += f" {details}"
    click.echo(line)


def _load_issues(path: Path) -> list[Issue]:
    """Read issues from a YAML list of mappings.

    Each entry needs ``url`` and ``title``; ``id`` defaults to the url and
    ``number`` to the entry's position.

    Raises:
        ConfigurationError: If the file is not a list of valid issue entries.
    """
    try:
        entries = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError(f"Issues file must contain a YAML list: {path}")

    issues = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict) or "url" not in entry or "title" not in entry:
            raise ConfigurationError(f"Issue entry {position} needs at least 'url' and 'title'")
        issues.append(_issue_from_entry(entry, position))
    return issues


def _issue_from_entry(entry: dict[str, Any], position: int) -> Issue:
    try:
        state = IssueState(entry.get("state", IssueState.DISCOVERED.value))
    except ValueError as e:
        raise ConfigurationError(f"Issue entry {position} has unknown state: {entry['state']}") from e

    try:
        number = int(entry.get("number", position))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Issue entry {position} has invalid number: {entry['number']}") from e

    labels = entry.get("labels") or []
    if not isinstance(labels, list):
        raise ConfigurationError(f"Issue entry {position} labels must be a list: {labels}")

    return Issue(
        id=str(entry.get("id", entry["url"])),
        url=entry["url"],
        number=number,
        title=entry["title"],
        body=entry.get("body", ""),
        labels=[str(label) for label in labels],
        state=state,
        author=entry.get("author", ""),
        project_id=entry.get("project_id", ""),
    )


# ----------------------------------------------------------------------
# audit
# ----------------------------------------------------------------------


@cli.group()
def audit() -> None:
    """Inspect audit categories and prompts."""


@audit.command("categories")
def audit_categories() -> None:
    """List the available audit categories."""
    for category in get_available_categories():
        auditor = create_auditor(category.value)
        click.echo(f"{category.value:<15} {auditor.display_name}")


@audit.command("prompt")
@click.argument("category")
@click.option("--owner", required=True, help="Repository owner/organization")
@click.option("--repo", required=True, help="Repository name")
@click.option("--repo-path", default=".", help="Local checkout path")
def audit_prompt(category: str, owner: str, repo: str, repo_path: str) -> None:
    """Print the prompt and file patterns for an audit CATEGORY."""
    try:
        auditor = create_auditor(category)
    except BacklogAgentError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    context = AuditContext(owner=owner, repo=repo, repo_path=repo_path)
    click.echo(auditor.build_prompt(repo_path, context))
    click.echo("")
    click.echo("File patterns:")
    for pattern in auditor.get_file_patterns():
        click.echo(f"  {pattern}")


# ----------------------------------------------------------------------
# budget
# ----------------------------------------------------------------------


@cli.group()
def budget() -> None:
    """Inspect spend limits."""


@budget.command("status")
@click.pass_context
def budget_status(ctx: click.Context) -> None:
    """Print the configured spend limits."""
    settings: AgentSettings = ctx.obj["settings"]
    limits = settings.budget
    click.echo(f"Daily limit:         ${limits.daily_limit_usd:.2f}")
    click.echo(f"Monthly limit:       ${limits.monthly_limit_usd:.2f}")
    click.echo(f"Per-issue limit:     ${limits.per_issue_limit_usd:.2f}")
    click.echo(f"Per-iteration limit: ${limits.per_feedback_iteration_usd:.2f}")
    click.echo(f"Effective per-issue: ${BudgetGuard(limits).effective_per_issue_budget():.2f}")


if __name__ == "__main__":
    cli()

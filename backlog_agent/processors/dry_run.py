"""Dry-run processor for rehearsing campaigns without side effects."""

import asyncio

import structlog

from backlog_agent.models.domain import Issue
from backlog_agent.processors.base import IssueProcessor, ProcessingContext, ProcessingResult

log = structlog.get_logger(__name__)


class DryRunProcessor(IssueProcessor):
    """Report a zero-cost success for every issue.

    No agent is invoked and no branch or pull request is created. The
    campaign runner's control flow is unchanged, which makes this processor
    useful for validating scheduling and budget logic.

    Args:
        delay: Seconds to sleep per issue to simulate work.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.processed: list[str] = []

    async def process(self, issue: Issue, context: ProcessingContext) -> ProcessingResult:
        log.info(
            "dry_run_process",
            issue_id=issue.id,
            issue_url=issue.url,
            session_id=context.session_id,
            category=context.category,
        )
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        self.processed.append(issue.id)
        return ProcessingResult(success=True, cost_usd=0.0)

    def estimate_cost(self, issue: Issue, context: ProcessingContext) -> float | None:
        return 0.0

"""
Campaign data types: inputs, events and results.

A campaign is an ordered set of issues plus the options for one run. It is
constructed by the caller and handed to the runner; the core never persists
it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from backlog_agent.audit.auditors import AuditContext
from backlog_agent.enums import FailurePolicy
from backlog_agent.models.domain import Issue


class CampaignOptions(BaseModel):
    """Options for one campaign run."""

    max_concurrent: int = Field(default=1, ge=1, description="Issues processed at the same time")
    failure_policy: FailurePolicy = Field(
        default=FailurePolicy.CONTINUE, description="Continue or stop after a failed issue"
    )
    dry_run: bool = Field(default=False, description="Use the side-effect free processor")
    category: str | None = Field(default=None, description="Audit category for audit campaigns")
    max_issues: int | None = Field(default=None, ge=0, description="Process at most this many issues")
    skip_retries: bool = Field(default=False, description="Skip issues that were attempted before")
    audit_context: AuditContext | None = Field(default=None, description="Repository for audit campaigns")


@dataclass
class Campaign:
    """An ordered collection of issues and the options to run them with."""

    id: str
    name: str
    issues: list[Issue]
    options: CampaignOptions = field(default_factory=CampaignOptions)
    description: str = ""

    @property
    def is_audit(self) -> bool:
        """Audit campaigns report findings instead of opening pull requests."""
        return self.options.category is not None


class CampaignEventType(str, Enum):
    """Kinds of events emitted by the campaign runner."""

    STARTED = "started"
    ISSUE_STARTED = "issue-started"
    ISSUE_SUCCEEDED = "issue-succeeded"
    ISSUE_FAILED = "issue-failed"
    ISSUE_SKIPPED = "issue-skipped"
    BUDGET_EXCEEDED = "budget-exceeded"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CampaignEvent:
    """One entry of the runner's totally ordered event stream."""

    type: CampaignEventType
    campaign_id: str
    sequence: int
    timestamp: datetime
    issue_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class OutcomeStatus(str, Enum):
    """Final status of one issue within a campaign run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


@dataclass
class IssueOutcome:
    """What happened to one issue during a run."""

    issue_id: str
    status: OutcomeStatus
    cost_usd: float = 0.0
    pr_url: str | None = None
    error: str | None = None
    reason: str | None = None
    session_id: str | None = None


@dataclass
class CampaignResult:
    """Summary carried by the terminal ``completed`` event."""

    campaign_id: str
    outcomes: list[IssueOutcome] = field(default_factory=list)
    total_cost: float = 0.0
    duration_seconds: float = 0.0
    interrupted: bool = False
    stop_reason: str | None = None

    def outcomes_for(self, issue_id: str) -> list[IssueOutcome]:
        """Outcomes recorded for an issue; more than one if it was queued twice."""
        return [outcome for outcome in self.outcomes if outcome.issue_id == issue_id]

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def processed(self) -> int:
        """Issues that reached a success or failure outcome."""
        return self.succeeded + self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "total_cost": round(self.total_cost, 4),
            "duration_seconds": round(self.duration_seconds, 3),
            "interrupted": self.interrupted,
            "stop_reason": self.stop_reason,
            "outcomes": [
                {
                    "issue_id": outcome.issue_id,
                    "status": outcome.status.value,
                    "cost_usd": outcome.cost_usd,
                    "pr_url": outcome.pr_url,
                    "error": outcome.error,
                    "reason": outcome.reason,
                }
                for outcome in self.outcomes
            ],
        }

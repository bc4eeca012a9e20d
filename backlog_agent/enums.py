"""Enumerations for issue, session, budget and audit types."""

from enum import Enum


class IssueState(str, Enum):
    """Lifecycle state of a tracked issue.

    The allowed moves between these states live in
    ``backlog_agent.engine.transitions.VALID_TRANSITIONS``.
    """

    DISCOVERED = "discovered"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    PR_CREATED = "pr_created"
    AWAITING_FEEDBACK = "awaiting_feedback"
    ITERATING = "iterating"
    MERGED = "merged"
    CLOSED = "closed"
    ABANDONED = "abandoned"

    def __str__(self) -> str:
        return self.value


class SessionStatus(str, Enum):
    """Status of an AI-assisted work session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    AWAITING_FEEDBACK = "awaiting_feedback"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Check if no further status changes are possible."""
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class AuditCategory(str, Enum):
    """Audit categories known to the auditor registry."""

    SECURITY = "security"
    DOCUMENTATION = "documentation"
    CODE_QUALITY = "code-quality"
    PERFORMANCE = "performance"
    TEST_COVERAGE = "test-coverage"

    def __str__(self) -> str:
        return self.value


class BudgetScope(str, Enum):
    """Spend limit that rejected a reservation."""

    DAILY = "daily"
    MONTHLY = "monthly"
    PER_ISSUE = "per_issue"
    PER_ITERATION = "per_iteration"

    def __str__(self) -> str:
        return self.value

    @property
    def halts_campaign(self) -> bool:
        """Check if hitting this limit stops the whole campaign."""
        return self in (BudgetScope.DAILY, BudgetScope.MONTHLY)


class FailurePolicy(str, Enum):
    """What a campaign does after an issue fails."""

    CONTINUE = "continue"
    ABORT_CAMPAIGN = "abort-campaign"

    def __str__(self) -> str:
        return self.value


class AgentMode(str, Enum):
    """Operating mode: open-source contribution or business backlog."""

    OSS = "oss"
    B2B = "b2b"

    def __str__(self) -> str:
        return self.value

"""
Domain models for the campaign system.

This module contains the data classes representing the core entities the
campaign runner works with: issues and their transition trail, AI work
sessions, and cross-session bookkeeping per issue. Persistence of these
objects lives outside the core; they are plain in-memory records.

Example:
    Creating an issue discovered by a search::

        issue = Issue(
            id="gh-acme-widgets-42",
            url="https://github.com/acme/widgets/issues/42",
            number=42,
            title="Crash when config file is empty",
            body="Steps to reproduce...",
            labels=["bug", "good first issue"],
            author="jdoe",
        )
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from backlog_agent.enums import IssueState, SessionStatus


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class IssueTransition:
    """Immutable record of one issue state change.

    Transition records form an append-only audit trail and are never
    mutated after creation.
    """

    issue_id: str
    from_state: IssueState
    to_state: IssueState
    timestamp: datetime
    reason: str
    session_id: str | None = None


@dataclass
class Issue:
    """A tracked issue owned by a campaign while it is being processed.

    This is the normalized representation used internally, converted from
    issue-source specific formats (GitHub, Jira, Linear).
    """

    id: str
    """Stable identifier of the issue across sources."""

    url: str
    """Web URL of the issue in its tracker."""

    number: int
    """Human-readable issue number (e.g., #42)."""

    title: str
    """Issue title, typically a single line."""

    body: str = ""
    """Full issue description in markdown format. May be empty."""

    labels: list[str] = field(default_factory=list)
    """Label names attached to the issue."""

    state: IssueState = IssueState.DISCOVERED
    """Current lifecycle state.

    Only change this through ``backlog_agent.engine.transitions.transition``
    so the move is validated and recorded in ``history``.
    """

    author: str = ""
    """Login of the issue creator."""

    assignee: str | None = None
    """Login of the current assignee, if any."""

    created_at: datetime = field(default_factory=utcnow)
    """Timestamp when the issue was created."""

    updated_at: datetime = field(default_factory=utcnow)
    """Timestamp of the last state change or edit."""

    project_id: str = ""
    """Identifier of the project/repository the issue belongs to."""

    has_linked_pr: bool = False
    """Whether a pull request has been linked to the issue."""

    linked_pr_url: str | None = None
    """URL of the linked pull request, if any."""

    history: list[IssueTransition] = field(default_factory=list)
    """Append-only trail of transitions applied to this issue."""

    def link_pr(self, pr_url: str | None) -> None:
        """Record a pull request against this issue."""
        self.linked_pr_url = pr_url
        self.has_linked_pr = pr_url is not None


@dataclass(frozen=True)
class SessionTransition:
    """Immutable record of one session status change."""

    session_id: str
    from_status: SessionStatus
    to_status: SessionStatus
    timestamp: datetime
    reason: str


@dataclass
class Session:
    """A bounded unit of AI-assisted work tied to exactly one issue.

    A session starts ``active`` and ends in exactly one of ``completed`` or
    ``failed``. It may pause for throttling or wait for external feedback
    in between.

    Example:
        Checking whether a session can still accept work::

            if not session.is_terminal and session.status != SessionStatus.PAUSED:
                ...
    """

    id: str
    issue_id: str
    issue_url: str
    provider: str
    model: str
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    turn_count: int = 0
    cost_usd: float = 0.0
    pr_url: str | None = None
    working_directory: str = ""
    can_resume: bool = True
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Check if the session has completed or failed."""
        return self.status.is_terminal


@dataclass
class IssueWorkRecord:
    """Cross-session bookkeeping for one issue.

    Branch and worktree identifiers are opaque to the core; they are owned
    by the version-control collaborator.
    """

    issue_id: str
    session_id: str | None = None
    branch_name: str | None = None
    worktree_path: str | None = None
    pr_number: int | None = None
    pr_url: str | None = None
    attempts: int = 0
    last_attempt_at: datetime | None = None
    total_cost_usd: float = 0.0

    def record_attempt(self, session_id: str) -> None:
        """Count a new attempt at this issue under the given session."""
        self.session_id = session_id
        self.attempts += 1
        self.last_attempt_at = utcnow()

    def add_cost(self, cost_usd: float) -> None:
        self.total_cost_usd += cost_usd

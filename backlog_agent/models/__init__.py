"""Core domain models for the campaign system.

Key Models:
    - Issue: Tracked issue with its lifecycle state and transition trail
    - IssueTransition: Immutable record of one issue state change
    - Session: Bounded unit of AI-assisted work on one issue
    - SessionTransition: Immutable record of one session status change
    - IssueWorkRecord: Attempts and spend for an issue across sessions

Example:
    >>> from backlog_agent.models import Issue
    >>> issue = Issue(id="42", url="https://github.com/o/r/issues/42", number=42, title="Fix X")
"""

from backlog_agent.models.domain import (
    Issue,
    IssueTransition,
    IssueWorkRecord,
    Session,
    SessionTransition,
)

__all__ = [
    "Issue",
    "IssueTransition",
    "IssueWorkRecord",
    "Session",
    "SessionTransition",
]

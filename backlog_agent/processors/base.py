"""
Abstract base class for issue processors.

An issue processor does the work for one issue: invoking the AI agent,
pushing a branch and opening a pull request. The campaign runner depends
only on this interface, so real processors, the dry-run processor and test
doubles are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from backlog_agent.models.domain import Issue

if TYPE_CHECKING:
    from backlog_agent.audit.auditors import AuditContext, Auditor


@dataclass
class ProcessingResult:
    """Outcome reported by a processor for one unit of work."""

    success: bool
    cost_usd: float = 0.0
    pr_url: str | None = None
    error: str | None = None
    turn_count: int = 0

    def __post_init__(self) -> None:
        if self.cost_usd < 0:
            raise ValueError(f"cost_usd must be non-negative, got {self.cost_usd}")


@dataclass
class ProcessingContext:
    """Campaign context handed to a processor along with the issue."""

    campaign_id: str
    session_id: str
    dry_run: bool = False
    category: str | None = None
    auditor: Auditor | None = None
    audit_context: AuditContext | None = None
    iteration: int = 0
    """Feedback iteration number; 0 for the initial attempt."""
    budget_usd: float = 0.0
    """Amount reserved for this unit of work."""


class IssueProcessor(ABC):
    """Abstract base class for issue processor implementations.

    Implementations either return a :class:`ProcessingResult` or raise
    :class:`~backlog_agent.exceptions.ProcessingError`. Any other exception
    is treated by the runner the same way.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def process(self, issue: Issue, context: ProcessingContext) -> ProcessingResult:
        """Do the work for one issue.

        Args:
            issue: Issue to work on. The runner has already moved it to
                ``in_progress`` (or ``iterating``).
            context: Session, campaign and audit information.

        Returns:
            Result with success flag, cost and optional PR URL.

        Raises:
            ProcessingError: If the work failed.
        """
        pass

    def estimate_cost(self, issue: Issue, context: ProcessingContext) -> float | None:
        """Estimate the cost of processing ``issue`` before it starts.

        The runner reserves this amount against the budget. None means no
        estimate is available and the configured per-unit limit is reserved
        instead.
        """
        return None

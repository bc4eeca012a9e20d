"""Custom exception hierarchy for the backlog-agent campaign system.

Exception Hierarchy:
    BacklogAgentError (base)
    ├── ConfigurationError
    ├── InvalidTransitionError
    ├── UnknownCategoryError
    ├── BudgetExceededError
    ├── ProcessingError
    └── WorkflowError
        └── SessionConflictError

Transition and budget errors are expected operating conditions inside a
campaign and are resolved by the runner. Configuration and category errors
are raised at setup time, before any issue is touched.

Example Usage:
    >>> from backlog_agent.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backlog_agent.enums import BudgetScope


class BacklogAgentError(Exception):
    """Base exception for all backlog-agent errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(BacklogAgentError):
    """Configuration-related errors.

    Raised when configuration files are invalid, missing, or contain
    values outside their allowed range (for example a negative budget).
    """

    pass


class InvalidTransitionError(BacklogAgentError):
    """A state transition is not present in the static transition table.

    Always a caller or logic bug; never retried.

    Attributes:
        from_state: State the entity was in
        to_state: State that was requested
    """

    def __init__(self, from_state: str, to_state: str, entity: str = "issue") -> None:
        self.from_state = from_state
        self.to_state = to_state
        self.entity = entity
        super().__init__(f"Invalid {entity} transition: {from_state} -> {to_state}")


class UnknownCategoryError(BacklogAgentError):
    """Audit category outside the fixed set of known categories."""

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"Unknown audit category: {category}")


class BudgetExceededError(BacklogAgentError):
    """A proposed unit of spend would exceed a configured limit.

    Attributes:
        scope: Which limit rejected the spend (daily, monthly, per_issue, per_iteration)
        requested_usd: Amount that was requested
        spent_usd: Amount already committed or reserved against the scope
        limit_usd: Configured limit for the scope
    """

    def __init__(
        self,
        scope: BudgetScope,
        requested_usd: float = 0.0,
        spent_usd: float = 0.0,
        limit_usd: float = 0.0,
    ) -> None:
        self.scope = scope
        self.requested_usd = requested_usd
        self.spent_usd = spent_usd
        self.limit_usd = limit_usd
        super().__init__(
            f"Budget exceeded ({scope}): ${spent_usd:.2f} + ${requested_usd:.2f} > ${limit_usd:.2f}"
        )


class ProcessingError(BacklogAgentError):
    """Opaque failure raised by an issue processor.

    Attributes:
        issue_id: Issue being processed when the failure occurred
        recoverable: Whether a later attempt might succeed
    """

    def __init__(
        self,
        message: str,
        issue_id: str | None = None,
        recoverable: bool = True,
    ) -> None:
        self.issue_id = issue_id
        self.recoverable = recoverable

        full_message = message if not issue_id else f"{message} (issue: {issue_id})"
        super().__init__(full_message)
        # Preserve original message
        self.message = message


class WorkflowError(BacklogAgentError):
    """Campaign orchestration errors, such as starting a runner twice."""

    pass


class SessionConflictError(WorkflowError):
    """An issue already has a non-terminal session."""

    def __init__(self, issue_id: str, session_id: str) -> None:
        self.issue_id = issue_id
        self.session_id = session_id
        super().__init__(f"Issue {issue_id} already has an open session: {session_id}")

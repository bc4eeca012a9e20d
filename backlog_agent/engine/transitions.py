"""
Issue lifecycle state machine.

The transition table is fixed and not configurable. Every state change of an
issue goes through :func:`transition`, which validates the move against the
table, updates the issue and appends an :class:`IssueTransition` to its
audit trail.

Lifecycle::

    discovered -> queued -> in_progress -> pr_created -> awaiting_feedback
                                                 ^              |
                                                 +-- iterating <+
    pr_created / awaiting_feedback / iterating -> merged | closed
    any non-terminal state -> abandoned
    closed / abandoned -> queued   (reopen / retry)

Example:
    >>> record = transition(issue, IssueState.QUEUED, "picked by campaign")
    >>> record.from_state, record.to_state
    (<IssueState.DISCOVERED: 'discovered'>, <IssueState.QUEUED: 'queued'>)
"""

import structlog

from backlog_agent.enums import IssueState
from backlog_agent.exceptions import InvalidTransitionError
from backlog_agent.models.domain import Issue, IssueTransition, utcnow

log = structlog.get_logger(__name__)

VALID_TRANSITIONS: dict[IssueState, frozenset[IssueState]] = {
    IssueState.DISCOVERED: frozenset({IssueState.QUEUED, IssueState.ABANDONED}),
    IssueState.QUEUED: frozenset({IssueState.IN_PROGRESS, IssueState.ABANDONED}),
    IssueState.IN_PROGRESS: frozenset({IssueState.PR_CREATED, IssueState.ABANDONED}),
    IssueState.PR_CREATED: frozenset(
        {IssueState.AWAITING_FEEDBACK, IssueState.MERGED, IssueState.CLOSED, IssueState.ABANDONED}
    ),
    IssueState.AWAITING_FEEDBACK: frozenset(
        {IssueState.ITERATING, IssueState.MERGED, IssueState.CLOSED, IssueState.ABANDONED}
    ),
    IssueState.ITERATING: frozenset(
        {IssueState.PR_CREATED, IssueState.MERGED, IssueState.CLOSED, IssueState.ABANDONED}
    ),
    IssueState.MERGED: frozenset(),
    # Can be reopened
    IssueState.CLOSED: frozenset({IssueState.QUEUED}),
    # Can be retried
    IssueState.ABANDONED: frozenset({IssueState.QUEUED}),
}

TERMINAL_STATES: frozenset[IssueState] = frozenset({IssueState.MERGED})

ACTIVE_STATES: frozenset[IssueState] = frozenset({IssueState.IN_PROGRESS, IssueState.ITERATING})

# States from which a campaign can bring an issue back into the queue.
REQUEUEABLE_STATES: frozenset[IssueState] = frozenset(
    {IssueState.DISCOVERED, IssueState.CLOSED, IssueState.ABANDONED}
)


def is_valid_transition(from_state: IssueState, to_state: IssueState) -> bool:
    """Check if the table allows moving from ``from_state`` to ``to_state``."""
    return to_state in VALID_TRANSITIONS[from_state]


def get_valid_transitions(state: IssueState) -> frozenset[IssueState]:
    """Get the states reachable in one step from ``state``."""
    return VALID_TRANSITIONS[state]


def is_terminal(state: IssueState) -> bool:
    """Check if ``state`` has no outgoing transitions."""
    return not VALID_TRANSITIONS[state]


def transition(
    issue: Issue,
    to_state: IssueState,
    reason: str,
    session_id: str | None = None,
    *,
    allow_self: bool = False,
) -> IssueTransition:
    """Move an issue to a new lifecycle state.

    The move must appear in :data:`VALID_TRANSITIONS` for the issue's current
    state. Requesting the current state again is rejected like any other
    missing entry unless ``allow_self`` is set.

    Args:
        issue: Issue to transition. Mutated on success only.
        to_state: Target state.
        reason: Human-readable reason recorded in the audit trail.
        session_id: Session responsible for the change, if any.
        allow_self: Permit a transition to the current state.

    Returns:
        The new transition record, also appended to ``issue.history``.

    Raises:
        InvalidTransitionError: If the table does not allow the move. The
            issue is left unchanged.
    """
    from_state = issue.state
    is_self = from_state == to_state

    if not (is_self and allow_self) and not is_valid_transition(from_state, to_state):
        log.warning(
            "invalid_issue_transition",
            issue_id=issue.id,
            from_state=from_state.value,
            to_state=to_state.value,
        )
        raise InvalidTransitionError(from_state.value, to_state.value)

    now = utcnow()
    record = IssueTransition(
        issue_id=issue.id,
        from_state=from_state,
        to_state=to_state,
        timestamp=now,
        reason=reason,
        session_id=session_id,
    )

    issue.state = to_state
    issue.updated_at = now
    issue.history.append(record)

    log.info(
        "issue_transition",
        issue_id=issue.id,
        from_state=from_state.value,
        to_state=to_state.value,
        reason=reason,
        session_id=session_id,
    )
    return record

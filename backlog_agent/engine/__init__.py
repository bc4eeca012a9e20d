"""Issue lifecycle engine.

This package holds the pieces the campaign runner coordinates:

Key Components:
    - transitions: Static issue transition table and ``transition()``
    - sessions: Session status table and ``SessionTracker``
    - locks: Per-issue exclusivity lock
    - budget: ``BudgetGuard`` with the reserve/commit/release protocol

Example:
    >>> from backlog_agent.engine import BudgetGuard, transition
    >>> guard = BudgetGuard()
    >>> transition(issue, IssueState.QUEUED, "added to campaign")
"""

from backlog_agent.engine.budget import BudgetGuard, BudgetStatus, Reservation
from backlog_agent.engine.locks import IssueLocks
from backlog_agent.engine.sessions import SESSION_TRANSITIONS, SessionTracker, transition_session
from backlog_agent.engine.transitions import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    get_valid_transitions,
    is_terminal,
    is_valid_transition,
    transition,
)

__all__ = [
    "ACTIVE_STATES",
    "BudgetGuard",
    "BudgetStatus",
    "IssueLocks",
    "Reservation",
    "SESSION_TRANSITIONS",
    "SessionTracker",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "get_valid_transitions",
    "is_terminal",
    "is_valid_transition",
    "transition",
    "transition_session",
]

"""
Session lifecycle and tracking.

A session starts ``active``. It may move to ``awaiting_feedback`` when the
work pauses for external input, to ``paused`` under resource throttling, and
terminates in exactly one of ``completed`` or ``failed``.

The campaign runner guarantees one non-terminal session per issue through
its exclusivity lock; :class:`SessionTracker` also refuses to open a second
one, so callers outside the runner get the same guarantee.
"""

import threading
import uuid

import structlog

from backlog_agent.enums import SessionStatus
from backlog_agent.exceptions import InvalidTransitionError, SessionConflictError
from backlog_agent.models.domain import Issue, Session, SessionTransition, utcnow

log = structlog.get_logger(__name__)

SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.ACTIVE: frozenset(
        {
            SessionStatus.PAUSED,
            SessionStatus.AWAITING_FEEDBACK,
            SessionStatus.COMPLETED,
            SessionStatus.FAILED,
        }
    ),
    SessionStatus.PAUSED: frozenset({SessionStatus.ACTIVE, SessionStatus.FAILED}),
    SessionStatus.AWAITING_FEEDBACK: frozenset(
        {SessionStatus.ACTIVE, SessionStatus.COMPLETED, SessionStatus.FAILED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


def transition_session(session: Session, to_status: SessionStatus, reason: str) -> SessionTransition:
    """Move a session to a new status.

    Raises:
        InvalidTransitionError: If the move is not in :data:`SESSION_TRANSITIONS`.
    """
    from_status = session.status
    if to_status not in SESSION_TRANSITIONS[from_status]:
        raise InvalidTransitionError(from_status.value, to_status.value, entity="session")

    now = utcnow()
    session.status = to_status
    session.last_activity_at = now
    if to_status.is_terminal:
        session.completed_at = now
        session.can_resume = False

    return SessionTransition(
        session_id=session.id,
        from_status=from_status,
        to_status=to_status,
        timestamp=now,
        reason=reason,
    )


class SessionTracker:
    """In-memory registry of sessions keyed by id and by issue.

    Thread Safety:
        All mutations happen under a single lock, so trackers may be shared
        between worker threads as well as coroutines.

    Example:
        >>> tracker = SessionTracker()
        >>> session = tracker.start(issue, provider="claude", model="sonnet")
        >>> tracker.record_turn(session.id, cost_usd=0.12)
        >>> tracker.complete(session.id, pr_url="https://github.com/o/r/pull/7")
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._by_issue: dict[str, list[str]] = {}
        self._transitions: dict[str, list[SessionTransition]] = {}
        self._lock = threading.Lock()

    def start(
        self,
        issue: Issue,
        provider: str,
        model: str,
        working_directory: str = "",
    ) -> Session:
        """Open a new ``active`` session for an issue.

        Raises:
            SessionConflictError: If the issue already has a non-terminal session.
        """
        with self._lock:
            open_session = self._active_session_for(issue.id)
            if open_session is not None:
                raise SessionConflictError(issue.id, open_session.id)

            session = Session(
                id=f"session-{uuid.uuid4().hex[:12]}",
                issue_id=issue.id,
                issue_url=issue.url,
                provider=provider,
                model=model,
                working_directory=working_directory,
            )
            self._sessions[session.id] = session
            self._by_issue.setdefault(issue.id, []).append(session.id)
            self._transitions[session.id] = []

        log.info("session_started", session_id=session.id, issue_id=issue.id, model=model)
        return session

    def get(self, session_id: str) -> Session:
        """Get a session by id.

        Raises:
            KeyError: If the session is unknown.
        """
        return self._sessions[session_id]

    def active_session_for(self, issue_id: str) -> Session | None:
        """Get the non-terminal session for an issue, if there is one."""
        with self._lock:
            return self._active_session_for(issue_id)

    def sessions_for(self, issue_id: str) -> list[Session]:
        """Get every session opened for an issue, oldest first."""
        with self._lock:
            return [self._sessions[sid] for sid in self._by_issue.get(issue_id, [])]

    def history(self, session_id: str) -> list[SessionTransition]:
        return list(self._transitions.get(session_id, []))

    def record_turn(self, session_id: str, cost_usd: float = 0.0) -> Session:
        """Count one agent turn and its cost against a session."""
        with self._lock:
            session = self._sessions[session_id]
            session.turn_count += 1
            session.cost_usd += cost_usd
            session.last_activity_at = utcnow()
            return session

    def pause(self, session_id: str, reason: str = "throttled") -> Session:
        return self._move(session_id, SessionStatus.PAUSED, reason)

    def await_feedback(self, session_id: str, reason: str = "waiting for feedback") -> Session:
        return self._move(session_id, SessionStatus.AWAITING_FEEDBACK, reason)

    def resume(self, session_id: str, reason: str = "resumed") -> Session:
        return self._move(session_id, SessionStatus.ACTIVE, reason)

    def complete(
        self,
        session_id: str,
        pr_url: str | None = None,
        cost_usd: float = 0.0,
        turn_count: int = 0,
    ) -> Session:
        """Close a session successfully, recording its final cost and PR."""
        with self._lock:
            session = self._sessions[session_id]
            session.pr_url = pr_url
            session.cost_usd += cost_usd
            session.turn_count += turn_count
            self._apply(session, SessionStatus.COMPLETED, "completed")
        log.info("session_completed", session_id=session_id, cost_usd=session.cost_usd)
        return session

    def fail(self, session_id: str, error: str, cost_usd: float = 0.0) -> Session:
        """Close a session with a terminal error."""
        with self._lock:
            session = self._sessions[session_id]
            session.error = error
            session.cost_usd += cost_usd
            self._apply(session, SessionStatus.FAILED, error)
        log.warning("session_failed", session_id=session_id, error=error)
        return session

    def _move(self, session_id: str, to_status: SessionStatus, reason: str) -> Session:
        with self._lock:
            session = self._sessions[session_id]
            self._apply(session, to_status, reason)
        log.info("session_status_changed", session_id=session_id, status=to_status.value, reason=reason)
        return session

    def _apply(self, session: Session, to_status: SessionStatus, reason: str) -> None:
        # Caller holds self._lock
        record = transition_session(session, to_status, reason)
        self._transitions[session.id].append(record)

    def _active_session_for(self, issue_id: str) -> Session | None:
        for session_id in self._by_issue.get(issue_id, []):
            session = self._sessions[session_id]
            if not session.is_terminal:
                return session
        return None

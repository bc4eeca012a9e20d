"""
Campaign runner: drives a batch of issues through processing.

The runner is the orchestration core of the system. For a campaign it:

- Schedules issues on a bounded pool of asyncio workers
- Consults the budget guard before each unit of work
- Guarantees one session per issue through the exclusivity lock
- Drives issue and session state transitions
- Delegates the actual work to an :class:`IssueProcessor`
- Emits a totally ordered event stream to registered observers

Unit Lifecycle:
    1. Stop dequeuing once the campaign is halted. A daily/monthly budget
       halt abandons every issue still queued; cancellation and the abort
       failure policy leave them untouched
    2. Acquire exclusivity on the issue id, or skip it
    3. Reserve spend; on rejection abandon the issue
    4. Move the issue to ``in_progress``, open a session, call the processor
    5. On success move to ``pr_created`` (audit campaigns stop here without a
       pull request) and commit the actual spend
    6. On failure abandon the issue and settle the reservation
    7. Release exclusivity

Error Handling:
    Budget and transition violations are resolved per issue: the issue is
    abandoned and an ``issue-failed`` event is emitted. Unknown audit
    categories and concurrent ``run`` calls are rejected before any issue is
    touched. Every run ends with a ``completed`` event.

Example:
    >>> runner = CampaignRunner(DryRunProcessor(), BudgetGuard(settings.budget))
    >>> runner.on_event(lambda event: print(event.type, event.issue_id))
    >>> result = await runner.run(campaign)
    >>> result.succeeded
    3
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from backlog_agent.audit.auditors import Auditor, create_auditor
from backlog_agent.campaigns.models import (
    Campaign,
    CampaignEvent,
    CampaignEventType,
    CampaignResult,
    IssueOutcome,
    OutcomeStatus,
)
from backlog_agent.config.settings import AgentSettings
from backlog_agent.engine.budget import BudgetGuard, Reservation
from backlog_agent.engine.locks import IssueLocks
from backlog_agent.engine.sessions import SessionTracker
from backlog_agent.engine.transitions import REQUEUEABLE_STATES, is_valid_transition, transition
from backlog_agent.enums import BudgetScope, FailurePolicy, IssueState, SessionStatus
from backlog_agent.exceptions import (
    BudgetExceededError,
    ConfigurationError,
    InvalidTransitionError,
    ProcessingError,
    WorkflowError,
)
from backlog_agent.models.domain import Issue, IssueWorkRecord, Session, utcnow
from backlog_agent.processors.base import IssueProcessor, ProcessingContext, ProcessingResult
from backlog_agent.processors.dry_run import DryRunProcessor
from backlog_agent.utils.logging_config import get_logger

CampaignEventHandler = Callable[[CampaignEvent], None]


class CampaignRunner:
    """Run campaigns of issues under budget, concurrency and exclusivity rules.

    Attributes:
        processor: Does the work for each issue.
        budget: Shared spend guard.
        sessions: Session registry.
        locks: Per-issue exclusivity lock.
        work_records: Attempts and spend per issue id, kept across runs.
        settings: Provider/model used when opening sessions.
        log: Bound structlog logger used for all runner output.
    """

    def __init__(
        self,
        processor: IssueProcessor,
        budget: BudgetGuard,
        *,
        sessions: SessionTracker | None = None,
        locks: IssueLocks | None = None,
        work_records: dict[str, IssueWorkRecord] | None = None,
        settings: AgentSettings | None = None,
        log: Any = None,
    ) -> None:
        self.processor = processor
        self.budget = budget
        self.sessions = sessions if sessions is not None else SessionTracker()
        self.locks = locks if locks is not None else IssueLocks()
        self.work_records = work_records if work_records is not None else {}
        self.settings = settings if settings is not None else AgentSettings()
        self.log = log if log is not None else get_logger(__name__, component="campaign_runner")

        self._handlers: list[CampaignEventHandler] = []
        self._sequence = 0
        self._running = False
        self._cancel_requested = False
        self._aborted = False
        self._halt_error: BudgetExceededError | None = None

    @classmethod
    def for_campaign(
        cls,
        campaign: Campaign,
        settings: AgentSettings,
        processor: IssueProcessor | None = None,
        **kwargs: Any,
    ) -> CampaignRunner:
        """Build a runner with the processor the campaign calls for.

        Dry-run campaigns always get a :class:`DryRunProcessor`; other
        campaigns must supply a real processor.

        Raises:
            ConfigurationError: If a non-dry-run campaign has no processor.
        """
        if campaign.options.dry_run:
            processor = DryRunProcessor()
        elif processor is None:
            raise ConfigurationError(f"Campaign {campaign.id} needs an issue processor unless dry_run is set")

        budget = kwargs.pop("budget", None) or BudgetGuard(settings.budget)
        return cls(processor, budget, settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Observers and control
    # ------------------------------------------------------------------

    def on_event(self, handler: CampaignEventHandler) -> Callable[[], None]:
        """Register an observer. Returns a callable that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def cancel(self) -> None:
        """Stop dequeuing new issues. In-flight issues run to completion."""
        if self._running:
            self._cancel_requested = True
            self.log.info("campaign_cancel_requested")

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Campaign execution
    # ------------------------------------------------------------------

    async def run(self, campaign: Campaign) -> CampaignResult:
        """Process every issue of a campaign.

        Args:
            campaign: Issues and options for this run.

        Returns:
            Summary of per-issue outcomes and aggregate spend. The same
            object is attached to the ``completed`` event.

        Raises:
            UnknownCategoryError: If the campaign names an unknown audit
                category. Raised before any event is emitted.
            WorkflowError: If this runner is already running a campaign.
        """
        if self._running:
            raise WorkflowError("Campaign runner is already running a campaign")

        options = campaign.options
        auditor = create_auditor(options.category) if options.category is not None else None

        self._running = True
        self._cancel_requested = False
        self._aborted = False
        self._halt_error = None
        self._sequence = 0
        log = self.log.bind(campaign_id=campaign.id)

        started_at = time.monotonic()
        result = CampaignResult(campaign_id=campaign.id)

        issues = list(campaign.issues)
        if options.max_issues is not None:
            issues = issues[: options.max_issues]

        queue: asyncio.Queue[Issue] = asyncio.Queue()
        for issue in issues:
            queue.put_nowait(issue)

        log.info(
            "campaign_started",
            name=campaign.name,
            total_issues=len(issues),
            max_concurrent=options.max_concurrent,
            dry_run=options.dry_run,
            processor=self.processor.name,
        )
        self._emit(
            CampaignEventType.STARTED,
            campaign.id,
            total_issues=len(issues),
            dry_run=options.dry_run,
            category=options.category,
        )

        try:
            worker_count = min(options.max_concurrent, len(issues))
            await asyncio.gather(
                *(self._worker(campaign, auditor, queue, result) for _ in range(worker_count))
            )
        finally:
            self._running = False

        stop_reason = self._stop_reason()
        while not queue.empty():
            issue = queue.get_nowait()
            result.outcomes.append(self._drop(issue, stop_reason))

        result.interrupted = stop_reason is not None
        result.stop_reason = stop_reason
        result.duration_seconds = time.monotonic() - started_at

        log.info(
            "campaign_completed",
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
            skipped=result.skipped,
            total_cost=round(result.total_cost, 4),
            stop_reason=stop_reason,
        )
        self._emit(CampaignEventType.COMPLETED, campaign.id, result=result)
        return result

    async def iterate(self, issue: Issue, campaign_id: str | None = None) -> IssueOutcome:
        """Run one feedback iteration on an issue awaiting feedback.

        Reserves at most ``per_feedback_iteration_usd``, moves the issue to
        ``iterating`` and back to ``pr_created`` once the processor succeeds.

        Raises:
            InvalidTransitionError: If the issue is not awaiting feedback.
        """
        if not is_valid_transition(issue.state, IssueState.ITERATING):
            raise InvalidTransitionError(issue.state.value, IssueState.ITERATING.value)

        campaign_id = campaign_id or f"feedback-{issue.id}"
        record = self.work_records.setdefault(issue.id, IssueWorkRecord(issue_id=issue.id))

        if not self.locks.try_acquire(issue.id):
            return self._skip(campaign_id, issue, "already in progress")
        try:
            iteration = sum(1 for t in issue.history if t.to_state == IssueState.ITERATING) + 1
            context = ProcessingContext(campaign_id=campaign_id, session_id="", iteration=iteration)
            return await self._execute_unit(
                campaign_id,
                issue,
                record,
                context,
                scope=BudgetScope.PER_ITERATION,
                working_state=IssueState.ITERATING,
                success_state=IssueState.PR_CREATED,
            )
        finally:
            self.locks.release(issue.id)

    async def _worker(
        self,
        campaign: Campaign,
        auditor: Auditor | None,
        queue: asyncio.Queue[Issue],
        result: CampaignResult,
    ) -> None:
        while not self._should_stop():
            try:
                issue = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            exhausted = self.budget.is_exhausted()
            if exhausted is not None:
                self._halt(campaign.id, self._exhaustion_error(exhausted))
                result.outcomes.append(self._drop(issue, self._stop_reason()))
                return

            outcome = await self._run_issue(campaign, auditor, issue)
            result.outcomes.append(outcome)
            result.total_cost += outcome.cost_usd

    async def _run_issue(self, campaign: Campaign, auditor: Auditor | None, issue: Issue) -> IssueOutcome:
        options = campaign.options
        record = self.work_records.setdefault(issue.id, IssueWorkRecord(issue_id=issue.id))

        if options.skip_retries and record.attempts > 0:
            return self._skip(campaign.id, issue, "already attempted")

        if not self.locks.try_acquire(issue.id):
            return self._skip(campaign.id, issue, "already in progress")
        try:
            open_session = self.sessions.active_session_for(issue.id)
            if open_session is not None:
                return self._skip(campaign.id, issue, f"session {open_session.id} still open")

            context = ProcessingContext(
                campaign_id=campaign.id,
                session_id="",
                dry_run=options.dry_run,
                category=options.category,
                auditor=auditor,
                audit_context=options.audit_context,
            )
            outcome = await self._execute_unit(
                campaign.id,
                issue,
                record,
                context,
                scope=BudgetScope.PER_ISSUE,
                working_state=IssueState.IN_PROGRESS,
                success_state=None if campaign.is_audit else IssueState.PR_CREATED,
            )
        finally:
            self.locks.release(issue.id)

        if outcome.status == OutcomeStatus.FAILED and options.failure_policy == FailurePolicy.ABORT_CAMPAIGN:
            if not self._aborted:
                self._aborted = True
                self.log.warning("campaign_aborted", campaign_id=campaign.id, issue_id=issue.id)
        return outcome

    async def _execute_unit(
        self,
        campaign_id: str,
        issue: Issue,
        record: IssueWorkRecord,
        context: ProcessingContext,
        *,
        scope: BudgetScope,
        working_state: IssueState,
        success_state: IssueState | None,
    ) -> IssueOutcome:
        """Process one issue while its exclusivity lock is held.

        Always emits ``issue-started`` followed by exactly one of
        ``issue-succeeded`` or ``issue-failed``.
        """
        self._emit(
            CampaignEventType.ISSUE_STARTED,
            campaign_id,
            issue_id=issue.id,
            issue_url=issue.url,
            iteration=context.iteration,
        )
        reservation: Reservation | None = None
        session: Session | None = None
        cost = 0.0

        try:
            if working_state == IssueState.IN_PROGRESS and self._is_finished_audit(issue):
                transition(issue, IssueState.ABANDONED, "audit completed")
            if working_state == IssueState.IN_PROGRESS and issue.state in REQUEUEABLE_STATES:
                transition(issue, IssueState.QUEUED, f"queued by campaign {campaign_id}")
            if not is_valid_transition(issue.state, working_state):
                raise InvalidTransitionError(issue.state.value, working_state.value)

            estimate = self.processor.estimate_cost(issue, context)
            if estimate is None:
                estimate = (
                    self.budget.config.per_issue_limit_usd
                    if scope == BudgetScope.PER_ISSUE
                    else self.budget.config.per_feedback_iteration_usd
                )
            try:
                reservation = self.budget.reserve(issue.id, estimate, scope)
            except BudgetExceededError as e:
                self._abandon(issue, "budget exceeded")
                if e.scope.halts_campaign:
                    self._halt(campaign_id, e)
                return self._failed(campaign_id, issue, e.message, reason="budget exceeded", scope=e.scope.value)

            session = self._open_session(issue, record)
            transition(issue, working_state, "processing started", session.id)
            record.record_attempt(session.id)
            context.session_id = session.id
            context.budget_usd = estimate

            processed = await self._invoke(issue, context)

            cost = processed.cost_usd
            if cost > 0:
                self.budget.commit(reservation, cost)
            else:
                self.budget.release(reservation)
            reservation = None
            record.add_cost(cost)

            if processed.success:
                if success_state is not None:
                    transition(issue, success_state, "processing succeeded", session.id)
                    if processed.pr_url is not None:
                        issue.link_pr(processed.pr_url)
                        record.pr_url = processed.pr_url
                self.sessions.complete(session.id, processed.pr_url, cost, processed.turn_count)
                self._emit(
                    CampaignEventType.ISSUE_SUCCEEDED,
                    campaign_id,
                    issue_id=issue.id,
                    cost_usd=cost,
                    pr_url=processed.pr_url,
                    session_id=session.id,
                )
                return IssueOutcome(
                    issue_id=issue.id,
                    status=OutcomeStatus.SUCCEEDED,
                    cost_usd=cost,
                    pr_url=processed.pr_url,
                    session_id=session.id,
                )

            error = processed.error or "Unknown error"
            self.sessions.fail(session.id, error, cost)
            self._abandon(issue, f"processing failed: {error}", session.id)
            return self._failed(campaign_id, issue, error, cost_usd=cost, session_id=session.id)

        except Exception as e:
            # Transition violations and runner faults are confined to this issue
            error = getattr(e, "message", None) or str(e) or type(e).__name__
            self.log.error("issue_unit_failed", issue_id=issue.id, error=error, exc_info=True)
            if reservation is not None:
                self.budget.release(reservation)
            if session is not None and not session.is_terminal:
                self.sessions.fail(session.id, error)
            self._abandon(issue, error, session.id if session else None)
            return self._failed(
                campaign_id,
                issue,
                error,
                cost_usd=cost,
                session_id=session.id if session else None,
            )

    async def _invoke(self, issue: Issue, context: ProcessingContext) -> ProcessingResult:
        """Call the processor, turning raised errors into failed results."""
        try:
            return await self.processor.process(issue, context)
        except ProcessingError as e:
            self.log.warning("processing_error", issue_id=issue.id, error=e.message, recoverable=e.recoverable)
            return ProcessingResult(success=False, error=e.message)
        except Exception as e:
            self.log.error("processor_crashed", issue_id=issue.id, error=str(e), exc_info=True)
            return ProcessingResult(success=False, error=str(e) or type(e).__name__)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_finished_audit(self, issue: Issue) -> bool:
        """A successful audit leaves the issue in progress with no open session."""
        return issue.state == IssueState.IN_PROGRESS and self.sessions.active_session_for(issue.id) is None

    def _open_session(self, issue: Issue, record: IssueWorkRecord) -> Session:
        """Resume a paused or feedback-waiting session, or start a new one."""
        open_session = self.sessions.active_session_for(issue.id)
        if open_session is not None and open_session.status in (
            SessionStatus.PAUSED,
            SessionStatus.AWAITING_FEEDBACK,
        ):
            return self.sessions.resume(open_session.id)

        return self.sessions.start(
            issue,
            provider=self.settings.ai.provider,
            model=self.settings.ai.model,
            working_directory=record.worktree_path or "",
        )

    def _abandon(self, issue: Issue, reason: str, session_id: str | None = None) -> None:
        if is_valid_transition(issue.state, IssueState.ABANDONED):
            transition(issue, IssueState.ABANDONED, reason, session_id)
        else:
            self.log.warning("issue_not_abandoned", issue_id=issue.id, state=issue.state.value, reason=reason)

    def _failed(
        self,
        campaign_id: str,
        issue: Issue,
        error: str,
        *,
        cost_usd: float = 0.0,
        session_id: str | None = None,
        reason: str | None = None,
        scope: str | None = None,
    ) -> IssueOutcome:
        self.log.warning("issue_failed", campaign_id=campaign_id, issue_id=issue.id, error=error)
        self._emit(
            CampaignEventType.ISSUE_FAILED,
            campaign_id,
            issue_id=issue.id,
            error=error,
            cost_usd=cost_usd,
            scope=scope,
        )
        return IssueOutcome(
            issue_id=issue.id,
            status=OutcomeStatus.FAILED,
            cost_usd=cost_usd,
            error=error,
            reason=reason,
            session_id=session_id,
        )

    def _skip(self, campaign_id: str, issue: Issue, reason: str) -> IssueOutcome:
        self.log.info("issue_skipped", campaign_id=campaign_id, issue_id=issue.id, reason=reason)
        self._emit(CampaignEventType.ISSUE_SKIPPED, campaign_id, issue_id=issue.id, reason=reason)
        return IssueOutcome(issue_id=issue.id, status=OutcomeStatus.SKIPPED, reason=reason)

    def _halt(self, campaign_id: str, error: BudgetExceededError) -> None:
        """Stop accepting new work because a campaign-level budget ran out."""
        if self._halt_error is not None:
            return
        self._halt_error = error
        status = self.budget.status()
        self.log.warning(
            "campaign_budget_exceeded",
            campaign_id=campaign_id,
            scope=error.scope.value,
            daily_spent=status.daily_spent,
            monthly_spent=status.monthly_spent,
        )
        self._emit(
            CampaignEventType.BUDGET_EXCEEDED,
            campaign_id,
            scope=error.scope.value,
            daily_spent=status.daily_spent,
            monthly_spent=status.monthly_spent,
        )

    def _exhaustion_error(self, scope: BudgetScope) -> BudgetExceededError:
        status = self.budget.status()
        if scope == BudgetScope.MONTHLY:
            return BudgetExceededError(scope, spent_usd=status.monthly_spent, limit_usd=status.monthly_limit)
        return BudgetExceededError(scope, spent_usd=status.daily_spent, limit_usd=status.daily_limit)

    def _drop(self, issue: Issue, reason: str | None) -> IssueOutcome:
        """Record an issue left in the queue when the campaign stopped.

        After a budget halt the issue is abandoned with the budget error;
        after cancellation or abort it is left untouched.
        """
        if self._halt_error is None:
            return IssueOutcome(issue_id=issue.id, status=OutcomeStatus.SKIPPED, reason=reason)

        with self.locks.hold(issue.id) as acquired:
            if acquired:
                self._abandon(issue, "budget exceeded")
        return IssueOutcome(
            issue_id=issue.id,
            status=OutcomeStatus.SKIPPED,
            error=self._halt_error.message,
            reason=reason,
        )

    def _should_stop(self) -> bool:
        return self._cancel_requested or self._aborted or self._halt_error is not None

    def _stop_reason(self) -> str | None:
        if self._halt_error is not None:
            return f"budget exceeded ({self._halt_error.scope.value})"
        if self._aborted:
            return "aborted after issue failure"
        if self._cancel_requested:
            return "cancelled"
        return None

    def _emit(
        self,
        event_type: CampaignEventType,
        campaign_id: str,
        issue_id: str | None = None,
        **data: Any,
    ) -> CampaignEvent:
        self._sequence += 1
        event = CampaignEvent(
            type=event_type,
            campaign_id=campaign_id,
            sequence=self._sequence,
            timestamp=utcnow(),
            issue_id=issue_id,
            data=data,
        )
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                self.log.error("event_handler_failed", event_type=event_type.value, exc_info=True)
        return event

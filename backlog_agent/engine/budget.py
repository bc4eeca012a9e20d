"""
Budget guard enforcing spend limits across concurrent workers.

Spend goes through a two-phase protocol:

1. ``reserve()`` before a unit of work starts. The reservation is checked
   against the monthly, daily and per-issue (or per-iteration) limits, with
   committed spend and every outstanding reservation counted.
2. ``commit()`` once the actual cost is known, or ``release()`` if the work
   never incurred any cost.

Every read-modify-write of the counters happens under one mutex, so two
workers reserving against the same shrinking daily budget can never both
succeed past the limit.

Counters roll over with the UTC calendar: a new day resets the daily total,
a new month the monthly total. Per-issue totals live for the lifetime of the
guard.

Example:
    >>> guard = BudgetGuard(BudgetConfig(daily_limit_usd=10))
    >>> reservation = guard.reserve("issue-1", 5.0)
    >>> guard.commit(reservation, 3.25)
    >>> guard.status().daily_spent
    3.25
"""

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from backlog_agent.config.settings import BudgetConfig
from backlog_agent.enums import BudgetScope
from backlog_agent.exceptions import BudgetExceededError
from backlog_agent.models.domain import utcnow

log = structlog.get_logger(__name__)

# Tolerance for float sums such as 0.1 + 0.2 landing a hair above a limit
_EPSILON = 1e-9


@dataclass(frozen=True)
class Reservation:
    """Spend set aside for one unit of work, pending commit or release."""

    id: str
    issue_id: str
    amount_usd: float
    scope: BudgetScope
    created_at: datetime


@dataclass
class BudgetStatus:
    """Snapshot of budget usage."""

    daily_spent: float
    monthly_spent: float
    reserved: float
    daily_limit: float
    monthly_limit: float
    daily_remaining: float
    monthly_remaining: float
    daily_percent_used: float
    monthly_percent_used: float
    daily_exceeded: bool
    monthly_exceeded: bool


def _percent(spent: float, limit: float) -> float:
    # A zero limit is fully used from the start
    if limit <= 0:
        return 100.0
    return spent / limit * 100


class BudgetGuard:
    """Shared, thread-safe spend counter with daily/monthly/per-issue limits.

    Attributes:
        config: The configured limits.
    """

    def __init__(
        self,
        config: BudgetConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or BudgetConfig()
        self._clock = clock
        self._lock = threading.Lock()

        now = clock()
        self._day_key = now.date()
        self._month_key = (now.year, now.month)
        self._daily_spent = 0.0
        self._monthly_spent = 0.0
        self._issue_spent: dict[str, float] = {}
        self._reservations: dict[str, Reservation] = {}

    # ------------------------------------------------------------------
    # Reservation protocol
    # ------------------------------------------------------------------

    def reserve(
        self,
        issue_id: str,
        amount_usd: float,
        scope: BudgetScope = BudgetScope.PER_ISSUE,
    ) -> Reservation:
        """Set aside ``amount_usd`` for a unit of work on ``issue_id``.

        Args:
            issue_id: Issue the spend is for.
            amount_usd: Upper bound of the cost about to be incurred.
            scope: ``PER_ISSUE`` for an initial attempt, ``PER_ITERATION``
                for a feedback iteration.

        Returns:
            Reservation to hand back to :meth:`commit` or :meth:`release`.

        Raises:
            BudgetExceededError: If any limit would be exceeded. Nothing is
                reserved in that case.
            ValueError: If ``amount_usd`` is negative or ``scope`` is not a
                per-unit scope.
        """
        if amount_usd < 0:
            raise ValueError(f"Reservation amount must be non-negative, got {amount_usd}")
        if scope not in (BudgetScope.PER_ISSUE, BudgetScope.PER_ITERATION):
            raise ValueError(f"Cannot reserve against scope {scope}")

        with self._lock:
            self._roll_over()
            reserved_total = sum(r.amount_usd for r in self._reservations.values())

            self._check(
                BudgetScope.MONTHLY,
                self._monthly_spent + reserved_total,
                amount_usd,
                self.config.monthly_limit_usd,
            )
            self._check(
                BudgetScope.DAILY,
                self._daily_spent + reserved_total,
                amount_usd,
                self.config.daily_limit_usd,
            )
            if scope == BudgetScope.PER_ISSUE:
                issue_reserved = sum(
                    r.amount_usd for r in self._reservations.values() if r.issue_id == issue_id
                )
                self._check(
                    BudgetScope.PER_ISSUE,
                    self._issue_spent.get(issue_id, 0.0) + issue_reserved,
                    amount_usd,
                    self.config.per_issue_limit_usd,
                )
            else:
                self._check(
                    BudgetScope.PER_ITERATION,
                    0.0,
                    amount_usd,
                    self.config.per_feedback_iteration_usd,
                )

            reservation = Reservation(
                id=uuid.uuid4().hex,
                issue_id=issue_id,
                amount_usd=amount_usd,
                scope=scope,
                created_at=self._clock(),
            )
            self._reservations[reservation.id] = reservation

        log.debug("budget_reserved", issue_id=issue_id, amount_usd=amount_usd, scope=scope.value)
        return reservation

    def commit(self, reservation: Reservation, actual_amount_usd: float) -> None:
        """Finalize a reservation with the actual cost incurred.

        The reservation is consumed and ``actual_amount_usd`` is added to the
        daily, monthly and per-issue totals. An actual cost above the
        reservation is still recorded, and logged as an overrun.

        Raises:
            ValueError: If the amount is negative or the reservation was
                already committed or released.
        """
        if actual_amount_usd < 0:
            raise ValueError(f"Committed amount must be non-negative, got {actual_amount_usd}")

        with self._lock:
            if self._reservations.pop(reservation.id, None) is None:
                raise ValueError(f"Reservation {reservation.id} is not outstanding")
            self._roll_over()
            self._daily_spent += actual_amount_usd
            self._monthly_spent += actual_amount_usd
            self._issue_spent[reservation.issue_id] = (
                self._issue_spent.get(reservation.issue_id, 0.0) + actual_amount_usd
            )

        if actual_amount_usd > reservation.amount_usd + _EPSILON:
            log.warning(
                "budget_overrun",
                issue_id=reservation.issue_id,
                reserved_usd=reservation.amount_usd,
                actual_usd=actual_amount_usd,
            )
        log.info("budget_committed", issue_id=reservation.issue_id, amount_usd=actual_amount_usd)

    def release(self, reservation: Reservation) -> None:
        """Roll back a reservation that was never consumed.

        Releasing an already settled reservation is a no-op.
        """
        with self._lock:
            released = self._reservations.pop(reservation.id, None)
        if released is not None:
            log.debug("budget_released", issue_id=reservation.issue_id, amount_usd=reservation.amount_usd)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_exhausted(self) -> BudgetScope | None:
        """Get the campaign-level scope whose committed spend reached its limit.

        Returns:
            ``BudgetScope.MONTHLY`` or ``BudgetScope.DAILY`` when exhausted,
            otherwise None.
        """
        with self._lock:
            self._roll_over()
            if self._monthly_spent >= self.config.monthly_limit_usd - _EPSILON:
                return BudgetScope.MONTHLY
            if self._daily_spent >= self.config.daily_limit_usd - _EPSILON:
                return BudgetScope.DAILY
            return None

    def spent_for(self, issue_id: str) -> float:
        with self._lock:
            return self._issue_spent.get(issue_id, 0.0)

    @property
    def total_committed(self) -> float:
        """Total spend committed in the current month."""
        with self._lock:
            self._roll_over()
            return self._monthly_spent

    @property
    def outstanding_reservations(self) -> int:
        with self._lock:
            return len(self._reservations)

    def status(self) -> BudgetStatus:
        """Get a snapshot of current spend against the limits."""
        with self._lock:
            self._roll_over()
            daily_spent = self._daily_spent
            monthly_spent = self._monthly_spent
            reserved = sum(r.amount_usd for r in self._reservations.values())

        daily_limit = self.config.daily_limit_usd
        monthly_limit = self.config.monthly_limit_usd
        return BudgetStatus(
            daily_spent=daily_spent,
            monthly_spent=monthly_spent,
            reserved=reserved,
            daily_limit=daily_limit,
            monthly_limit=monthly_limit,
            daily_remaining=max(0.0, daily_limit - daily_spent),
            monthly_remaining=max(0.0, monthly_limit - monthly_spent),
            daily_percent_used=_percent(daily_spent, daily_limit),
            monthly_percent_used=_percent(monthly_spent, monthly_limit),
            daily_exceeded=daily_spent >= daily_limit,
            monthly_exceeded=monthly_spent >= monthly_limit,
        )

    def effective_per_issue_budget(self) -> float:
        """Per-issue limit capped by what is left of the daily and monthly budgets."""
        status = self.status()
        return min(self.config.per_issue_limit_usd, status.daily_remaining, status.monthly_remaining)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check(scope: BudgetScope, spent: float, amount: float, limit: float) -> None:
        if spent + amount > limit + _EPSILON:
            log.warning(
                "budget_exceeded",
                scope=scope.value,
                spent_usd=round(spent, 4),
                requested_usd=amount,
                limit_usd=limit,
            )
            raise BudgetExceededError(scope, requested_usd=amount, spent_usd=spent, limit_usd=limit)

    def _roll_over(self) -> None:
        # Caller holds self._lock
        now = self._clock()
        month_key = (now.year, now.month)
        if month_key != self._month_key:
            self._month_key = month_key
            self._monthly_spent = 0.0
        if now.date() != self._day_key:
            self._day_key = now.date()
            self._daily_spent = 0.0

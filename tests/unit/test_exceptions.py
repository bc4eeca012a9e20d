"""Tests for backlog_agent.exceptions module."""

import pytest

from backlog_agent.enums import BudgetScope
from backlog_agent.exceptions import (
    BacklogAgentError,
    BudgetExceededError,
    ConfigurationError,
    InvalidTransitionError,
    ProcessingError,
    SessionConflictError,
    UnknownCategoryError,
    WorkflowError,
)


class TestBacklogAgentError:
    """Test base BacklogAgentError class."""

    def test_init_with_message(self):
        error = BacklogAgentError("Test error message")

        assert error.message == "Test error message"
        assert str(error) == "Test error message"

    def test_exception_can_be_raised(self):
        with pytest.raises(BacklogAgentError) as exc_info:
            raise BacklogAgentError("Test error")

        assert exc_info.value.message == "Test error"

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("bad config"),
            InvalidTransitionError("queued", "merged"),
            UnknownCategoryError("nope"),
            BudgetExceededError(BudgetScope.DAILY),
            ProcessingError("agent crashed"),
            WorkflowError("already running"),
            SessionConflictError("acme/api#1", "session-1"),
        ],
    )
    def test_hierarchy(self, error):
        assert isinstance(error, BacklogAgentError)


class TestInvalidTransitionError:
    def test_attributes(self):
        error = InvalidTransitionError("discovered", "pr_created")

        assert error.from_state == "discovered"
        assert error.to_state == "pr_created"
        assert error.entity == "issue"
        assert error.message == "Invalid issue transition: discovered -> pr_created"

    def test_session_entity(self):
        error = InvalidTransitionError("completed", "active", entity="session")

        assert "session transition" in error.message


class TestBudgetExceededError:
    def test_attributes_and_message(self):
        error = BudgetExceededError(BudgetScope.PER_ISSUE, requested_usd=10.0, spent_usd=0.0, limit_usd=5.0)

        assert error.scope == BudgetScope.PER_ISSUE
        assert error.requested_usd == 10.0
        assert error.limit_usd == 5.0
        assert error.message == "Budget exceeded (per_issue): $0.00 + $10.00 > $5.00"


class TestProcessingError:
    def test_message_preserved_without_issue(self):
        error = ProcessingError("agent crashed")

        assert error.message == "agent crashed"
        assert error.issue_id is None
        assert error.recoverable is True

    def test_issue_id_in_string_only(self):
        error = ProcessingError("push rejected", issue_id="acme/api#7", recoverable=False)

        assert error.message == "push rejected"
        assert str(error) == "push rejected (issue: acme/api#7)"
        assert error.recoverable is False


class TestSessionConflictError:
    def test_is_workflow_error(self):
        error = SessionConflictError("acme/api#1", "session-abc")

        assert isinstance(error, WorkflowError)
        assert error.issue_id == "acme/api#1"
        assert error.session_id == "session-abc"
        assert "session-abc" in error.message


class TestUnknownCategoryError:
    def test_message(self):
        error = UnknownCategoryError("bogus")

        assert error.category == "bogus"
        assert error.message == "Unknown audit category: bogus"

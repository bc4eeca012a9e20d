"""Pytest configuration and shared fixtures."""

from collections.abc import Callable

import pytest

from backlog_agent.config.settings import AgentSettings, BudgetConfig
from backlog_agent.engine.budget import BudgetGuard
from backlog_agent.enums import IssueState
from backlog_agent.models.domain import Issue


def make_issue(number: int, state: IssueState = IssueState.DISCOVERED, **kwargs) -> Issue:
    """Build an issue in the acme/api repository."""
    return Issue(
        id=kwargs.pop("id", f"acme/api#{number}"),
        url=kwargs.pop("url", f"https://github.com/acme/api/issues/{number}"),
        number=number,
        title=kwargs.pop("title", f"Fix bug number {number}"),
        state=state,
        **kwargs,
    )


@pytest.fixture
def issue_factory() -> Callable[..., Issue]:
    """Factory for issues with predictable ids."""
    return make_issue


@pytest.fixture
def sample_issue() -> Issue:
    """Sample issue for testing."""
    return make_issue(
        42,
        title="Crash when saving empty profile",
        body="Saving a profile without a display name raises a 500.",
        labels=["bug", "good-first-issue"],
        author="testuser",
    )


@pytest.fixture
def sample_issues() -> list[Issue]:
    """Three fresh issues."""
    return [make_issue(n) for n in (1, 2, 3)]


@pytest.fixture
def budget_config() -> BudgetConfig:
    """Budget limits used across tests."""
    return BudgetConfig(
        daily_limit_usd=50.0,
        monthly_limit_usd=500.0,
        per_issue_limit_usd=5.0,
        per_feedback_iteration_usd=2.0,
    )


@pytest.fixture
def budget_guard(budget_config: BudgetConfig) -> BudgetGuard:
    """BudgetGuard with the shared limits."""
    return BudgetGuard(budget_config)


@pytest.fixture
def settings(budget_config: BudgetConfig) -> AgentSettings:
    """Settings built in code, independent of the environment."""
    return AgentSettings(budget=budget_config)

"""Configuration models and YAML loading."""

from backlog_agent.config.settings import (
    AgentSettings,
    AIConfig,
    BudgetConfig,
    LoggingConfig,
    ParallelConfig,
)

__all__ = [
    "AIConfig",
    "AgentSettings",
    "BudgetConfig",
    "LoggingConfig",
    "ParallelConfig",
]

"""Issue processor interface and the dry-run implementation."""

from backlog_agent.processors.base import IssueProcessor, ProcessingContext, ProcessingResult
from backlog_agent.processors.dry_run import DryRunProcessor

__all__ = [
    "DryRunProcessor",
    "IssueProcessor",
    "ProcessingContext",
    "ProcessingResult",
]

"""Campaign execution.

Key Components:
    - Campaign / CampaignOptions: The issues and options for one run
    - CampaignRunner: Worker pool that drives issues through processing
    - CampaignEvent: Totally ordered event stream for observers
    - CampaignResult: Per-issue outcomes and aggregate spend
"""

from backlog_agent.campaigns.models import (
    Campaign,
    CampaignEvent,
    CampaignEventType,
    CampaignOptions,
    CampaignResult,
    IssueOutcome,
    OutcomeStatus,
)
from backlog_agent.campaigns.runner import CampaignEventHandler, CampaignRunner

__all__ = [
    "Campaign",
    "CampaignEvent",
    "CampaignEventHandler",
    "CampaignEventType",
    "CampaignOptions",
    "CampaignResult",
    "CampaignRunner",
    "IssueOutcome",
    "OutcomeStatus",
]

"""Audit category policies: file scope and prompt construction."""

from backlog_agent.audit.auditors import (
    AUDITOR_REGISTRY,
    AuditContext,
    Auditor,
    create_auditor,
    create_auditors,
    get_available_categories,
    is_valid_category,
)

__all__ = [
    "AUDITOR_REGISTRY",
    "AuditContext",
    "Auditor",
    "create_auditor",
    "create_auditors",
    "get_available_categories",
    "is_valid_category",
]

"""Reconciliation core: scan, audit, plan and execute.

Flow for one run:
1) load a library snapshot and count structural problems (``scan``)
2) audit every set against the remote authority through the lookup cache
3) review the resulting ``ActionPlan``
4) apply cleanup and plan to a copy of the library in one transaction
5) hand the ids of sets to re-acquire to the downloader
"""

from __future__ import annotations

from .audit import AuditOrchestrator, AuditSettings, LookupOutcome, LookupResult
from .diagnostics import DiagnosticResult, scan
from .execute import (
    PlanExecutionError,
    PlanExecutor,
    extract_reacquisition_ids,
    generate_download_list,
)
from .plan import ActionKind, ActionPlan, DateBackfill, StatusFix

__all__ = [
    "ActionKind",
    "ActionPlan",
    "AuditOrchestrator",
    "AuditSettings",
    "DateBackfill",
    "DiagnosticResult",
    "LookupOutcome",
    "LookupResult",
    "PlanExecutionError",
    "PlanExecutor",
    "StatusFix",
    "extract_reacquisition_ids",
    "generate_download_list",
    "scan",
]

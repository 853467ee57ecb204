"""Drift-approval jobs reported by the external listener service."""

from action_allegro.approvals.client import Decision, ListenerClient
from action_allegro.approvals.poller import ApprovalPoller, PollResult
from action_allegro.approvals.records import (
    DriftInfo,
    PendingJob,
    extract_drift,
    parse_pending_jobs,
    parse_record,
)

__all__ = [
    "ApprovalPoller",
    "Decision",
    "DriftInfo",
    "ListenerClient",
    "PendingJob",
    "PollResult",
    "extract_drift",
    "parse_pending_jobs",
    "parse_record",
]

"""Request and authorization counters.

Counters are kept in process and keyed by label so operators can inspect
them (and tests can assert on them) without a metrics exporter. The labels
for processed pull requests come from an explicit table over
:class:`~bailiff.outcomes.RejectionReason`.

Usage
-----
>>> metrics = BailiffMetrics()
>>> metrics.record_http_request(200)
>>> metrics.snapshot()["http_requests_total"]
{'200': 1}

"""

from __future__ import annotations

import collections
import threading
import types
import typing as typ

from bailiff.outcomes import Authorized, Outcome, RejectionReason

__all__ = [
    "REJECTION_LABELS",
    "SUCCESS_LABEL",
    "UNKNOWN_LABEL",
    "BailiffMetrics",
    "outcome_label",
]

SUCCESS_LABEL = "success"
UNKNOWN_LABEL = "unknown"

REJECTION_LABELS: typ.Mapping[RejectionReason, str] = types.MappingProxyType({
    RejectionReason.NO_ISSUE: "no-issue-found",
    RejectionReason.NOT_PULL_REQUEST: "not-a-pull-request",
    RejectionReason.NOT_CREATION: "not-a-creation-event",
    RejectionReason.PR_NOT_FOUND: "pull-request-not-found",
    RejectionReason.PR_NOT_OPEN: "pull-request-not-open",
    RejectionReason.PR_FROM_UPSTREAM: "pull-request-from-upstream-repo",
    RejectionReason.NON_WHITELISTED: "non-whitelisted-user",
    RejectionReason.COMMENT_TOO_LONG: "comment-too-long",
    RejectionReason.NO_TRIGGER_PATTERN: "no-trigger-pattern-found",
    RejectionReason.MISMATCHED_SHA: "mismatched-sha",
})


def outcome_label(outcome: Outcome | None) -> str:
    """Return the processed-PR label for *outcome*.

    ``None`` stands for a run that ended in a transport failure.
    """
    if outcome is None:
        return UNKNOWN_LABEL
    if isinstance(outcome, Authorized):
        return SUCCESS_LABEL
    return REJECTION_LABELS[outcome.reason]


class BailiffMetrics:
    """Thread-safe label counters for HTTP, webhook, and PR processing."""

    def __init__(self) -> None:
        """Start with every counter at zero."""
        self._lock = threading.Lock()
        self._http_requests: collections.Counter[str] = collections.Counter()
        self._received_webhooks: collections.Counter[str] = collections.Counter()
        self._processed_prs: collections.Counter[str] = collections.Counter()

    def record_http_request(self, status_code: int) -> None:
        """Count one response with *status_code*."""
        with self._lock:
            self._http_requests[str(status_code)] += 1

    def record_received_webhook(self, event_type: str) -> None:
        """Count one validated delivery of *event_type*."""
        with self._lock:
            self._received_webhooks[event_type] += 1

    def record_processed_pr(self, outcome: Outcome | None) -> None:
        """Count one pipeline run by its outcome label."""
        with self._lock:
            self._processed_prs[outcome_label(outcome)] += 1

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Return a copy of every counter."""
        with self._lock:
            return {
                "http_requests_total": dict(self._http_requests),
                "received_webhooks_total": dict(self._received_webhooks),
                "processed_prs_total": dict(self._processed_prs),
            }

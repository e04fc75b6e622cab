"""Outcomes of the authorization pipeline.

A comment either authorizes a CI run or is rejected for exactly one named
reason. Rejections are expected results, not errors: they are logged and
acknowledged, never retried. Transport failures are exceptions and never
appear here.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

if typ.TYPE_CHECKING:
    from bailiff.repush import RepushTarget

__all__ = ["Authorized", "Outcome", "Rejected", "RejectionReason"]


class RejectionReason(enum.Enum):
    """Closed set of reasons a comment does not authorize a CI run.

    Members are listed in the order the pipeline checks them.
    """

    NO_ISSUE = "no issue found"
    NOT_PULL_REQUEST = "not a pull request"
    NOT_CREATION = "not a creation event"
    PR_NOT_FOUND = "pull request not found"
    PR_NOT_OPEN = "pull request not open"
    PR_FROM_UPSTREAM = "pull request from upstream repo"
    NON_WHITELISTED = "non-whitelisted user"
    COMMENT_TOO_LONG = "comment too long"
    NO_TRIGGER_PATTERN = "no trigger pattern found"
    MISMATCHED_SHA = "mismatched SHA"

    @property
    def description(self) -> str:
        """Return the human-readable description."""
        return self.value


@dataclasses.dataclass(frozen=True, slots=True)
class Rejected:
    """The comment does not qualify for trust elevation."""

    reason: RejectionReason


@dataclasses.dataclass(frozen=True, slots=True)
class Authorized:
    """The commit was mirrored and a success status was published."""

    target: RepushTarget


Outcome = Authorized | Rejected

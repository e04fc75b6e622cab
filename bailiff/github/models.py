"""Typed views of the GitHub REST resources Bailiff reads."""

from __future__ import annotations

import dataclasses
import enum

import msgspec


class PullRequestState(enum.StrEnum):
    """Pull request states reported by GitHub."""

    OPEN = "open"
    CLOSED = "closed"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> PullRequestState:
        """Map a raw state string, collapsing unknown values to ``OTHER``."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.OTHER


@dataclasses.dataclass(frozen=True, slots=True)
class PullRequestSnapshot:
    """Point-in-time view of a pull request.

    Fetched fresh for every authorization attempt and never cached.
    """

    number: int
    state: PullRequestState
    head_sha: str
    head_ref: str
    head_repo_full_name: str

    @property
    def is_open(self) -> bool:
        """Return True when the pull request is open."""
        return self.state is PullRequestState.OPEN

    @property
    def has_head_repo(self) -> bool:
        """Return False when the head repository has been deleted."""
        return bool(self.head_repo_full_name)


class _RepoBody(msgspec.Struct):
    full_name: str = ""


class _HeadBody(msgspec.Struct):
    sha: str = ""
    ref: str = ""
    repo: _RepoBody | None = None


class PullRequestBody(msgspec.Struct):
    """Subset of the ``GET /repos/{owner}/{repo}/pulls/{number}`` body."""

    number: int = 0
    state: str | None = None
    head: _HeadBody | None = None

    def to_snapshot(self) -> PullRequestSnapshot:
        """Convert the decoded body into a snapshot."""
        head = self.head or _HeadBody()
        repo = head.repo or _RepoBody()
        return PullRequestSnapshot(
            number=self.number,
            state=PullRequestState.parse(self.state),
            head_sha=head.sha,
            head_ref=head.ref,
            head_repo_full_name=repo.full_name,
        )


class TeamMemberBody(msgspec.Struct):
    """Element of the ``GET /orgs/{org}/teams/{slug}/members`` list."""

    login: str


class CommitStatusState(enum.StrEnum):
    """States accepted by the commit status API."""

    ERROR = "error"
    FAILURE = "failure"
    PENDING = "pending"
    SUCCESS = "success"

"""GitHub REST client and the collaborator interfaces it implements."""

from __future__ import annotations

from .client import (
    GitHubRESTClient,
    GitHubRESTConfig,
    PullRequestSource,
    StatusPublisher,
    TeamMembersSource,
)
from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import CommitStatusState, PullRequestSnapshot, PullRequestState

__all__ = [
    "CommitStatusState",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubRESTClient",
    "GitHubRESTConfig",
    "GitHubResponseShapeError",
    "PullRequestSnapshot",
    "PullRequestSource",
    "PullRequestState",
    "StatusPublisher",
    "TeamMembersSource",
]

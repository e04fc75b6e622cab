"""GitHub REST client used by the authorization pipeline and membership cache."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx
import msgspec

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import (
    CommitStatusState,
    PullRequestBody,
    PullRequestSnapshot,
    TeamMemberBody,
)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_TEAM_MEMBERS_PAGE_SIZE = 100

_T = typ.TypeVar("_T")


class PullRequestSource(typ.Protocol):
    """Interface for fetching pull request snapshots."""

    async def get_pull_request(
        self, owner: str, repo: str, number: int
    ) -> PullRequestSnapshot:
        """Return the current snapshot of pull request *number*."""
        ...


class StatusPublisher(typ.Protocol):
    """Interface for publishing commit statuses."""

    async def create_status(
        self,
        owner: str,
        repo: str,
        sha: str,
        *,
        state: CommitStatusState,
        context: str,
        description: str,
    ) -> None:
        """Create a commit status on *sha*."""
        ...


class TeamMembersSource(typ.Protocol):
    """Interface for listing team members."""

    async def list_team_members(self, org: str, team_slug: str) -> list[str]:
        """Return the logins of every member of the team."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRESTConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    base_url: str = "https://api.github.com"
    timeout_s: float = 20.0
    user_agent: str = "bailiff/0.1"


class GitHubRESTClient:
    """httpx implementation of the GitHub collaborators Bailiff depends on."""

    def __init__(
        self,
        config: GitHubRESTConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def get_pull_request(
        self, owner: str, repo: str, number: int
    ) -> PullRequestSnapshot:
        """Fetch pull request *number* of ``owner/repo``.

        Raises
        ------
        GitHubAPIError
            On any failed request; ``is_not_found`` distinguishes HTTP 404.

        """
        operation = "get pull request"
        response = await self._request(
            "GET",
            f"{self._config.base_url}/repos/{owner}/{repo}/pulls/{number}",
            operation=operation,
        )
        body = _decode(response, PullRequestBody, operation=operation)
        return body.to_snapshot()

    async def list_team_members(self, org: str, team_slug: str) -> list[str]:
        """Return every member login of *team_slug*, following pagination."""
        operation = "list team members"
        url: str | None = (
            f"{self._config.base_url}/orgs/{org}/teams/{team_slug}/members"
        )
        params: dict[str, typ.Any] | None = {"per_page": _TEAM_MEMBERS_PAGE_SIZE}
        logins: list[str] = []
        while url is not None:
            response = await self._request(
                "GET", url, operation=operation, params=params
            )
            members = _decode(response, list[TeamMemberBody], operation=operation)
            logins.extend(member.login for member in members)
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            params = None
        return logins

    async def create_status(  # noqa: PLR0913
        self,
        owner: str,
        repo: str,
        sha: str,
        *,
        state: CommitStatusState,
        context: str,
        description: str,
    ) -> None:
        """Create a commit status on *sha* in ``owner/repo``."""
        await self._request(
            "POST",
            f"{self._config.base_url}/repos/{owner}/{repo}/statuses/{sha}",
            operation="create status",
            json={
                "state": str(state),
                "context": context,
                "description": description,
            },
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        **kwargs: typ.Any,  # noqa: ANN401 - forwarded verbatim to httpx
    ) -> httpx.Response:
        """Send a request, mapping failures to :class:`GitHubAPIError`."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GitHubAPIError.transport_error(exc, operation=operation) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(response.status_code, operation=operation)
        return response


def _decode(response: httpx.Response, type_: type[_T], *, operation: str) -> _T:
    try:
        return msgspec.json.decode(response.content, type=type_)
    except msgspec.DecodeError as exc:
        raise GitHubResponseShapeError.invalid(operation, exc) from exc

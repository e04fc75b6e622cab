"""Periodically refreshed cache of privileged team members.

The cache answers membership queries from memory so request handling never
waits on GitHub. A background task rebuilds the whole login set from the
configured teams and swaps it in atomically; a failed refresh keeps the last
complete set.

Usage
-----
Run the refresh loop alongside the HTTP server::

    cache = TeamMembershipCache("acme", ["maintainers"], github_client)
    task = asyncio.create_task(cache.run_periodic(60.0))
    ...
    cache.is_member("octocat")

"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

from bailiff.errors import BailiffError
from bailiff.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from bailiff.github import TeamMembersSource
    from bailiff.logging import SupportsLog

__all__ = ["MembershipChecker", "MembershipRefreshError", "TeamMembershipCache"]


class MembershipChecker(typ.Protocol):
    """Interface for point-in-time membership queries."""

    def is_member(self, login: str) -> bool:
        """Return True when *login* belongs to a privileged team."""
        ...


class MembershipRefreshError(BailiffError):
    """Raised when listing the members of one team fails."""

    def __init__(self, team: str, cause: Exception) -> None:
        """Initialise with the failing team slug and the underlying error."""
        self.team = team
        super().__init__(f"failed to sync team {team}: {cause}")


class TeamMembershipCache:
    """Membership set built from the members of several GitHub teams.

    Parameters
    ----------
    org
        Organisation owning the teams.
    teams
        Team slugs whose members are trusted.
    source
        Collaborator that lists team members.
    logger
        Optional logger for refresh failures; defaults to the module logger.

    """

    def __init__(
        self,
        org: str,
        teams: cabc.Sequence[str],
        source: TeamMembersSource,
        *,
        logger: SupportsLog | None = None,
    ) -> None:
        """Create an empty cache; call :meth:`refresh_once` to populate it."""
        self._org = org
        self._teams = tuple(teams)
        self._source = source
        self._logger = logger if logger is not None else get_logger(__name__)
        self._logins: frozenset[str] = frozenset()
        # Guards the reference only; the set itself is immutable.
        self._lock = threading.Lock()

    def is_member(self, login: str) -> bool:
        """Return True when *login* is in the current membership set."""
        with self._lock:
            logins = self._logins
        return login in logins

    @property
    def logins(self) -> frozenset[str]:
        """Return the current membership set."""
        with self._lock:
            return self._logins

    async def refresh_once(self) -> None:
        """Rebuild the membership set from every configured team.

        Teams are queried in order. The visible set is replaced only when all
        queries succeed.

        Raises
        ------
        MembershipRefreshError
            If any team query fails; the visible set is left unchanged.

        """
        logins: set[str] = set()
        for team in self._teams:
            try:
                members = await self._source.list_team_members(self._org, team)
            except BailiffError as exc:
                raise MembershipRefreshError(team, exc) from exc
            logins.update(members)

        with self._lock:
            self._logins = frozenset(logins)

    async def run_periodic(self, interval_s: float) -> typ.NoReturn:
        """Refresh now and then every *interval_s* seconds until cancelled.

        A refresh that overruns the interval delays the next one; refreshes
        never overlap. Every refresh failure is logged and the loop keeps the
        previous set. Cancellation surfaces as ``asyncio.CancelledError``.
        """
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.refresh_once()
            except Exception as exc:  # noqa: BLE001 - only cancellation ends the loop
                log_exception(self._logger, f"failed to sync whitelist: {exc}", exc)
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, interval_s - elapsed))

"""Unit tests for the team membership cache."""

from __future__ import annotations

import asyncio

import pytest

from bailiff.github import GitHubAPIError
from bailiff.membership import MembershipRefreshError, TeamMembershipCache
from tests.helpers.fakes import FakeLogger


class _FakeTeams:
    """Lists team members from a mutable mapping; listed teams may fail."""

    def __init__(self, teams: dict[str, list[str]]) -> None:
        self.teams = teams
        self.failing: set[str] = set()
        self.broken: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    async def list_team_members(self, org: str, team_slug: str) -> list[str]:
        self.calls.append((org, team_slug))
        if team_slug in self.failing:
            raise GitHubAPIError.http_error(502, operation="list team members")
        if team_slug in self.broken:
            msg = f"unexpected failure listing {team_slug}"
            raise RuntimeError(msg)
        return list(self.teams[team_slug])


@pytest.fixture
def teams() -> _FakeTeams:
    """Provide the editors and maintainers teams."""
    return _FakeTeams({
        "editors": ["john", "jenny"],
        "maintainers": ["jenny", "max"],
    })


class TestRefreshOnce:
    """Tests for TeamMembershipCache.refresh_once."""

    @pytest.mark.asyncio
    async def test_union_of_all_teams(self, teams: _FakeTeams) -> None:
        """Members of every configured team are trusted."""
        cache = TeamMembershipCache("acme", ["editors", "maintainers"], teams)

        await cache.refresh_once()

        for login in ("john", "jenny", "max"):
            assert cache.is_member(login), f"{login} should be a member"
        assert not cache.is_member("anyone-else"), "outsider should not be a member"
        assert teams.calls == [("acme", "editors"), ("acme", "maintainers")]

    @pytest.mark.asyncio
    async def test_empty_before_first_refresh(self, teams: _FakeTeams) -> None:
        """Nobody is trusted until the first refresh succeeds."""
        cache = TeamMembershipCache("acme", ["editors"], teams)

        assert cache.logins == frozenset(), "expected empty membership"
        assert not cache.is_member("john")

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_set(self, teams: _FakeTeams) -> None:
        """A failure on any team leaves the last good set visible."""
        cache = TeamMembershipCache("acme", ["editors", "maintainers"], teams)
        await cache.refresh_once()
        before = cache.logins

        teams.teams["editors"] = ["newcomer"]
        teams.failing.add("maintainers")
        with pytest.raises(MembershipRefreshError, match="failed to sync team"):
            await cache.refresh_once()

        assert cache.logins == before, "partial refresh must not be published"
        assert not cache.is_member("newcomer")

    @pytest.mark.asyncio
    async def test_successful_refresh_drops_removed_members(
        self, teams: _FakeTeams
    ) -> None:
        """The set is replaced wholesale, so removed members lose access."""
        cache = TeamMembershipCache("acme", ["editors", "maintainers"], teams)
        await cache.refresh_once()

        teams.teams["maintainers"] = ["jenny"]
        await cache.refresh_once()

        assert not cache.is_member("max"), "removed member should lose access"
        assert cache.logins == frozenset({"john", "jenny"})


class TestRunPeriodic:
    """Tests for the background refresh loop."""

    @pytest.mark.asyncio
    async def test_logs_failures_and_keeps_running(self, teams: _FakeTeams) -> None:
        """Refresh errors are logged and the loop continues until cancelled."""
        logger = FakeLogger()
        teams.failing.add("editors")
        cache = TeamMembershipCache("acme", ["editors"], teams, logger=logger)

        task = asyncio.create_task(cache.run_periodic(0.01))
        while len(teams.calls) < 3:
            await asyncio.sleep(0.005)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert logger.levels_for("failed to sync whitelist")[:2] == [
            "ERROR",
            "ERROR",
        ], "expected refresh failures logged at ERROR"
        assert cache.logins == frozenset()

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_stop_the_loop(
        self, teams: _FakeTeams
    ) -> None:
        """Errors outside the GitHub error types are logged and retried."""
        logger = FakeLogger()
        cache = TeamMembershipCache("acme", ["editors"], teams, logger=logger)
        await cache.refresh_once()
        teams.broken.add("editors")

        task = asyncio.create_task(cache.run_periodic(0.01))
        while len(teams.calls) < 4:
            await asyncio.sleep(0.005)

        assert not task.done(), "refresh loop must survive unexpected errors"
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert logger.levels_for("unexpected failure listing editors")[:2] == [
            "ERROR",
            "ERROR",
        ]
        assert cache.is_member("john"), "last good set must stay visible"

    @pytest.mark.asyncio
    async def test_first_refresh_runs_immediately(self, teams: _FakeTeams) -> None:
        """The loop refreshes before waiting for the first interval."""
        cache = TeamMembershipCache("acme", ["editors"], teams)

        task = asyncio.create_task(cache.run_periodic(3600))
        while not teams.calls:
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert cache.is_member("john"), "first refresh should populate the set"

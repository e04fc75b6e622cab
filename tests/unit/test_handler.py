"""Unit tests for the authorization pipeline."""

from __future__ import annotations

import re

import pytest

from bailiff.errors import RepushError
from bailiff.github import CommitStatusState, GitHubAPIError
from bailiff.handler import MAX_COMMENT_LEN, find_comment_sha
from bailiff.outcomes import Authorized, Rejected, RejectionReason
from bailiff.repush import format_repush_branch
from tests.helpers.fakes import (
    FORK_HEAD_REF,
    FORK_HEAD_SHA,
    FORK_REPO,
    FakePullRequests,
    FakeRepusher,
    comment_event,
    make_harness,
    snapshot,
)

DEFAULT_PATTERN = re.compile(r"(?m)^/ci authorize (?P<sha>[a-f0-9]+)$")


class TestFindCommentSha:
    """Tests for trigger pattern extraction."""

    @pytest.mark.parametrize(
        ("comment", "expected"),
        [
            ("/ci authorize 12345678", "12345678"),
            ("this is not a trigger", None),
            (
                "some commentary here or whatever.\n"
                "/ci authorize 12345678\n"
                "more commentary\n"
                "/ci authorize abcd",
                "12345678",
            ),
            ("  /ci authorize 12345678", None),
            ("/ci authorize ABCDEF", None),
        ],
        ids=["basic", "no match", "multiline first wins", "indented", "upper"],
    )
    def test_default_pattern(self, comment: str, expected: str | None) -> None:
        """The first whole-line trigger yields its SHA."""
        assert find_comment_sha(DEFAULT_PATTERN, comment) == expected

    def test_pattern_without_sha_group(self) -> None:
        """A pattern lacking the sha group never matches."""
        pattern = re.compile(r"/ci authorize ([a-f0-9]+)")

        assert find_comment_sha(pattern, "/ci authorize 1234") is None


class TestRejections:
    """Each policy check rejects with its own reason and never mirrors."""

    @pytest.mark.parametrize(
        ("event_kwargs", "reason"),
        [
            ({"number": None}, RejectionReason.NO_ISSUE),
            ({"is_pull_request": False}, RejectionReason.NOT_PULL_REQUEST),
            ({"action": "edited"}, RejectionReason.NOT_CREATION),
            ({"action": "deleted"}, RejectionReason.NOT_CREATION),
            ({"number": 0}, RejectionReason.PR_NOT_FOUND),
            ({"number": 1}, RejectionReason.PR_NOT_OPEN),
            ({"number": 2}, RejectionReason.PR_FROM_UPSTREAM),
            ({"sender": "stranger"}, RejectionReason.NON_WHITELISTED),
            (
                {"body": "/ci authorize aaaaaaaa\n" + "x" * MAX_COMMENT_LEN},
                RejectionReason.COMMENT_TOO_LONG,
            ),
            ({"body": "looks good to me"}, RejectionReason.NO_TRIGGER_PATTERN),
            ({"body": "/ci authorize bbbbbbbb"}, RejectionReason.MISMATCHED_SHA),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejection(
        self, event_kwargs: dict[str, object], reason: RejectionReason
    ) -> None:
        """The first failing check names the outcome."""
        harness = make_harness()

        outcome = await harness.pipeline.serve_issue_comment(
            comment_event(**event_kwargs),  # type: ignore[arg-type]
            harness.context(),
        )

        assert outcome == Rejected(reason), f"expected {reason}"
        assert harness.repusher.targets == [], "mirror must not be invoked"
        assert harness.statuses.published == [], "no status for rejections"
        assert harness.logger.levels_for("ignoring") == ["INFO"], (
            "rejections should log once at INFO"
        )

    @pytest.mark.asyncio
    async def test_comment_at_limit_is_accepted(self) -> None:
        """A body of exactly the maximum length still passes."""
        body = "/ci authorize aaaaaaaa\n"
        body += "x" * (MAX_COMMENT_LEN - len(body))
        harness = make_harness()

        outcome = await harness.pipeline.serve_issue_comment(
            comment_event(body=body), harness.context()
        )

        assert isinstance(outcome, Authorized), "limit is inclusive"

    @pytest.mark.asyncio
    async def test_checks_run_in_order(self) -> None:
        """An event failing several checks reports the earliest one."""
        harness = make_harness()

        outcome = await harness.pipeline.serve_issue_comment(
            comment_event(number=1, sender="stranger", body="nope"),
            harness.context(),
        )

        assert outcome == Rejected(RejectionReason.PR_NOT_OPEN)

    @pytest.mark.asyncio
    async def test_pull_request_is_not_fetched_for_early_rejections(self) -> None:
        """Checks that need no pull request do not call GitHub."""
        harness = make_harness()

        await harness.pipeline.serve_issue_comment(
            comment_event(action="edited"), harness.context()
        )

        assert harness.pull_requests.requests == []

    @pytest.mark.asyncio
    async def test_rejections_are_counted_by_label(self) -> None:
        """Every rejection increments its processed-PR label."""
        harness = make_harness()

        await harness.pipeline.serve_issue_comment(
            comment_event(number=1), harness.context()
        )

        assert harness.metrics.snapshot()["processed_prs_total"] == {
            "pull-request-not-open": 1
        }


class TestAuthorized:
    """Tests for the success path."""

    @pytest.mark.asyncio
    async def test_mirrors_and_publishes_status(self) -> None:
        """A valid trigger mirrors the fork branch and posts a success status."""
        harness = make_harness()

        outcome = await harness.pipeline.serve_issue_comment(
            comment_event(), harness.context()
        )

        assert isinstance(outcome, Authorized), "expected authorization"
        [target] = harness.repusher.targets
        assert target.fork_repo == FORK_REPO
        assert target.src_branch == FORK_HEAD_REF
        assert target.dest_branch == (
            "external-fork/"
            "3593dababb1188e36163c6b679d9e382371b697de298374183ac5457082c334d"
        )
        assert target.dest_branch == format_repush_branch(FORK_REPO, FORK_HEAD_REF)
        assert target.expected_sha == FORK_HEAD_SHA

        [status] = harness.statuses.published
        assert (status.owner, status.repo, status.sha) == (
            "ethereum-optimism",
            "optimism",
            FORK_HEAD_SHA,
        )
        assert status.state is CommitStatusState.SUCCESS
        assert status.context == "bailiff"
        assert status.description == (
            f"Successfully repushed {FORK_HEAD_REF} at {FORK_HEAD_SHA}."
        )
        assert harness.metrics.snapshot()["processed_prs_total"] == {"success": 1}

    @pytest.mark.asyncio
    async def test_pull_request_is_fetched_from_trusted_repo(self) -> None:
        """The pull request is looked up in the configured repository."""
        harness = make_harness()

        await harness.pipeline.serve_issue_comment(comment_event(), harness.context())

        assert harness.pull_requests.requests == [("ethereum-optimism", "optimism", 3)]

    @pytest.mark.asyncio
    async def test_logs_carry_request_id_and_issue(self) -> None:
        """Log lines after the pull request check carry the issue number."""
        harness = make_harness()
        ctx = harness.context()

        await harness.pipeline.serve_issue_comment(comment_event(), ctx)

        repush_lines = [m for m in harness.logger.messages if "repushing PR" in m]
        assert repush_lines, "expected a repush log line"
        assert f"request_id={ctx.request_id}" in repush_lines[0]
        assert "issue=3" in repush_lines[0]


class TestFailures:
    """Transport and mirror failures propagate instead of being swallowed."""

    @pytest.mark.asyncio
    async def test_github_error_other_than_404_propagates(self) -> None:
        """A 5xx from GitHub is an error, not a PRNotFound rejection."""
        error = GitHubAPIError.http_error(502, operation="get pull request")
        harness = make_harness(pull_requests=FakePullRequests(error=error))

        with pytest.raises(GitHubAPIError, match="HTTP 502"):
            await harness.pipeline.serve_issue_comment(
                comment_event(), harness.context()
            )

        assert harness.logger.levels_for("failed to get pull request") == ["ERROR"]
        assert harness.metrics.snapshot()["processed_prs_total"] == {"unknown": 1}

    @pytest.mark.asyncio
    async def test_missing_response_is_a_transport_error(self) -> None:
        """An error without a status code is never treated as not found."""
        error = GitHubAPIError("GitHub get pull request request failed: timeout")
        harness = make_harness(pull_requests=FakePullRequests(error=error))

        with pytest.raises(GitHubAPIError, match="timeout"):
            await harness.pipeline.serve_issue_comment(
                comment_event(), harness.context()
            )

    @pytest.mark.asyncio
    async def test_repush_failure_propagates_without_status(self) -> None:
        """A failed mirror publishes no status and surfaces the error."""
        repusher = FakeRepusher(error=RepushError("verify", "mismatch"))
        harness = make_harness(repusher=repusher)

        with pytest.raises(RepushError, match="verify failed"):
            await harness.pipeline.serve_issue_comment(
                comment_event(), harness.context()
            )

        assert harness.statuses.published == [], "no status after a failed mirror"
        assert harness.metrics.snapshot()["processed_prs_total"] == {"unknown": 1}

    @pytest.mark.asyncio
    async def test_deleted_fork_fails_before_mirroring(self) -> None:
        """A pull request whose head repository is gone cannot be mirrored."""
        pulls = FakePullRequests({3: snapshot(3, head_repo="")})
        harness = make_harness(pull_requests=pulls)

        with pytest.raises(RepushError, match="head repository no longer exists"):
            await harness.pipeline.serve_issue_comment(
                comment_event(), harness.context()
            )

        assert harness.repusher.targets == [], "mirror must not run"
        assert harness.statuses.published == []
        assert harness.logger.levels_for("no longer exists") == ["ERROR"]
        assert harness.metrics.snapshot()["processed_prs_total"] == {"unknown": 1}

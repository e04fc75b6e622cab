"""Authorization pipeline for trigger comments on fork pull requests.

A maintainer authorizes CI for a fork pull request by commenting
``/ci authorize <sha>``. The pipeline checks the comment against policy in
a fixed order and stops at the first failing check. When every check passes
it mirrors the fork commit into the trusted repository and publishes a
success commit status for it.

Checks, in order:

1. the event references an issue;
2. the issue is a pull request;
3. the comment was created (not edited or deleted);
4. the pull request exists;
5. the pull request is open;
6. the pull request comes from a fork, not the trusted repository;
7. the commenter belongs to a privileged team;
8. the comment is at most ``MAX_COMMENT_LEN`` characters;
9. the comment matches the trigger pattern;
10. the requested SHA equals the pull request head SHA.

Usage
-----
>>> pipeline = AuthorizationPipeline(config, dependencies)
>>> outcome = await pipeline.serve_issue_comment(event, context)

"""

from __future__ import annotations

import dataclasses
import typing as typ

from bailiff.config import SHA_GROUP_NAME
from bailiff.errors import RepushError
from bailiff.github import CommitStatusState, GitHubAPIError
from bailiff.logging import log_error, log_info
from bailiff.outcomes import Authorized, Outcome, Rejected, RejectionReason
from bailiff.repush import RepushTarget

if typ.TYPE_CHECKING:
    import re

    from bailiff.config import BailiffConfig
    from bailiff.context import RequestContext
    from bailiff.events import IssueCommentEvent
    from bailiff.github import PullRequestSource, StatusPublisher
    from bailiff.logging import ContextLogger
    from bailiff.membership import MembershipChecker
    from bailiff.observability import BailiffMetrics
    from bailiff.repush import Repusher

__all__ = [
    "MAX_COMMENT_LEN",
    "AuthorizationPipeline",
    "PipelineDependencies",
    "find_comment_sha",
]

MAX_COMMENT_LEN = 1024

_CREATED_ACTION = "created"


def find_comment_sha(pattern: re.Pattern[str], comment: str) -> str | None:
    """Return the SHA captured by the first match of *pattern* in *comment*.

    Examples
    --------
    >>> import re
    >>> find_comment_sha(re.compile(r"(?m)^/ci authorize (?P<sha>[a-f0-9]+)$"),
    ...                  "lgtm\\n/ci authorize abc123")
    'abc123'

    """
    if SHA_GROUP_NAME not in pattern.groupindex:
        return None
    match = pattern.search(comment)
    if match is None:
        return None
    return match.group(SHA_GROUP_NAME) or None


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineDependencies:
    """Collaborators of :class:`AuthorizationPipeline`.

    Attributes
    ----------
    pull_requests
        Source of fresh pull request snapshots.
    statuses
        Publisher of commit statuses.
    membership
        Privileged team membership lookup.
    repusher
        Mirror operation run for authorized commits.

    """

    pull_requests: PullRequestSource
    statuses: StatusPublisher
    membership: MembershipChecker
    repusher: Repusher


class AuthorizationPipeline:
    """Decide whether a comment authorizes CI, and act on it."""

    def __init__(
        self,
        config: BailiffConfig,
        dependencies: PipelineDependencies,
        *,
        metrics: BailiffMetrics | None = None,
    ) -> None:
        """Configure the pipeline with policy and collaborators."""
        self._config = config
        self._pull_requests = dependencies.pull_requests
        self._statuses = dependencies.statuses
        self._membership = dependencies.membership
        self._repusher = dependencies.repusher
        self._metrics = metrics

    async def serve_issue_comment(
        self, event: IssueCommentEvent, ctx: RequestContext
    ) -> Outcome:
        """Run :meth:`authorize` and record the outcome.

        Rejections are returned like successes. Transport failures and
        cancellations are recorded with the ``unknown`` label and re-raised.
        """
        try:
            outcome = await self.authorize(event, ctx)
        except BaseException:
            self._record(None)
            raise
        self._record(outcome)
        return outcome

    async def authorize(  # noqa: C901, PLR0911 - one return per policy check
        self, event: IssueCommentEvent, ctx: RequestContext
    ) -> Outcome:
        """Apply every policy check to *event* and mirror on success.

        Returns
        -------
        Outcome
            :class:`Authorized` after mirroring and publishing the status, or
            :class:`Rejected` naming the first failing check.

        Raises
        ------
        GitHubAPIError
            If GitHub cannot be reached or answers with an unexpected error.
        RepushError
            If mirroring the commit fails or the fork has been deleted.

        """
        logger = ctx.logger
        if not event.has_issue:
            log_info(logger, "ignoring comment with no issue")
            return Rejected(RejectionReason.NO_ISSUE)
        if not event.is_pull_request:
            log_info(
                logger,
                "ignoring comment from non-PR source number=%s",
                event.issue_number,
            )
            return Rejected(RejectionReason.NOT_PULL_REQUEST)

        pr_number = typ.cast("int", event.issue_number)
        logger = logger.bind(issue=pr_number)
        if event.action != _CREATED_ACTION:
            log_info(
                logger,
                "ignoring comment with non-created action action=%s",
                event.action,
            )
            return Rejected(RejectionReason.NOT_CREATION)

        config = self._config
        try:
            pr = await self._pull_requests.get_pull_request(
                config.org, config.repo, pr_number
            )
        except GitHubAPIError as exc:
            if exc.is_not_found:
                log_info(logger, "ignoring comment on non-existent PR")
                return Rejected(RejectionReason.PR_NOT_FOUND)
            log_error(logger, "failed to get pull request: %s", exc)
            raise

        if not pr.is_open:
            log_info(logger, "ignoring comment on closed PR state=%s", pr.state)
            return Rejected(RejectionReason.PR_NOT_OPEN)
        fork_repo = pr.head_repo_full_name
        if fork_repo == config.repo_slug:
            log_info(logger, "ignoring comment on upstream repo PR")
            return Rejected(RejectionReason.PR_FROM_UPSTREAM)
        if not self._membership.is_member(event.sender_login):
            log_info(
                logger,
                "ignoring comment from non-whitelisted user user=%s",
                event.sender_login,
            )
            return Rejected(RejectionReason.NON_WHITELISTED)

        body = event.comment_body
        if len(body) > MAX_COMMENT_LEN:
            log_info(
                logger, "ignoring comment with too long body bodyLen=%d", len(body)
            )
            return Rejected(RejectionReason.COMMENT_TOO_LONG)
        requested_sha = find_comment_sha(config.trigger_regex, body)
        if requested_sha is None:
            log_info(logger, "ignoring comment with non-matching trigger pattern")
            return Rejected(RejectionReason.NO_TRIGGER_PATTERN)
        requested_sha = requested_sha.lower()
        if requested_sha != pr.head_sha:
            log_info(
                logger,
                "ignoring comment with mismatched SHA requestedSHA=%s headSHA=%s",
                requested_sha,
                pr.head_sha,
            )
            return Rejected(RejectionReason.MISMATCHED_SHA)

        if not pr.has_head_repo:
            log_error(logger, "head repository of PR no longer exists")
            raise RepushError("fetch", "head repository no longer exists")

        target = RepushTarget.for_fork(fork_repo, pr.head_ref, pr.head_sha)
        await self._elevate(target, logger)
        return Authorized(target)

    async def _elevate(self, target: RepushTarget, logger: ContextLogger) -> None:
        log_info(
            logger,
            "repushing PR srcBranch=%s upstreamBranch=%s",
            target.src_branch,
            target.dest_branch,
        )
        await self._repusher.repush(target, logger=logger)

        config = self._config
        await self._statuses.create_status(
            config.org,
            config.repo,
            target.expected_sha,
            state=CommitStatusState.SUCCESS,
            context=config.status_name,
            description=(
                f"Successfully repushed {target.src_branch} at {target.expected_sha}."
            ),
        )
        log_info(logger, "published commit status sha=%s", target.expected_sha)

    def _record(self, outcome: Outcome | None) -> None:
        if self._metrics is not None:
            self._metrics.record_processed_pr(outcome)

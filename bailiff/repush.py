"""Mirror fork branches into the trusted repository.

``GitRepusher`` owns a private clone of the trusted repository. Mirroring a
pull request runs three git steps against that clone: fetch the fork branch,
verify the fetched commit is the one that was approved, and force-push it to
a branch derived from the fork and branch names. All git work, including the
initial clone, is serialized by a single lock because every step shares one
working tree.

Usage
-----
Clone once, then repush approved commits::

    repusher = GitRepusher(workdir, private_key_file)
    await repusher.initialize("git@github.com:acme/widgets.git")
    await repusher.repush(
        RepushTarget.for_fork("contrib/widgets", "feat/x", "abc123")
    )

"""

from __future__ import annotations

import asyncio
import dataclasses
import hashlib
import os
import typing as typ
from pathlib import Path

from bailiff.errors import RepushError
from bailiff.logging import get_logger, log_error, log_info, log_warning
from bailiff.process import CommandError, SubprocessRunner

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from bailiff.logging import SupportsLog
    from bailiff.process import CommandResult, CommandRunner

__all__ = [
    "REPUSH_BRANCH_PREFIX",
    "GitRepusher",
    "RepushTarget",
    "Repusher",
    "format_repush_branch",
]

REPUSH_BRANCH_PREFIX = "external-fork/"

_DEFAULT_GIT_HOST = "git@github.com"


def format_repush_branch(fork_repo: str, src_branch: str) -> str:
    """Return the trusted-repo branch that mirrors *src_branch* of *fork_repo*.

    Examples
    --------
    >>> format_repush_branch("foo/optimism", "master")[:22]
    'external-fork/0aeca8bc'

    """
    digest = hashlib.sha256(f"{fork_repo}/{src_branch}".encode()).hexdigest()
    return f"{REPUSH_BRANCH_PREFIX}{digest}"


@dataclasses.dataclass(frozen=True, slots=True)
class RepushTarget:
    """Everything needed to mirror one fork commit.

    Attributes
    ----------
    fork_repo
        Full name (``owner/name``) of the fork the pull request comes from.
    src_branch
        Branch on the fork.
    dest_branch
        Branch on the trusted repository that receives the commit.
    expected_sha
        Commit the approver named; the fetched head must match it.

    """

    fork_repo: str
    src_branch: str
    dest_branch: str
    expected_sha: str

    @classmethod
    def for_fork(
        cls, fork_repo: str, src_branch: str, expected_sha: str
    ) -> RepushTarget:
        """Build a target whose destination is derived from fork and branch."""
        return cls(
            fork_repo=fork_repo,
            src_branch=src_branch,
            dest_branch=format_repush_branch(fork_repo, src_branch),
            expected_sha=expected_sha,
        )


class Repusher(typ.Protocol):
    """Interface for the trust-elevating mirror operation."""

    async def repush(
        self, target: RepushTarget, *, logger: SupportsLog | None = None
    ) -> None:
        """Mirror *target* into the trusted repository."""
        ...


class GitRepusher:
    """Serialized git implementation of :class:`Repusher`.

    Parameters
    ----------
    workdir
        Existing, empty directory that holds the private clone.
    private_key_file
        SSH key used for every git network operation.
    runner
        Command runner; defaults to :class:`SubprocessRunner`.
    logger
        Default logger for process output.
    git_host
        SSH host prefix used to build fork URLs.

    """

    def __init__(
        self,
        workdir: Path | str,
        private_key_file: str,
        *,
        runner: CommandRunner | None = None,
        logger: SupportsLog | None = None,
        git_host: str = _DEFAULT_GIT_HOST,
    ) -> None:
        """Configure the repusher; call :meth:`initialize` before use."""
        self._workdir = Path(workdir)
        self._private_key_file = private_key_file
        self._runner = runner or SubprocessRunner()
        self._logger = logger if logger is not None else get_logger(__name__)
        self._git_host = git_host
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def workdir(self) -> Path:
        """Return the directory holding the private clone."""
        return self._workdir

    @property
    def initialized(self) -> bool:
        """Return True once the trusted repository has been cloned."""
        return self._initialized

    def git_env(self) -> dict[str, str]:
        """Return the environment every git invocation runs with."""
        ssh_command = (
            f"ssh -i {self._private_key_file} -o IdentitiesOnly=yes "
            "-o StrictHostKeyChecking=accept-new"
        )
        return {
            **os.environ,
            "GIT_SSH_COMMAND": ssh_command,
            "GIT_TERMINAL_PROMPT": "0",
        }

    def fork_url(self, fork_repo: str) -> str:
        """Return the SSH URL of *fork_repo*."""
        return f"{self._git_host}:{fork_repo}.git"

    async def initialize(
        self, repo_url: str, *, logger: SupportsLog | None = None
    ) -> None:
        """Clone *repo_url* into the working directory.

        Raises
        ------
        RepushError
            If the clone fails.

        """
        async with self._lock:
            await self._git("clone", ["clone", repo_url, "."], logger)
            self._initialized = True
        log_info(logger or self._logger, "cloned %s into %s", repo_url, self._workdir)

    async def repush(
        self, target: RepushTarget, *, logger: SupportsLog | None = None
    ) -> None:
        """Fetch, verify, and push *target* while holding the git lock.

        Raises
        ------
        RepushError
            If any step fails or the repository has not been initialised.

        """
        if not self._initialized:
            raise RepushError("repush", "repository has not been cloned")

        async with self._lock:
            await self.fetch(target, logger=logger)
            await self.verify(target, logger=logger)
            await self.push(target, logger=logger)

    async def fetch(
        self, target: RepushTarget, *, logger: SupportsLog | None = None
    ) -> None:
        """Fetch the fork branch into ``FETCH_HEAD``."""
        await self._git(
            "fetch",
            [
                "fetch",
                "--no-tags",
                self.fork_url(target.fork_repo),
                f"refs/heads/{target.src_branch}",
            ],
            logger,
        )

    async def verify(
        self, target: RepushTarget, *, logger: SupportsLog | None = None
    ) -> None:
        """Check that ``FETCH_HEAD`` is the expected commit.

        Raises
        ------
        RepushError
            If the fetched commit differs from ``target.expected_sha``.

        """
        result = await self._git(
            "verify", ["rev-parse", "--verify", "FETCH_HEAD^{commit}"], logger
        )
        fetched = result.stdout[0].strip() if result.stdout else ""
        if fetched.lower() != target.expected_sha.lower():
            reason = (
                f"fetched commit {fetched or '<none>'} does not match "
                f"requested commit {target.expected_sha}"
            )
            raise RepushError("verify", reason)

    async def push(
        self, target: RepushTarget, *, logger: SupportsLog | None = None
    ) -> None:
        """Force-push ``FETCH_HEAD`` to the destination branch.

        A push that has started runs to completion even if the caller is
        cancelled; the cancellation is re-raised afterwards.
        """
        push = asyncio.ensure_future(
            self._git(
                "push",
                [
                    "push",
                    "--force",
                    "origin",
                    f"FETCH_HEAD:refs/heads/{target.dest_branch}",
                ],
                logger,
            )
        )
        try:
            await asyncio.shield(push)
        except asyncio.CancelledError:
            log_warning(
                logger or self._logger,
                "cancelled during push to %s; waiting for it to finish",
                target.dest_branch,
            )
            try:
                await push
            except RepushError as exc:
                log_error(
                    logger or self._logger,
                    "push after cancellation failed: %s",
                    exc,
                )
            raise

    async def _git(
        self,
        step: str,
        args: cabc.Sequence[str],
        logger: SupportsLog | None,
    ) -> CommandResult:
        try:
            result = await self._runner.run(
                ["git", *args],
                cwd=self._workdir,
                env=self.git_env(),
                logger=logger or self._logger,
            )
        except CommandError as exc:
            raise RepushError(step, str(exc)) from exc
        if not result.ok:
            reason = f"command execution failed: exit status {result.returncode}"
            raise RepushError(step, reason)
        return result

"""Run external commands while streaming their output to a logger."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from bailiff.errors import BailiffError
from bailiff.logging import log_info, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from bailiff.logging import SupportsLog

__all__ = [
    "CommandError",
    "CommandOutputError",
    "CommandResult",
    "CommandRunner",
    "CommandStartError",
    "SubprocessRunner",
]

_STREAM_LIMIT = 1 << 20
_DEFAULT_TERMINATE_GRACE_S = 10.0


class CommandError(BailiffError):
    """Base class for failures to run an external command."""


class CommandStartError(CommandError):
    """Raised when a command cannot be started."""


class CommandOutputError(CommandError):
    """Raised when a running command's output cannot be read."""


@dataclasses.dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a finished command."""

    args: tuple[str, ...]
    returncode: int
    stdout: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """Return True when the command exited with status zero."""
        return self.returncode == 0


class CommandRunner(typ.Protocol):
    """Interface for running one external command to completion."""

    async def run(
        self,
        args: cabc.Sequence[str],
        *,
        cwd: Path,
        env: cabc.Mapping[str, str] | None,
        logger: SupportsLog,
    ) -> CommandResult:
        """Run *args* in *cwd* and return its result."""
        ...


class SubprocessRunner:
    """asyncio subprocess implementation of :class:`CommandRunner`.

    Each line of standard output and standard error is logged as soon as it
    is read, tagged ``[stdout]`` or ``[stderr]``. Standard output lines are
    also collected into the result.

    When the awaiting task is cancelled, or the output cannot be read, the
    child receives SIGTERM, then SIGKILL if it has not exited after
    ``terminate_grace_s`` seconds. The child has always exited when
    :meth:`run` returns or raises.
    """

    def __init__(
        self, *, terminate_grace_s: float = _DEFAULT_TERMINATE_GRACE_S
    ) -> None:
        """Configure how long a cancelled child may take to exit."""
        self._terminate_grace_s = terminate_grace_s

    async def run(
        self,
        args: cabc.Sequence[str],
        *,
        cwd: Path,
        env: cabc.Mapping[str, str] | None,
        logger: SupportsLog,
    ) -> CommandResult:
        """Run *args*, streaming output to *logger*.

        Raises
        ------
        CommandStartError
            If the process cannot be spawned.
        CommandOutputError
            If reading the output fails, for example on a line longer than
            the stream limit. The child is stopped first.

        """
        argv = tuple(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            msg = f"command start failed: {exc}"
            raise CommandStartError(msg) from exc

        stdout: list[str] = []
        pumps = [
            asyncio.ensure_future(_pump(proc.stdout, "stdout", logger, stdout)),
            asyncio.ensure_future(_pump(proc.stderr, "stderr", logger, None)),
        ]
        try:
            await asyncio.gather(*pumps)
            returncode = await proc.wait()
        except asyncio.CancelledError:
            await self._abort(proc, pumps, logger)
            raise
        except Exception as exc:
            await self._abort(proc, pumps, logger)
            msg = f"command output could not be read: {exc}"
            raise CommandOutputError(msg) from exc

        return CommandResult(args=argv, returncode=returncode, stdout=tuple(stdout))

    async def _abort(
        self,
        proc: asyncio.subprocess.Process,
        pumps: list[asyncio.Future[None]],
        logger: SupportsLog,
    ) -> None:
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        if proc.returncode is not None:
            return
        log_warning(logger, "terminating command pid=%d", proc.pid)
        proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), self._terminate_grace_s)
        except TimeoutError:
            proc.kill()
            await proc.wait()


async def _pump(
    stream: asyncio.StreamReader | None,
    name: str,
    logger: SupportsLog,
    sink: list[str] | None,
) -> None:
    if stream is None:
        return
    async for raw in stream:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        log_info(logger, "[%s]: %s", name, line)
        if sink is not None:
            sink.append(line)

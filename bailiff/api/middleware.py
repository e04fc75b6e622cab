"""Falcon middleware for request context and application lifecycle.

``RequestContextMiddleware`` gives each request a fresh
:class:`~bailiff.context.RequestContext` on ``req.context.request`` and
logs the request once a response is ready. ``LifecycleMiddleware`` runs the
ASGI lifespan hooks: it clones the trusted repository and starts the
membership refresh task on startup, and stops both on shutdown.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(
        middleware=[
            RequestContextMiddleware(metrics=metrics),
            LifecycleMiddleware(config, repusher, membership, github),
        ]
    )

"""

from __future__ import annotations

import asyncio
import contextlib
import time
import typing as typ

import falcon

from bailiff.context import RequestContext
from bailiff.errors import RepushError
from bailiff.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from bailiff.config import BailiffConfig
    from bailiff.github import GitHubRESTClient
    from bailiff.logging import SupportsLog
    from bailiff.membership import TeamMembershipCache
    from bailiff.observability import BailiffMetrics
    from bailiff.repush import GitRepusher

__all__ = ["LifecycleMiddleware", "RequestContextMiddleware"]

logger = get_logger(__name__)


class RequestContextMiddleware:
    """Attach a request context to every request and log its completion.

    Parameters
    ----------
    base_logger
        Logger that request contexts bind their identifier to.
    metrics
        Optional counters; every response is recorded by status code.

    """

    def __init__(
        self,
        *,
        base_logger: SupportsLog | None = None,
        metrics: BailiffMetrics | None = None,
    ) -> None:
        """Store the base logger and optional metrics."""
        self._logger = base_logger if base_logger is not None else logger
        self._metrics = metrics

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Create the request context and note the start time."""
        req.context.request = RequestContext.create(self._logger)
        req.context.started_at = time.perf_counter()

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        _req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature
    ) -> None:
        """Log the served request and record its status code."""
        status_code = falcon.http_status_to_code(resp.status)
        if self._metrics is not None:
            self._metrics.record_http_request(status_code)

        ctx: RequestContext | None = getattr(req.context, "request", None)
        if ctx is None:
            return
        started_at: float = getattr(req.context, "started_at", time.perf_counter())
        duration_ms = (time.perf_counter() - started_at) * 1000
        log_info(
            ctx.logger,
            "served HTTP request method=%s url=%s status=%d duration_ms=%.1f "
            "user_agent=%s remote_addr=%s",
            req.method,
            req.url,
            status_code,
            duration_ms,
            req.user_agent,
            req.remote_addr,
        )


class LifecycleMiddleware:
    """Start and stop background work with the ASGI lifespan.

    Startup clones the trusted repository; a failed clone aborts startup.
    It then starts the periodic membership refresh. Shutdown cancels the
    refresh task, waits for it, and closes the GitHub HTTP client.

    Parameters
    ----------
    config
        Validated service configuration.
    repusher
        Repusher whose private clone is initialized on startup.
    membership
        Membership cache refreshed in the background.
    github
        GitHub client closed on shutdown.

    """

    def __init__(
        self,
        config: BailiffConfig,
        repusher: GitRepusher,
        membership: TeamMembershipCache,
        github: GitHubRESTClient,
    ) -> None:
        """Store the collaborators managed across the lifespan."""
        self._config = config
        self._repusher = repusher
        self._membership = membership
        self._github = github
        self._refresh_task: asyncio.Task[typ.NoReturn] | None = None

    @property
    def refresh_task(self) -> asyncio.Task[typ.NoReturn] | None:
        """Return the running membership refresh task, if any."""
        return self._refresh_task

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Clone the trusted repository and start the refresh task."""
        repo_url = self._config.repo_ssh_url
        try:
            await self._repusher.initialize(repo_url)
        except RepushError as exc:
            log_error(logger, "failed to clone repo %s: %s", repo_url, exc)
            raise

        self._refresh_task = asyncio.create_task(
            self._membership.run_periodic(
                self._config.membership_refresh_interval_s
            ),
            name="bailiff-membership-refresh",
        )
        log_info(
            logger,
            "started membership refresh every %.0fs for teams %s",
            self._config.membership_refresh_interval_s,
            ", ".join(self._config.admin_teams),
        )

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Stop the refresh task and release the GitHub client."""
        task, self._refresh_task = self._refresh_task, None
        try:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        finally:
            await self._github.aclose()
        log_info(logger, "shut down background tasks")

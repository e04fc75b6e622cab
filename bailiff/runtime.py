"""Bailiff runtime entrypoint.

This module provides the ASGI application factory used by Granian. It loads
the YAML configuration and the environment secrets, wires the GitHub
client, membership cache, repusher, and authorization pipeline together,
and delegates application construction to :func:`bailiff.api.app.create_app`.

Configuration is driven by environment variables:

- ``BAILIFF_CONFIG_PATH``: Path of the YAML configuration file (required)
- ``BAILIFF_WEBHOOK_SECRET``: Webhook shared secret (required)
- ``BAILIFF_GITHUB_TOKEN``: GitHub API token (required)
- ``BAILIFF_PRIVATE_KEY_FILE``: SSH key used by git (required)
- ``BAILIFF_LOG_LEVEL``: Log level (default ``INFO``)
- ``BAILIFF_WORKDIR``: Directory for the private clone (default: a fresh
  temporary directory)

The listen address comes from ``listen_addr`` in the configuration file.
The server runs a single worker: repushes are serialized by an in-process
lock, so one process must own the clone.

Run the service directly with ``python -m bailiff.runtime``.
"""

from __future__ import annotations

import os
import tempfile
import typing as typ
from pathlib import Path

from bailiff.config import EnvConfig, load_config
from bailiff.errors import ConfigError
from bailiff.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

    from bailiff.config import BailiffConfig

__all__ = ["build_app", "create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535

_WORKDIR_PREFIX = "bailiff-"


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid listen port: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def _config_path() -> str:
    path = os.environ.get("BAILIFF_CONFIG_PATH", "").strip()
    if not path:
        raise ConfigError.missing("BAILIFF_CONFIG_PATH")
    return path


def _workdir() -> Path:
    configured = os.environ.get("BAILIFF_WORKDIR", "").strip()
    if configured:
        return Path(configured)
    return Path(tempfile.mkdtemp(prefix=_WORKDIR_PREFIX))


def build_app(
    config: BailiffConfig, env: EnvConfig, *, workdir: Path
) -> falcon.asgi.App:
    """Wire every collaborator and return the Falcon application.

    Parameters
    ----------
    config
        Validated file configuration.
    env
        Secrets read from the environment.
    workdir
        Existing directory that receives the private clone on startup.

    Returns
    -------
    falcon.asgi.App
        Application with lifespan hooks for cloning and membership refresh.

    """
    from bailiff.api.app import AppDependencies
    from bailiff.api.app import create_app as _create_api_app
    from bailiff.api.middleware import LifecycleMiddleware
    from bailiff.github import GitHubRESTClient, GitHubRESTConfig
    from bailiff.handler import AuthorizationPipeline, PipelineDependencies
    from bailiff.membership import TeamMembershipCache
    from bailiff.observability import BailiffMetrics
    from bailiff.repush import GitRepusher

    github = GitHubRESTClient(GitHubRESTConfig(token=env.github_token))
    membership = TeamMembershipCache(config.org, config.admin_teams, github)
    repusher = GitRepusher(workdir, env.private_key_file)
    metrics = BailiffMetrics()

    pipeline = AuthorizationPipeline(
        config,
        PipelineDependencies(
            pull_requests=github,
            statuses=github,
            membership=membership,
            repusher=repusher,
        ),
        metrics=metrics,
    )
    deps = AppDependencies(
        pipeline=pipeline,
        webhook_secret=env.webhook_secret,
        metrics=metrics,
    )
    lifecycle = LifecycleMiddleware(config, repusher, membership, github)
    return _create_api_app(deps, lifecycle=lifecycle)


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Raises
    ------
    ConfigError
        If the configuration file or a required variable is missing or
        invalid.

    """
    config = load_config(_config_path())
    env = EnvConfig.from_env()
    workdir = _workdir()
    log_info(logger, "using working directory %s", workdir)
    return build_app(config, env, workdir=workdir)


def main() -> None:
    """Start the Bailiff server using Granian.

    Reads ``BAILIFF_LOG_LEVEL`` and ``BAILIFF_CONFIG_PATH`` from the
    environment and serves on the configured listen address.
    """
    from granian import Granian
    from granian.constants import Interfaces

    log_level_str = os.environ.get("BAILIFF_LOG_LEVEL", "INFO")
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid BAILIFF_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    try:
        config = load_config(_config_path())
        host, port_str = config.listen_host_port
    except ConfigError as exc:
        log_error(logger, "error loading config: %s", exc)
        raise SystemExit(1) from exc
    port = _parse_port(port_str)

    log_info(
        logger,
        "Starting Bailiff on %s:%d for %s (log_level=%s)",
        host,
        port,
        config.repo_slug,
        normalized_level,
    )

    server = Granian(
        "bailiff.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
        workers=1,
    )
    server.serve()


if __name__ == "__main__":
    main()

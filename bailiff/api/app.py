"""Application factory for the Bailiff Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application: a ``/healthz`` liveness probe and a webhook sink that accepts
signed GitHub deliveries on every other path.

Usage
-----
Create an app around an authorization pipeline::

    from bailiff.api.app import AppDependencies, create_app

    deps = AppDependencies(pipeline=pipeline, webhook_secret=secret)
    app = create_app(deps)

Pass a ``LifecycleMiddleware`` to clone the repository and refresh team
membership with the ASGI lifespan::

    app = create_app(deps, lifecycle=LifecycleMiddleware(...))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from bailiff.api.errors import (
    ProcessingError,
    handle_processing_error,
    handle_webhook_error,
)
from bailiff.api.middleware import RequestContextMiddleware
from bailiff.api.resources import (
    PROCESSING_TIMEOUT_S,
    HealthResource,
    WebhookResource,
)
from bailiff.errors import WebhookError

if typ.TYPE_CHECKING:
    from bailiff.api.middleware import LifecycleMiddleware
    from bailiff.handler import AuthorizationPipeline
    from bailiff.logging import SupportsLog
    from bailiff.observability import BailiffMetrics

__all__ = ["HEALTH_PATH", "AppDependencies", "create_app"]

HEALTH_PATH = "/healthz"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    pipeline
        Authorization pipeline that handles issue comment events.
    webhook_secret
        Shared secret for webhook signatures; empty disables verification.
    metrics
        Optional counters for requests, deliveries, and outcomes.
    logger
        Optional base logger for request contexts.
    processing_timeout_s
        Upper bound on the processing time of one delivery.

    """

    pipeline: AuthorizationPipeline
    webhook_secret: str
    metrics: BailiffMetrics | None = None
    logger: SupportsLog | None = None
    processing_timeout_s: float = PROCESSING_TIMEOUT_S


def create_app(
    dependencies: AppDependencies,
    *,
    lifecycle: LifecycleMiddleware | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Pipeline, secret, and observability collaborators.
    lifecycle
        Optional lifespan middleware; omitted in tests that do not run the
        ASGI lifespan.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = [
        RequestContextMiddleware(
            base_logger=dependencies.logger, metrics=dependencies.metrics
        )
    ]
    if lifecycle is not None:
        middleware.append(lifecycle)

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route(HEALTH_PATH, HealthResource())

    # Routes are matched before sinks, so /healthz is never a webhook.
    webhook = WebhookResource(
        dependencies.pipeline,
        dependencies.webhook_secret,
        metrics=dependencies.metrics,
        timeout_s=dependencies.processing_timeout_s,
    )
    app.add_sink(webhook.on_request, prefix="/")

    app.add_error_handler(WebhookError, handle_webhook_error)
    app.add_error_handler(ProcessingError, handle_processing_error)

    return app

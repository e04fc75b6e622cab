"""HTTP resources for the liveness probe and webhook deliveries.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/healthz", HealthResource())
    app.add_sink(WebhookResource(pipeline, secret).on_request, prefix="/")

"""

from __future__ import annotations

import asyncio
import typing as typ

import falcon

from bailiff.api.errors import ProcessingError
from bailiff.context import RequestContext
from bailiff.errors import BailiffError
from bailiff.events import (
    ISSUE_COMMENT_EVENT,
    IssueCommentEvent,
    UnhandledEvent,
    parse_webhook,
)
from bailiff.logging import get_logger, log_error, log_info
from bailiff.signature import (
    SIGNATURE_256_HEADER,
    SIGNATURE_HEADER,
    extract_payload,
    verify_signature,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from bailiff.handler import AuthorizationPipeline
    from bailiff.observability import BailiffMetrics

__all__ = [
    "EVENT_TYPE_HEADER",
    "PROCESSING_TIMEOUT_S",
    "HealthResource",
    "WebhookResource",
]

EVENT_TYPE_HEADER = "X-GitHub-Event"
PROCESSING_TIMEOUT_S = 300.0

OK_TEXT = "ok"

logger = get_logger(__name__)


def _ok(resp: Response) -> None:
    resp.status = falcon.HTTP_200
    resp.content_type = falcon.MEDIA_TEXT
    resp.text = OK_TEXT


class HealthResource:
    """Liveness probe resource returning ``ok``.

    Always responds with HTTP 200 to indicate the process is alive.
    """

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /healthz requests."""
        _ok(resp)


class WebhookResource:
    """Validate GitHub deliveries and dispatch supported events.

    The resource is mounted as a sink so deliveries are accepted on any
    path. Signature or payload failures raise ``WebhookError`` (HTTP 400).
    Unsupported event types are acknowledged without further work. Issue
    comments run through the authorization pipeline under a timeout;
    rejections are acknowledged like successes and only processing failures
    surface as ``ProcessingError`` (HTTP 500).

    Parameters
    ----------
    pipeline
        Authorization pipeline for issue comment events.
    webhook_secret
        Shared secret for signature verification; empty disables it.
    metrics
        Optional counters for validated deliveries.
    timeout_s
        Upper bound on the processing time of one delivery.

    """

    def __init__(
        self,
        pipeline: AuthorizationPipeline,
        webhook_secret: str,
        *,
        metrics: BailiffMetrics | None = None,
        timeout_s: float = PROCESSING_TIMEOUT_S,
    ) -> None:
        """Store the collaborators used for every delivery."""
        self._pipeline = pipeline
        self._webhook_secret = webhook_secret
        self._metrics = metrics
        self._timeout_s = timeout_s

    async def on_request(self, req: Request, resp: Response, **_kwargs: str) -> None:
        """Handle one webhook delivery on any path and method.

        Raises
        ------
        WebhookError
            If the signature, content type, event type, or payload is invalid.
        ProcessingError
            If a supported event fails with a transport or repush error.

        """
        ctx = getattr(req.context, "request", None)
        if ctx is None:
            ctx = RequestContext.create(logger)
            req.context.request = ctx

        body = await req.stream.read()
        verify_signature(
            secret=self._webhook_secret,
            body=body,
            signature_256=req.get_header(SIGNATURE_256_HEADER),
            signature=req.get_header(SIGNATURE_HEADER),
        )
        payload = extract_payload(req.content_type, body)
        event = parse_webhook(req.get_header(EVENT_TYPE_HEADER), payload)

        match event:
            case IssueCommentEvent():
                self._record(ISSUE_COMMENT_EVENT)
                await self._serve_issue_comment(event, ctx)
            case UnhandledEvent(event_type=event_type):
                self._record(event_type)
                log_info(ctx.logger, "ignoring unsupported event type=%s", event_type)

        _ok(resp)

    async def _serve_issue_comment(
        self, event: IssueCommentEvent, ctx: RequestContext
    ) -> None:
        try:
            async with asyncio.timeout(self._timeout_s):
                await self._pipeline.serve_issue_comment(event, ctx)
        except TimeoutError as exc:
            log_error(
                ctx.logger,
                "issue comment processing timed out after %.0fs",
                self._timeout_s,
            )
            raise ProcessingError(str(exc) or "processing timed out") from exc
        except BailiffError as exc:
            log_error(ctx.logger, "failed to process issue comment: %s", exc)
            raise ProcessingError(str(exc)) from exc

    def _record(self, event_type: str) -> None:
        if self._metrics is not None:
            self._metrics.record_received_webhook(event_type)

"""Falcon error handlers for the webhook API.

Usage
-----
Register error handlers on the Falcon app::

    from bailiff.api.errors import (
        ProcessingError,
        handle_processing_error,
        handle_webhook_error,
    )

    app.add_error_handler(WebhookError, handle_webhook_error)
    app.add_error_handler(ProcessingError, handle_processing_error)

"""

from __future__ import annotations

import typing as typ

import falcon

from bailiff.errors import BailiffError, WebhookError
from bailiff.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from bailiff.logging import SupportsLog

__all__ = [
    "INVALID_REQUEST_TEXT",
    "PROCESSING_FAILED_TEXT",
    "ProcessingError",
    "handle_processing_error",
    "handle_webhook_error",
]

INVALID_REQUEST_TEXT = "invalid request"
PROCESSING_FAILED_TEXT = "failed to process issue comment"

logger = get_logger(__name__)


class ProcessingError(BailiffError):
    """Raised when a supported event could not be processed.

    The cause (a GitHub transport failure, a failed repush, or a timeout) is
    chained as ``__cause__`` and has already been logged.
    """


def _request_logger(req: Request) -> SupportsLog:
    ctx = getattr(req.context, "request", None)
    return ctx.logger if ctx is not None else logger


def _plain_text(resp: Response, status: str, text: str) -> None:
    resp.status = status
    resp.content_type = falcon.MEDIA_TEXT
    resp.text = text


async def handle_webhook_error(
    req: Request,
    resp: Response,
    ex: WebhookError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``WebhookError`` to an HTTP 400 plain-text response.

    Parameters
    ----------
    req
        Falcon request carrying the request context.
    resp
        Falcon response whose status and body are set.
    ex
        The validation failure.
    _params
        URI template parameters (unused).

    """
    log_warning(_request_logger(req), "invalid webhook request: %s", ex)
    _plain_text(resp, falcon.HTTP_400, INVALID_REQUEST_TEXT)


async def handle_processing_error(
    _req: Request,
    resp: Response,
    _ex: ProcessingError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``ProcessingError`` to an HTTP 500 plain-text response."""
    _plain_text(resp, falcon.HTTP_500, PROCESSING_FAILED_TEXT)

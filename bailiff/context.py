"""Per-request context carried explicitly through the call chain."""

from __future__ import annotations

import dataclasses
import secrets

from bailiff.logging import ContextLogger, SupportsLog

_REQUEST_ID_BYTES = 16


def new_request_id() -> str:
    """Return a fresh 32-character lowercase hex request identifier."""
    return secrets.token_hex(_REQUEST_ID_BYTES)


@dataclasses.dataclass(frozen=True, slots=True)
class RequestContext:
    """Correlation data for one inbound webhook delivery.

    Attributes
    ----------
    request_id
        Identifier generated fresh for the request.
    logger
        Logger bound with ``request_id``; nested calls log through it.

    """

    request_id: str
    logger: ContextLogger

    @classmethod
    def create(cls, logger: SupportsLog) -> RequestContext:
        """Build a context with a new request identifier bound to *logger*."""
        request_id = new_request_id()
        base = logger if isinstance(logger, ContextLogger) else ContextLogger(logger)
        return cls(request_id=request_id, logger=base.bind(request_id=request_id))

"""Validate GitHub webhook deliveries.

GitHub signs each delivery with an HMAC of the raw request body keyed by the
webhook secret. ``X-Hub-Signature-256`` carries a SHA-256 digest and is
preferred; the legacy ``X-Hub-Signature`` SHA-1 digest is accepted when it
is the only one present.
"""

from __future__ import annotations

import hashlib
import hmac
import typing as typ
import urllib.parse

from bailiff.errors import WebhookError

__all__ = [
    "SIGNATURE_256_HEADER",
    "SIGNATURE_HEADER",
    "compute_signature",
    "extract_payload",
    "verify_signature",
]

SIGNATURE_256_HEADER = "X-Hub-Signature-256"
SIGNATURE_HEADER = "X-Hub-Signature"

_DIGESTS: dict[str, typ.Callable[..., typ.Any]] = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}

_JSON_CONTENT_TYPE = "application/json"
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def compute_signature(
    secret: str | bytes, body: bytes, *, algorithm: str = "sha256"
) -> str:
    """Return the ``<algorithm>=<hex>`` signature GitHub would send for *body*."""
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    digest = hmac.new(key, body, _DIGESTS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    *,
    secret: str | bytes,
    body: bytes,
    signature_256: str | None,
    signature: str | None = None,
) -> None:
    """Check the delivery signature of *body*.

    An empty *secret* disables verification.

    Raises
    ------
    WebhookError
        If no usable signature is present or the digest does not match.

    """
    if not secret:
        return

    header = signature_256 or signature
    if not header:
        msg = "missing signature"
        raise WebhookError(msg)

    algorithm, sep, provided = header.strip().partition("=")
    if not sep or algorithm not in _DIGESTS:
        msg = f"unsupported signature format: {algorithm or header!r}"
        raise WebhookError(msg)

    expected = compute_signature(secret, body, algorithm=algorithm)
    if not hmac.compare_digest(f"{algorithm}={provided.lower()}", expected):
        msg = "payload signature check failed"
        raise WebhookError(msg)


def extract_payload(content_type: str | None, body: bytes) -> bytes:
    """Return the JSON document carried by a delivery body.

    Form-encoded deliveries carry the JSON in the ``payload`` field.

    Raises
    ------
    WebhookError
        For unsupported content types or a form body without ``payload``.

    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type == _JSON_CONTENT_TYPE:
        return body
    if media_type == _FORM_CONTENT_TYPE:
        form = urllib.parse.parse_qs(body.decode("utf-8", errors="replace"))
        values = form.get("payload")
        if not values:
            msg = "form payload is missing the payload field"
            raise WebhookError(msg)
        return values[0].encode("utf-8")
    msg = f"webhook request has unsupported Content-Type {content_type!r}"
    raise WebhookError(msg)

"""Unit tests for webhook signature validation and payload extraction."""

from __future__ import annotations

import hashlib
import hmac
import urllib.parse

import pytest

from bailiff.errors import WebhookError
from bailiff.signature import compute_signature, extract_payload, verify_signature

SECRET = "it's a secret"  # noqa: S105 - test secret
BODY = b'{"action":"created"}'


class TestComputeSignature:
    """Tests for compute_signature."""

    def test_matches_hmac_sha256(self) -> None:
        """The signature is the hex HMAC-SHA256 of the body."""
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()

        assert compute_signature(SECRET, BODY) == f"sha256={expected}"

    def test_supports_sha1(self) -> None:
        """The legacy SHA-1 signature uses the sha1 prefix."""
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()

        assert compute_signature(SECRET, BODY, algorithm="sha1") == f"sha1={expected}"


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_accepts_valid_sha256(self) -> None:
        """A correct SHA-256 signature passes."""
        verify_signature(
            secret=SECRET, body=BODY, signature_256=compute_signature(SECRET, BODY)
        )

    def test_accepts_sha1_fallback(self) -> None:
        """Only a SHA-1 signature present is still accepted."""
        verify_signature(
            secret=SECRET,
            body=BODY,
            signature_256=None,
            signature=compute_signature(SECRET, BODY, algorithm="sha1"),
        )

    def test_prefers_sha256_when_both_present(self) -> None:
        """A bad SHA-256 signature fails even if SHA-1 is correct."""
        with pytest.raises(WebhookError, match="signature check failed"):
            verify_signature(
                secret=SECRET,
                body=BODY,
                signature_256="sha256=" + "0" * 64,
                signature=compute_signature(SECRET, BODY, algorithm="sha1"),
            )

    def test_rejects_tampered_body(self) -> None:
        """A signature over different bytes fails."""
        with pytest.raises(WebhookError, match="signature check failed"):
            verify_signature(
                secret=SECRET,
                body=BODY + b" ",
                signature_256=compute_signature(SECRET, BODY),
            )

    def test_rejects_missing_signature(self) -> None:
        """A configured secret requires a signature header."""
        with pytest.raises(WebhookError, match="missing signature"):
            verify_signature(secret=SECRET, body=BODY, signature_256=None)

    @pytest.mark.parametrize("header", ["deadbeef", "md5=abcdef"])
    def test_rejects_unsupported_format(self, header: str) -> None:
        """Headers without a known algorithm prefix fail."""
        with pytest.raises(WebhookError, match="unsupported signature format"):
            verify_signature(secret=SECRET, body=BODY, signature_256=header)

    def test_empty_secret_skips_verification(self) -> None:
        """An empty secret disables the check."""
        verify_signature(secret="", body=BODY, signature_256=None)


class TestExtractPayload:
    """Tests for extract_payload."""

    def test_json_body_is_returned_as_is(self) -> None:
        """JSON deliveries are the payload."""
        assert extract_payload("application/json", BODY) == BODY

    def test_json_with_charset(self) -> None:
        """Media type parameters are ignored."""
        assert extract_payload("application/json; charset=utf-8", BODY) == BODY

    def test_form_payload_field(self) -> None:
        """Form deliveries carry the JSON in the payload field."""
        body = urllib.parse.urlencode({"payload": BODY.decode()}).encode()

        assert extract_payload("application/x-www-form-urlencoded", body) == BODY

    def test_form_without_payload(self) -> None:
        """A form body must carry the payload field."""
        with pytest.raises(WebhookError, match="missing the payload field"):
            extract_payload("application/x-www-form-urlencoded", b"other=1")

    @pytest.mark.parametrize("content_type", [None, "text/plain"])
    def test_unsupported_content_type(self, content_type: str | None) -> None:
        """Other content types are rejected."""
        with pytest.raises(WebhookError, match="unsupported Content-Type"):
            extract_payload(content_type, BODY)

"""Inbound webhook events.

GitHub sends one JSON envelope per delivery and names its kind in the
``X-GitHub-Event`` header. Bailiff acts on ``issue_comment`` only; every
other kind decodes to :class:`UnhandledEvent` and is acknowledged without
further work.
"""

from __future__ import annotations

import dataclasses

import msgspec

from bailiff.errors import WebhookError

__all__ = [
    "ISSUE_COMMENT_EVENT",
    "IncomingEvent",
    "IssueCommentEvent",
    "UnhandledEvent",
    "parse_webhook",
]

ISSUE_COMMENT_EVENT = "issue_comment"


@dataclasses.dataclass(frozen=True, slots=True)
class IssueCommentEvent:
    """A comment posted, edited, or deleted on an issue or pull request.

    Attributes
    ----------
    action
        ``created``, ``edited``, or ``deleted``.
    issue_number
        Number of the commented issue, or ``None`` when the payload carries
        no issue.
    is_pull_request
        True when the issue is a pull request.
    comment_body
        Text of the comment.
    sender_login
        Login of the user who triggered the event.

    """

    action: str
    issue_number: int | None
    is_pull_request: bool
    comment_body: str
    sender_login: str

    @property
    def has_issue(self) -> bool:
        """Return True when the event references an issue."""
        return self.issue_number is not None


@dataclasses.dataclass(frozen=True, slots=True)
class UnhandledEvent:
    """Any event kind Bailiff acknowledges but does not process."""

    event_type: str


IncomingEvent = IssueCommentEvent | UnhandledEvent


class _User(msgspec.Struct):
    login: str | None = None


class _Comment(msgspec.Struct):
    body: str | None = None


class _Issue(msgspec.Struct):
    number: int = 0
    pull_request: dict[str, object] | None = None


class _IssueCommentPayload(msgspec.Struct):
    action: str | None = None
    issue: _Issue | None = None
    comment: _Comment | None = None
    sender: _User | None = None


def parse_webhook(event_type: str | None, payload: bytes) -> IncomingEvent:
    """Decode *payload* according to *event_type*.

    Raises
    ------
    WebhookError
        If the event type is missing or the payload is not a valid JSON
        object for its kind.

    """
    if not event_type:
        msg = "missing event type header"
        raise WebhookError(msg)

    if event_type != ISSUE_COMMENT_EVENT:
        try:
            msgspec.json.decode(payload, type=dict[str, object])
        except msgspec.DecodeError as exc:
            msg = f"invalid {event_type} payload: {exc}"
            raise WebhookError(msg) from exc
        return UnhandledEvent(event_type=event_type)

    try:
        raw = msgspec.json.decode(payload, type=_IssueCommentPayload)
    except msgspec.DecodeError as exc:
        msg = f"invalid {event_type} payload: {exc}"
        raise WebhookError(msg) from exc

    issue = raw.issue
    return IssueCommentEvent(
        action=raw.action or "",
        issue_number=issue.number if issue is not None else None,
        is_pull_request=issue is not None and issue.pull_request is not None,
        comment_body=(raw.comment.body or "") if raw.comment is not None else "",
        sender_login=(raw.sender.login or "") if raw.sender is not None else "",
    )

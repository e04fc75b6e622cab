"""Errors shared across the Bailiff service.

Policy rejections of the authorization pipeline are deliberately absent
from this module: they are ordinary return values (see
:mod:`bailiff.outcomes`), not exceptions.
"""

from __future__ import annotations


class BailiffError(Exception):
    """Base class for Bailiff errors."""


class ConfigError(BailiffError):
    """Raised when file or environment configuration is invalid."""

    @classmethod
    def missing(cls, what: str) -> ConfigError:
        """Return an error for a required configuration value."""
        return cls(f"must define {what}")


class WebhookError(BailiffError):
    """Raised when an inbound webhook fails signature or payload validation."""


class RepushError(BailiffError):
    """Raised when mirroring a fork branch into the trusted repository fails.

    Attributes
    ----------
    step
        Name of the sub-step that failed (``clone``, ``fetch``, ``verify``,
        or ``push``).

    """

    def __init__(self, step: str, reason: str) -> None:
        """Initialise with the failing step and a description."""
        self.step = step
        self.reason = reason
        super().__init__(f"{step} failed: {reason}")

"""GitHub API errors."""

from __future__ import annotations

from bailiff.errors import BailiffError

_HTTP_NOT_FOUND = 404


class GitHubAPIError(BailiffError):
    """Raised when a GitHub call fails.

    ``status_code`` is ``None`` when no response was received at all, for
    example on connection failures or timeouts.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        """Return True when GitHub answered with HTTP 404."""
        return self.status_code == _HTTP_NOT_FOUND

    @classmethod
    def http_error(cls, status_code: int, *, operation: str) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"GitHub {operation} HTTP {status_code}", status_code=status_code)

    @classmethod
    def transport_error(cls, exc: Exception, *, operation: str) -> GitHubAPIError:
        """Return an error for requests that produced no response."""
        return cls(f"GitHub {operation} request failed: {exc}")


class GitHubResponseShapeError(BailiffError):
    """Raised when GitHub responses are missing expected fields."""

    @classmethod
    def invalid(cls, operation: str, detail: object) -> GitHubResponseShapeError:
        """Return an error for a body that does not match the expected shape."""
        return cls(f"GitHub {operation} response has unexpected shape: {detail}")


class GitHubConfigError(BailiffError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")

"""Logging helpers on top of femtologging.

Messages are interpolated with percent-style templates before they reach
femtologging. ``ContextLogger`` binds ``key=value`` fields (such as the
request identifier) to a logger so they travel explicitly down the call
chain.

Example:
>>> from bailiff.logging import ContextLogger, get_logger, log_info
>>> logger = ContextLogger(get_logger(__name__)).bind(request_id="abc123")
>>> log_info(logger, "repushing %s", "feat/branch")

"""

from __future__ import annotations

import typing as typ

from femtologging import basicConfig, get_logger

_DEFAULT_LEVEL = "INFO"
_LEVELS = frozenset({"TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL"})


def configure_logging(level: str | None) -> tuple[str, bool]:
    """Configure femtologging at *level*.

    Parameters
    ----------
    level : str | None
        Level name in any case; surrounding whitespace is ignored.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and whether *level* was rejected in
        favour of ``INFO``.

    """
    normalized = (level or "").strip().upper()
    invalid = normalized not in _LEVELS
    if invalid:
        normalized = _DEFAULT_LEVEL
    basicConfig(level=normalized, force=False)
    return (normalized, invalid)


class SupportsLog(typ.Protocol):
    """Protocol for femtologging-compatible loggers."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


class ContextLogger:
    """Logger wrapper that appends bound ``key=value`` fields to messages.

    Binding never mutates the receiver; ``bind`` returns a new logger so a
    request-scoped logger can be narrowed (for example with an issue number)
    without leaking fields into sibling requests.

    Parameters
    ----------
    logger
        Underlying femtologging-compatible logger.
    fields
        Initial fields to append to every message.

    """

    __slots__ = ("_fields", "_logger")

    def __init__(
        self,
        logger: SupportsLog,
        fields: typ.Mapping[str, object] | None = None,
    ) -> None:
        """Wrap *logger* with an optional set of bound fields."""
        self._logger = logger
        self._fields: dict[str, object] = dict(fields or {})

    @property
    def fields(self) -> dict[str, object]:
        """Return a copy of the bound fields."""
        return dict(self._fields)

    def bind(self, **fields: object) -> ContextLogger:
        """Return a new logger carrying the current and the given fields."""
        return ContextLogger(self._logger, {**self._fields, **fields})

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None:
        """Forward *message* with the bound fields appended."""
        if self._fields:
            suffix = " ".join(f"{key}={value}" for key, value in self._fields.items())
            message = f"{message} {suffix}"
        return self._logger.log(
            level,
            message,
            exc_info=exc_info,
            stack_info=stack_info,
        )


def _emit(
    logger: SupportsLog,
    level: str,
    message: str,
    exc_info: object | None = None,
) -> None:
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_info(logger: SupportsLog, template: str, *args: object) -> None:
    """Log an INFO message built from a percent-style *template*."""
    _emit(logger, "INFO", template % args)


def log_warning(logger: SupportsLog, template: str, *args: object) -> None:
    """Log a WARNING message built from a percent-style *template*."""
    _emit(logger, "WARNING", template % args)


def log_error(logger: SupportsLog, template: str, *args: object) -> None:
    """Log an ERROR message built from a percent-style *template*.

    Use :func:`log_exception` when the traceback matters.
    """
    _emit(logger, "ERROR", template % args)


def log_exception(logger: SupportsLog, message: str, exc: BaseException) -> None:
    """Log *message* at ERROR with *exc* attached as exc_info."""
    _emit(logger, "ERROR", message, exc)


__all__ = [
    "ContextLogger",
    "SupportsLog",
    "configure_logging",
    "get_logger",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
]

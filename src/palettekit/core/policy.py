"""Exception handling policy for the request-serving entry point.

The policy decides what happens when the generator fails while serving an
inbound image request.  It is chosen once at startup and never changes:

==================  =========================================================
Policy              Behaviour
==================  =========================================================
``Throw``           The failure propagates unmodified to the caller.
``LogVerbose``      Full detail (message and traceback) is logged to the
                    ``palette`` channel, then fallback handling runs.
``LogToChannel``    Only the message is logged to the configured channel,
                    then fallback handling runs.
==================  =========================================================

A channel is a plain :mod:`logging` logger name, so deployments route each
channel to its own handler with standard logging configuration.

Security failures (:class:`~palettekit.core.errors.SecurityError`) bypass the
policy: they are always logged to ``palette.security`` and never reach the
caller with their original message.

Configuration values map onto the variants the same way the settings file
accepts them::

    handle_exceptions = false        -> Throw()
    handle_exceptions = true         -> LogVerbose()
    handle_exceptions = "imaging"    -> LogToChannel("imaging")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import ConfigurationError

VERBOSE_CHANNEL = "palette"
SECURITY_CHANNEL = "palette.security"


class ExceptionPolicy(ABC):
    """Base class for the three policy variants."""

    #: Whether failures are re-raised instead of recovered.
    propagates: bool = False

    @abstractmethod
    def record(self, exc: BaseException) -> None:
        """Log ``exc`` according to this policy."""

    def describe(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Throw(ExceptionPolicy):
    """Re-raise every generator failure."""

    propagates = True

    def record(self, exc: BaseException) -> None:
        pass


@dataclass(frozen=True)
class LogVerbose(ExceptionPolicy):
    """Log failures with full diagnostic detail to the ``palette`` channel."""

    def record(self, exc: BaseException) -> None:
        logging.getLogger(VERBOSE_CHANNEL).error(
            f"Image generation failed: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )


@dataclass(frozen=True)
class LogToChannel(ExceptionPolicy):
    """Log only the failure message to a named channel."""

    channel: str

    def __post_init__(self) -> None:
        if not self.channel:
            raise ConfigurationError("LogToChannel requires a non-empty channel name")

    def record(self, exc: BaseException) -> None:
        logging.getLogger(self.channel).error(str(exc))

    def describe(self) -> str:
        return f"LogToChannel({self.channel})"


def record_security_failure(exc: BaseException) -> None:
    """Log a signing or verification failure to the fixed security channel."""
    logging.getLogger(SECURITY_CHANNEL).warning(str(exc))


_THROW_WORDS = {"throw", "raise", "false", "off", "no", "0"}
_VERBOSE_WORDS = {"verbose", "log", "true", "on", "yes", "1"}


def policy_from_setting(value: object) -> ExceptionPolicy:
    """Build a policy from a configuration value.

    Args:
        value: ``bool``, a keyword string, a channel name, or an existing
            :class:`ExceptionPolicy`.

    Returns:
        The matching policy variant.

    Raises:
        ConfigurationError: If ``value`` is neither a bool nor a non-empty
            string.
    """
    if isinstance(value, ExceptionPolicy):
        return value

    if isinstance(value, bool):
        return LogVerbose() if value else Throw()

    if isinstance(value, str) and value.strip():
        keyword = value.strip().lower()
        if keyword in _THROW_WORDS:
            return Throw()
        if keyword in _VERBOSE_WORDS:
            return LogVerbose()
        return LogToChannel(value.strip())

    raise ConfigurationError("Invalid value for handle_exceptions in configuration")

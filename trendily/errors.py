"""
Error taxonomy for alert runs.

Every failure the alert pipeline can meet belongs to exactly one ``ErrorKind``:

  - ``authorization``  bad or missing shared secret.          Fatal.
  - ``configuration``  mailer credential or sender missing.   Fatal.
  - ``fetch``          trend source failed for one keyword.   Recovered per group.
  - ``persistence``    subscription store read/write failed.  Recovered for
                       writes; fatal when the subscription list cannot be read.
  - ``dispatch``       mailer rejected or raised.             Recovered per recipient.

Fatal errors are raised as ``TrendilyError`` subclasses.  Recovered errors are
recorded as ``RunError`` values on outcomes or report warnings, so nothing
non-fatal is ever dropped silently.

This module has NO imports from any other ``trendily`` package.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional


class ErrorKind(StrEnum):
    """Closed set of error categories surfaced in run reports."""

    AUTHORIZATION = "authorization"
    CONFIGURATION = "configuration"
    FETCH = "fetch"
    PERSISTENCE = "persistence"
    DISPATCH = "dispatch"


@dataclass(frozen=True)
class RunError:
    """A recovered (non-fatal) error attached to an outcome or a report.

    Attributes:
        kind:    Error category.
        message: Human-readable detail, verbatim from the failing collaborator
                 where one was provided.
        keyword: Keyword group the error belongs to, if any.
        scope:   Overrides the scope implied by ``kind`` when the error reaches
                 further or less far than usual (chart warnings are per group).
    """

    kind: ErrorKind
    message: str
    keyword: Optional[str] = None
    scope: Optional[str] = None


class TrendilyError(Exception):
    """Base class for all errors raised by the alert pipeline."""

    kind: ErrorKind

    def __init__(self, message: str, keyword: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.keyword = keyword

    def to_run_error(self) -> RunError:
        return RunError(kind=self.kind, message=self.message, keyword=self.keyword)


class AuthorizationError(TrendilyError):
    """The trigger credential is missing, wrong, or no secret is configured."""

    kind = ErrorKind.AUTHORIZATION


class ConfigurationError(TrendilyError):
    """A required setting (mailer API key, sender identity) is missing."""

    kind = ErrorKind.CONFIGURATION


class FetchError(TrendilyError):
    """The trend source returned no usable series for a keyword."""

    kind = ErrorKind.FETCH


class PersistenceError(TrendilyError):
    """The subscription store failed to read or write."""

    kind = ErrorKind.PERSISTENCE


class DispatchError(TrendilyError):
    """The mailer rejected a message or failed while sending it."""

    kind = ErrorKind.DISPATCH

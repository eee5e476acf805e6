"""
Mailer interface.

The alert pipeline only ever talks to a ``Mailer``: it hands over a fully
rendered ``EmailMessage`` and gets back a ``MailerResult``.  Two failure shapes
are possible and both are handled by the dispatcher:

  - The provider answers with an error  → ``MailerResult(ok=False, error=...)``.
  - The transport fails (DNS, timeout)  → the exception propagates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EmailMessage:
    """One outbound email."""

    sender: str
    to: str
    subject: str
    html: str
    text: Optional[str] = None


@dataclass(frozen=True)
class MailerResult:
    """Provider answer for one send.

    Attributes:
        ok:         ``True`` if the provider accepted the message.
        message_id: Provider message identifier on success.
        error:      Provider error detail on failure.
    """

    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class Mailer(ABC):
    """Base class for email delivery providers."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def send(self, message: EmailMessage) -> MailerResult:
        """Deliver ``message``.

        Returns:
            ``MailerResult``; provider-side rejections are returned, not raised.
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

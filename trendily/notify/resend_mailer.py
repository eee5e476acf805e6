"""
Resend email delivery.

API:   POST https://api.resend.com/emails
Auth:  ``Authorization: Bearer <api_key>``

Body::

  {"from": "Trendily <onboarding@resend.dev>", "to": ["user@example.com"],
   "subject": "...", "html": "...", "text": "..."}

A 2xx answer carries ``{"id": "..."}``.  Any other status is returned as
``MailerResult(ok=False, error="Resend <status>: <body>")``.  Transport errors
(DNS, timeout, refused connection) propagate as ``httpx.HTTPError``.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from trendily.notify.base import EmailMessage, Mailer, MailerResult

RESEND_API_URL = "https://api.resend.com"


class ResendMailer(Mailer):
    """``Mailer`` that posts to the Resend HTTP API.

    Args:
        api_key:         Resend API key.
        base_url:        API root, without trailing slash.
        timeout_seconds: HTTP timeout per send.
        transport:       Optional ``httpx`` transport (tests use ``MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = RESEND_API_URL,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__()
        if not api_key:
            raise ValueError("ResendMailer requires an API key.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def send(self, message: EmailMessage) -> MailerResult:
        payload: dict[str, Any] = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text

        with httpx.Client(transport=self._transport, timeout=self.timeout_seconds) as client:
            resp = client.post(
                f"{self.base_url}/emails",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )

        if resp.is_success:
            message_id = _json_or_empty(resp).get("id")
            self.logger.debug("Resend accepted | to=%s id=%s", message.to, message_id)
            return MailerResult(ok=True, message_id=message_id)

        error = f"Resend {resp.status_code}: {resp.text[:500]}"
        self.logger.warning("Resend rejected | to=%s error=%s", message.to, error)
        return MailerResult(ok=False, error=error)

    def __repr__(self) -> str:
        return f"ResendMailer(base_url={self.base_url!r})"


def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

"""
notify/mailer.py -- Transactional email over the SendGrid v3 HTTP API.

send() never raises. Every failure (network, timeout, non-2xx) is logged and
reported as False so the calling flow can decide between rollback and
keep-and-resend.

No SENDGRID_API_KEY configured -> the message is logged instead of sent and
reported as delivered. That keeps local development usable without a mail
account. Production deployments must set the key.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

logger = logging.getLogger("scholarship.notify")

SENDGRID_API = "https://api.sendgrid.com/v3/mail/send"


class Mailer(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> bool: ...


class SendGridMailer:
    """Mailer that posts to SendGrid. One requests.Session per instance for connection pooling."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._from = {"email": from_email, "name": from_name} if from_name else {"email": from_email}
        self._timeout = timeout
        self._session = session or requests.Session()
        # SendGrid does not redirect; refuse to follow anything unexpected.
        self._session.max_redirects = 0

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not self._api_key:
            logger.warning("SENDGRID_API_KEY not set - logging email instead of sending")
            logger.info("EMAIL TO: %s | SUBJECT: %s", to, subject)
            return True

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": self._from,
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }
        try:
            resp = self._session.post(
                SENDGRID_API,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Email send failed to %s (%s): %s", to, subject, e)
            return False
        logger.info("Email sent to %s (%s)", to, subject)
        return True

    def close(self) -> None:
        self._session.close()

"""
Mail delivery

Unified interface for outbound email with two providers:
- LogMailer: development stand-in, writes the message to the log
- SendGridMailer: SendGrid v3 REST API over httpx

`get_mailer` is also the FastAPI dependency used by the routers, so tests can
swap the provider through `app.dependency_overrides`.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from fastapi import BackgroundTasks

from opti_api.config import settings

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    """Provider refused or could not be reached."""


class Mailer(ABC):
    """Mail provider abstract base class"""

    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Deliver one HTML email.

        Raises:
        - MailDeliveryError: when the provider rejects the message
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., "SendGrid")"""


class LogMailer(Mailer):

    @property
    def name(self) -> str:
        return "log"

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.warning("[mail] MAIL_BACKEND=log, not delivering. to=%s subject=%s\n%s", to, subject, html)


class SendGridMailer(Mailer):
    """
    Args:
        api_key: SendGrid API key
        from_email / from_name: sender identity
        timeout_sec: per-request timeout
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str = "",
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        timeout_sec: float = 20.0,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.api_url = api_url
        self.timeout_sec = timeout_sec

    @property
    def name(self) -> str:
        return "SendGrid"

    def _payload(self, to: str, subject: str, html: str) -> dict:
        sender = {"email": self.from_email}
        if self.from_name:
            sender["name"] = self.from_name
        return {
            "personalizations": [{"to": [{"email": to}]}],
            "from": sender,
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
            "tracking_settings": {"click_tracking": {"enable": False}, "open_tracking": {"enable": False}},
        }

    async def send(self, to: str, subject: str, html: str) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec) as client:
                resp = await client.post(self.api_url, headers=headers, json=self._payload(to, subject, html))
        except httpx.HTTPError as e:
            raise MailDeliveryError(f"SendGrid request failed: {e}") from e
        # SendGrid answers 202 Accepted on success
        if resp.status_code >= 300:
            raise MailDeliveryError(f"SendGrid HTTP {resp.status_code}: {resp.text[:500]}")
        logger.info("[mail] sent to=%s subject=%s id=%s", to, subject, resp.headers.get("X-Message-Id"))


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    """
    Get the configured mail provider (created once per process).

    Note:
    - MAIL_BACKEND=sendgrid needs SENDGRID_API_KEY and EMAIL_FROM in .env
    """
    global _mailer
    if _mailer is None:
        if settings.mail_backend.lower() == "sendgrid":
            if not settings.sendgrid_api_key:
                raise RuntimeError("MAIL_BACKEND=sendgrid but SENDGRID_API_KEY is missing")
            _mailer = SendGridMailer(
                api_key=settings.sendgrid_api_key,
                from_email=settings.email_from,
                from_name=settings.email_from_name,
                api_url=settings.sendgrid_api_url,
            )
        else:
            _mailer = LogMailer()
        logger.info("[mail] using %s provider", _mailer.name)
    return _mailer


async def deliver_quietly(mailer: Mailer, to: str, subject: str, html: str) -> bool:
    """
    Send a courtesy email; failures are logged, never raised.
    Used after a change is already committed, so delivery cannot undo it.
    """
    try:
        await mailer.send(to, subject, html)
        return True
    except Exception:
        logger.exception("[mail] courtesy email to %s failed (subject=%s)", to, subject)
        return False


async def send_courtesy_email(
    mailer: Mailer,
    background: Optional[BackgroundTasks],
    to: str,
    subject: str,
    html: str,
) -> None:
    """
    Queue a confirmation email to go out after the response is sent, or send it
    inline when there is no response to wait for.
    """
    if background is not None:
        background.add_task(deliver_quietly, mailer, to, subject, html)
    else:
        await deliver_quietly(mailer, to, subject, html)

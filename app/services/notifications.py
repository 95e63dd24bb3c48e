"""Critical vulnerability alert emails sent over SMTP."""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from app.core.config import Settings
    from app.models import Repository
    from app.schemas.findings import ExtractedFinding

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SEC = 30


class Notifier(Protocol):
    async def send_critical_alert(
        self,
        recipient: str | None,
        name: str | None,
        finding: ExtractedFinding,
        repository: Repository,
    ) -> bool: ...


def build_alert_message(
    sender: str,
    recipient: str,
    name: str | None,
    finding: ExtractedFinding,
    repository: Repository,
    dashboard_url: str,
) -> EmailMessage:
    """Plain-text email with an HTML alternative describing one finding."""
    msg = EmailMessage()
    msg["Subject"] = f"Security alert: {finding.severity} vulnerability in {repository.name}"
    msg["From"] = sender
    msg["To"] = recipient
    text = (
        f"Hello {name or 'there'},\n\n"
        f"A new {finding.severity} severity vulnerability was detected in {repository.name}.\n\n"
        f"{finding.title}\n"
        f"File: {finding.file_path}\n"
        f"Line: {finding.line_number}\n"
        f"Type: {finding.type}\n\n"
        f"{finding.description}\n\n"
        f"Impact: {finding.impact}\n"
        f"Recommendation: {finding.recommendation}\n\n"
        f"View details: {dashboard_url}\n"
    )
    msg.set_content(text)
    e = html.escape
    msg.add_alternative(
        f"""<html><body>
<h2>Security Alert</h2>
<p>Hello {e(name or 'there')},</p>
<p>A new <strong>{e(finding.severity)}</strong> severity vulnerability was detected in {e(repository.name)}:</p>
<h3>{e(finding.title)}</h3>
<p><strong>File:</strong> {e(finding.file_path)}<br>
<strong>Line:</strong> {finding.line_number}<br>
<strong>Type:</strong> {e(finding.type)}</p>
<p>{e(finding.description)}</p>
<p><strong>Impact:</strong> {e(finding.impact)}</p>
<p><strong>Recommendation:</strong> {e(finding.recommendation)}</p>
<pre>{e(finding.code_snippet)}</pre>
<p><a href="{e(dashboard_url)}">View in dashboard</a></p>
</body></html>""",
        subtype="html",
    )
    return msg


class EmailNotifier:
    """Sends alerts with smtplib in a worker thread; every failure is logged and reported as False."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    def _send(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(
            self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SEC
        ) as smtp:
            if self.settings.SMTP_USE_TLS:
                smtp.starttls()
            if self.settings.SMTP_USER and self.settings.SMTP_PASSWORD is not None:
                smtp.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD.get_secret_value())
            smtp.send_message(msg)

    async def send_critical_alert(
        self,
        recipient: str | None,
        name: str | None,
        finding: ExtractedFinding,
        repository: Repository,
    ) -> bool:
        if not self.configured:
            logger.info("SMTP not configured; skipping alert for repository %s", repository.id)
            return False
        if not recipient:
            logger.info("No email on file for owner of repository %s; skipping alert", repository.id)
            return False
        dashboard_url = f"{self.settings.FRONTEND_URL.rstrip('/')}/dashboard/repository/{repository.id}"
        msg = build_alert_message(
            self.settings.SMTP_FROM, recipient, name, finding, repository, dashboard_url
        )
        try:
            await asyncio.to_thread(self._send, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send vulnerability alert to %s: %s", recipient, e)
            return False
        logger.info("Vulnerability alert sent to %s for repository %s", recipient, repository.id)
        return True

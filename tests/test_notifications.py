"""Critical alert emails: skipped when unconfigured, SMTP failures reported as False (no network)."""

import asyncio
import smtplib
import unittest
from unittest.mock import MagicMock, patch

from pydantic import SecretStr

from app.schemas.findings import ExtractedFinding
from app.services.notifications import EmailNotifier, build_alert_message


def _settings(host: str | None = "smtp.example.com") -> MagicMock:
    settings = MagicMock()
    settings.SMTP_HOST = host
    settings.SMTP_PORT = 587
    settings.SMTP_USER = "mailer"
    settings.SMTP_PASSWORD = SecretStr("secret")
    settings.SMTP_FROM = "Codeward <alerts@codeward.local>"
    settings.SMTP_USE_TLS = True
    settings.FRONTEND_URL = "https://codeward.example.com/"
    return settings


def _finding() -> ExtractedFinding:
    return ExtractedFinding(
        type="SQL_INJECTION",
        severity="CRITICAL",
        title="SQL injection in <login>",
        description="User input concatenated into query",
        impact="Database takeover",
        recommendation="Use parameterized queries",
        file_path="src/login.js",
        file_name="login.js",
        line_number=42,
        code_snippet="42: db.query('SELECT ' + id)",
    )


def _repository() -> MagicMock:
    repository = MagicMock()
    repository.id = 9
    repository.name = "shop"
    return repository


class TestBuildAlertMessage(unittest.TestCase):
    def test_headers_and_bodies(self) -> None:
        msg = build_alert_message(
            "from@x", "to@x", "Alice", _finding(), _repository(), "https://d/dashboard/repository/9"
        )
        self.assertEqual(msg["Subject"], "Security alert: CRITICAL vulnerability in shop")
        self.assertEqual(msg["To"], "to@x")
        text = msg.get_body(preferencelist=("plain",)).get_content()
        self.assertIn("Hello Alice", text)
        self.assertIn("Line: 42", text)
        html_body = msg.get_body(preferencelist=("html",)).get_content()
        self.assertIn("SQL injection in &lt;login&gt;", html_body)


class TestEmailNotifier(unittest.TestCase):
    def test_not_configured(self) -> None:
        notifier = EmailNotifier(_settings(host=None))
        self.assertFalse(asyncio.run(notifier.send_critical_alert("a@x", "A", _finding(), _repository())))

    def test_no_recipient(self) -> None:
        notifier = EmailNotifier(_settings())
        self.assertFalse(asyncio.run(notifier.send_critical_alert(None, "A", _finding(), _repository())))

    @patch("app.services.notifications.smtplib.SMTP")
    def test_sends_over_smtp(self, mock_smtp: MagicMock) -> None:
        smtp = mock_smtp.return_value.__enter__.return_value
        notifier = EmailNotifier(_settings())
        sent = asyncio.run(notifier.send_critical_alert("a@x", "A", _finding(), _repository()))
        self.assertTrue(sent)
        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "secret")
        msg = smtp.send_message.call_args.args[0]
        self.assertIn("https://codeward.example.com/dashboard/repository/9", msg.get_body(("plain",)).get_content())

    @patch("app.services.notifications.smtplib.SMTP")
    def test_smtp_failure_returns_false(self, mock_smtp: MagicMock) -> None:
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("rejected")
        notifier = EmailNotifier(_settings())
        self.assertFalse(asyncio.run(notifier.send_critical_alert("a@x", "A", _finding(), _repository())))

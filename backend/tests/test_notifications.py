"""
Tests for the notification channels.

SMTP and the Telegram HTTP call are replaced with MagicMocks.

Run with: pytest tests/test_notifications.py -v
"""

import smtplib
import pytest
from unittest.mock import MagicMock

from app.core.config import Settings
from app.shared.services import notifications
from app.shared.services.notifications import NotificationDeliveryError, NotificationService


def email_settings():
    return Settings(SMTP_HOST="smtp.example.com", SMTP_PORT=2525, SMTP_USER="payroll@example.com",
                    SMTP_PASSWORD="secret", TELEGRAM_BOT_TOKEN=None, TELEGRAM_CHAT_ID=None)


def telegram_settings():
    return Settings(TELEGRAM_BOT_TOKEN="bot-token", TELEGRAM_CHAT_ID="42",
                    SMTP_HOST=None, SMTP_USER=None)


@pytest.fixture
def smtp(monkeypatch):
    smtp_class = MagicMock()
    monkeypatch.setattr(notifications.smtplib, "SMTP", smtp_class)
    return smtp_class


# =============================================================================
# TESTS - Email
# =============================================================================

class TestEmailChannel:

    def test_sends_to_recipient_address(self, smtp):
        service = NotificationService(email_settings())

        results = service.notify("user-1", "award_issued", {"award_id": "A1", "email": "dana@example.com"})

        assert results == {"email": True}
        smtp.assert_called_once_with("smtp.example.com", 2525)
        server = smtp.return_value.__enter__.return_value
        server.login.assert_called_once_with("payroll@example.com", "secret")
        sent = server.send_message.call_args[0][0]
        assert sent["To"] == "dana@example.com"
        assert sent["Subject"] == "Profit award issued"

    @pytest.mark.parametrize("failing_step", ["starttls", "login", "send_message"])
    def test_connection_closed_when_a_step_fails(self, smtp, failing_step):
        server = smtp.return_value.__enter__.return_value
        getattr(server, failing_step).side_effect = smtplib.SMTPException("refused")
        service = NotificationService(email_settings())

        with pytest.raises(NotificationDeliveryError):
            service.notify("user-1", "award_accepted", {"award_id": "A1", "email": "dana@example.com"})

        smtp.return_value.__exit__.assert_called_once()

    def test_no_address_skips_email(self, smtp):
        service = NotificationService(email_settings())

        assert service.notify("user-1", "award_issued", {"award_id": "A1"}) == {}
        smtp.assert_not_called()


# =============================================================================
# TESTS - Telegram
# =============================================================================

class TestTelegramChannel:

    def test_operator_chat_message_names_recipient(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"result": {"message_id": 7}}
        post = MagicMock(return_value=response)
        monkeypatch.setattr(notifications.requests, "post", post)
        service = NotificationService(telegram_settings())

        results = service.notify("user-1", "award_issued", {"award_id": "A1"})

        assert results == {"telegram": True, "telegram_message_id": 7}
        payload = post.call_args.kwargs["json"]
        assert payload["chat_id"] == "42"
        assert payload["text"] == "*Profit award issued*\nFor: user-1\n\nAward id: A1"

    def test_format_without_recipient(self):
        assert NotificationService.format_telegram("Title", "Body", None) == "*Title*\n\nBody"


class TestLogFallback:

    def test_nothing_configured_logs_only(self, smtp):
        service = NotificationService(Settings(TELEGRAM_BOT_TOKEN=None, TELEGRAM_CHAT_ID=None,
                                               SMTP_HOST=None, SMTP_USER=None))

        assert service.notify("user-1", "award_issued", {"award_id": "A1"}) == {"log": True}
        smtp.assert_not_called()

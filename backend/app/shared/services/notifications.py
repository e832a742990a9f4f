"""
Notification Service

Dispatches user-facing events (e.g. a profit award being issued or accepted)
over the configured channels:
- Telegram Bot: one operator chat (TELEGRAM_CHAT_ID) receives every event,
  tagged with its recipient. There is no per-user chat routing.
- Email (SMTP): sent to the recipient's own address when known
- Log (always available, used when nothing else is configured)

Configure via environment variables / .env (see app.core.config).
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Tuple

import requests

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


EVENT_TITLES = {
    "award_issued": "Profit award issued",
    "award_accepted": "Profit award accepted",
}


class NotificationDeliveryError(Exception):
    """Every enabled channel failed to deliver."""


class NotificationDispatcher(ABC):
    """Anything that can deliver an event to a user."""

    @abstractmethod
    def notify(self, user_id: Optional[str], event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Deliver an event. Returns channel -> success."""


class NotificationService(NotificationDispatcher):
    """Unified notification service supporting multiple channels."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

        self.telegram_enabled = bool(self.config.TELEGRAM_BOT_TOKEN and self.config.TELEGRAM_CHAT_ID)
        self.email_enabled = bool(self.config.SMTP_HOST and self.config.SMTP_USER)

        enabled = []
        if self.telegram_enabled:
            enabled.append("Telegram")
        if self.email_enabled:
            enabled.append("Email")

        if enabled:
            logger.info(f"Notification channels enabled: {', '.join(enabled)}")
        else:
            logger.warning("No notification channels configured, events will only be logged.")

    def notify(self, user_id: Optional[str], event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send an event to a user.

        Args:
            user_id: Recipient (linked user id of a stakeholder, or an admin id)
            event_type: e.g. "award_issued", "award_accepted"
            payload: Event details; `email` overrides the default recipient address

        Returns:
            Dict of channel -> success status

        Raises:
            NotificationDeliveryError: when channels are configured and all of them failed
        """
        title = EVENT_TITLES.get(event_type, event_type.replace("_", " ").capitalize())
        message = self.format_message(title, payload)

        if not (self.telegram_enabled or self.email_enabled):
            logger.info(f"[notification] to={user_id} event={event_type}: {message}")
            return {"log": True}

        results: Dict[str, Any] = {}

        if self.telegram_enabled:
            success, message_id = self._send_telegram(self.format_telegram(title, message, user_id))
            results["telegram"] = success
            results["telegram_message_id"] = message_id

        if self.email_enabled:
            recipient = payload.get("email") or self.config.NOTIFY_EMAIL
            if recipient:
                results["email"] = self._send_email(recipient, subject=title, body=message)
            else:
                logger.warning(f"No email address for user {user_id}, skipping email channel")

        delivered = [results[k] for k in ("telegram", "email") if k in results]
        if delivered and not any(delivered):
            raise NotificationDeliveryError(f"All channels failed for {event_type} to {user_id}")

        return results

    @staticmethod
    def format_message(title: str, payload: Dict[str, Any]) -> str:
        """Render the payload as simple 'Label: value' lines."""
        lines = []
        for key, value in payload.items():
            if key == "email" or value is None or value == "":
                continue
            label = key.replace("_", " ").capitalize()
            lines.append(f"{label}: {value}")
        return "\n".join(lines) if lines else title

    @staticmethod
    def format_telegram(title: str, message: str, user_id: Optional[str]) -> str:
        """Telegram text for the shared operator chat, naming the intended recipient."""
        recipient = f"\nFor: {user_id}" if user_id else ""
        return f"*{title}*{recipient}\n\n{message}"

    def _send_telegram(self, message: str) -> Tuple[bool, Optional[int]]:
        """
        Send message via Telegram bot.

        Returns:
            Tuple of (success, message_id)
        """
        try:
            url = f"https://api.telegram.org/bot{self.config.TELEGRAM_BOT_TOKEN}/sendMessage"
            data = {
                "chat_id": self.config.TELEGRAM_CHAT_ID,
                "text": message,
                "parse_mode": "Markdown"
            }

            response = requests.post(url, json=data, timeout=10)
            response.raise_for_status()

            result = response.json()
            message_id = result.get("result", {}).get("message_id")

            logger.info(f"Telegram notification sent successfully (message_id: {message_id})")
            return True, message_id

        except requests.RequestException as e:
            logger.error(f"Failed to send Telegram notification: {e}")
            return False, None

    def _send_email(self, recipient: str, subject: str, body: str) -> bool:
        """Send email notification."""
        try:
            msg = MIMEMultipart()
            msg['From'] = self.config.SMTP_USER
            msg['To'] = recipient
            msg['Subject'] = subject

            msg.attach(MIMEText(body, 'plain'))

            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT or 587) as server:
                server.starttls()
                if self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.send_message(msg)

            logger.info(f"Email notification sent to {recipient}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email notification: {e}")
            return False


# Global instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create the global notification service instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service

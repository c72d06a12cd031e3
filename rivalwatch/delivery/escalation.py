from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from rivalwatch.delivery.slack import SlackClient
from rivalwatch.storage.database import Database

logger = logging.getLogger(__name__)

ERROR_TEXT_MAX = 300

_HEADINGS = {
    "COLLECTION_ERROR": "News collection error",
    "SLACK_API_ERROR": "Slack delivery error",
}


class ErrorNotifier:
    """Pings an operator in Slack when collection or delivery fails.

    Notification is best effort: every failure here is logged and
    swallowed so it never masks the error being reported.
    """

    def __init__(self, slack: SlackClient, db: Database):
        self.slack = slack
        self.db = db

    def notify(self, error: Exception, context: Optional[dict] = None) -> bool:
        """Send an escalation message. Returns True if it was posted."""
        try:
            settings = self.db.get_escalation_settings()
            if not settings or not settings.mention_user:
                logger.warning("No escalation user configured; skipping error notification")
                return False

            channel_id = settings.fallback_channel_id
            if not channel_id:
                channel = self.db.get_channel_settings()
                channel_id = channel.channel_id if channel else None
            if not channel_id:
                logger.warning("No Slack channel configured for error notifications")
                return False

            text = format_error_message(error, settings.mention_user, context)
            self.slack.post_message(channel_id, text)
        except Exception as e:
            logger.error(f"Failed to send error notification: {e}")
            return False

        logger.info(f"Error notification sent to {channel_id}")
        return True


def format_error_message(error: Exception, mention_user: str, context: Optional[dict] = None) -> str:
    code = getattr(error, "code", "GENERAL_ERROR")
    detail = str(error) or type(error).__name__
    if len(detail) > ERROR_TEXT_MAX:
        detail = detail[:ERROR_TEXT_MAX - 3] + "..."

    lines = [
        f"<@{mention_user}>",
        "",
        f":rotating_light: *{_HEADINGS.get(code, 'Pipeline error')}* ({code})",
        f"```{detail}```",
    ]
    if context:
        lines.append("*Context:*")
        for key, value in context.items():
            lines.append(f"• {key.replace('_', ' ')}: {value}")
    lines.append(f"_{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}_")
    return "\n".join(lines)

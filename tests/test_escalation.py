"""Tests for operator error notifications."""

from conftest import FakeSlack

from rivalwatch.delivery.escalation import ERROR_TEXT_MAX, ErrorNotifier, format_error_message
from rivalwatch.errors import CollectionError, DeliveryError
from rivalwatch.models import ChannelSettings, EscalationSettings


class TestNotify:
    def test_posts_to_fallback_channel_with_mention(self, configured_db) -> None:
        slack = FakeSlack()

        sent = ErrorNotifier(slack, configured_db).notify(
            CollectionError("feed parser exploded"), {"company": "Acme Corp"},
        )

        assert sent is True
        post = slack.posts[0]
        assert post["channel"] == "COPS"
        assert post["text"].startswith("<@UOPS>")
        assert "COLLECTION_ERROR" in post["text"]
        assert "feed parser exploded" in post["text"]
        assert "company: Acme Corp" in post["text"]

    def test_uses_report_channel_without_fallback(self, db) -> None:
        db.save_channel_settings(ChannelSettings(channel_id="CMAIN"))
        db.save_escalation_settings(EscalationSettings(mention_user="UOPS"))
        slack = FakeSlack()

        ErrorNotifier(slack, db).notify(DeliveryError("boom"))

        assert slack.posts[0]["channel"] == "CMAIN"

    def test_skips_without_settings(self, db) -> None:
        slack = FakeSlack()

        assert ErrorNotifier(slack, db).notify(DeliveryError("boom")) is False
        assert slack.posts == []

    def test_never_raises(self, configured_db) -> None:
        """A failing notification is swallowed so it cannot mask the original error."""
        slack = FakeSlack(fail_on={1})

        assert ErrorNotifier(slack, configured_db).notify(DeliveryError("boom")) is False


class TestFormatErrorMessage:
    def test_truncates_long_errors(self) -> None:
        text = format_error_message(RuntimeError("x" * 1000), "UOPS")

        detail = text.split("```")[1]
        assert len(detail) == ERROR_TEXT_MAX
        assert detail.endswith("...")
        assert "GENERAL_ERROR" in text

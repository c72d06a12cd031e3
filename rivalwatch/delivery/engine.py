from __future__ import annotations

import logging
from datetime import datetime, timezone

from rivalwatch.delivery.escalation import ErrorNotifier
from rivalwatch.delivery.slack import SlackClient
from rivalwatch.errors import DeliveryError
from rivalwatch.models import DeliveryLog, Report
from rivalwatch.storage.database import Database

logger = logging.getLogger(__name__)


class DeliveryEngine:
    """Sends a report as one main message plus threaded follow-ups.

    Exactly one DeliveryLog row is written per report. A failed main
    message is escalated and re-raised; a failed follow-up only stops
    the remaining follow-ups.
    """

    def __init__(self, slack: SlackClient, db: Database, notifier: ErrorNotifier):
        self.slack = slack
        self.db = db
        self.notifier = notifier

    def deliver(self, report: Report) -> DeliveryLog:
        started_at = datetime.now(timezone.utc)
        logger.info(
            f"Delivering {report.kind} report to {report.channel_name or report.channel_id} "
            f"({report.article_count} articles, {len(report.threads)} follow-ups)"
        )

        try:
            main = self.slack.post_message(report.channel_id, report.main_text)
        except DeliveryError as e:
            log = DeliveryLog(
                report_type=report.kind,
                channel_id=report.channel_id,
                channel_name=report.channel_name,
                status="failed",
                thread_count=0,
                articles_delivered=0,
                error_code=e.code,
                error_message=str(e),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )
            self.db.append_delivery_log(log)
            logger.error(f"Main message delivery failed: {e}")
            self.notifier.notify(e, {
                "operation": f"{report.kind} report delivery",
                "channel": report.channel_name or report.channel_id,
                "article_count": report.article_count,
            })
            raise

        thread_ts = main.get("ts")
        sent = self._send_threads(report, thread_ts)

        log = DeliveryLog(
            report_type=report.kind,
            channel_id=report.channel_id,
            channel_name=report.channel_name,
            status="success",
            thread_count=sent,
            articles_delivered=report.article_count,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        self.db.append_delivery_log(log)
        logger.info(f"Delivered {report.kind} report: main message + {sent} follow-ups")
        return log

    def _send_threads(self, report: Report, thread_ts: str | None) -> int:
        sent = 0
        for text in report.threads:
            try:
                self.slack.post_message(report.channel_id, text, thread_ts=thread_ts)
            except DeliveryError as e:
                logger.warning(
                    f"Follow-up {sent + 1}/{len(report.threads)} failed, "
                    f"skipping the remaining {len(report.threads) - sent} follow-ups: {e}"
                )
                break
            sent += 1
        return sent

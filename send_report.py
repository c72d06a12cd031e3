#!/usr/bin/env python3
"""Build a competitor report and deliver it to the configured Slack channel."""

import argparse
import sys
from datetime import date
from pathlib import Path
from zoneinfo import ZoneInfo

from collect_news import build_llm, build_slack_client, setup_logging
from rivalwatch.config import load_config
from rivalwatch.delivery.engine import DeliveryEngine
from rivalwatch.delivery.escalation import ErrorNotifier
from rivalwatch.delivery.slack import build_http_client
from rivalwatch.errors import ConfigurationError, DeliveryError
from rivalwatch.reporting.aggregator import ReportAggregator
from rivalwatch.reporting.periods import today_in
from rivalwatch.storage.database import Database


def main():
    parser = argparse.ArgumentParser(description="Send a competitor news report to Slack.")
    parser.add_argument(
        "kind", choices=["daily", "weekly", "digest"],
        help="daily: one day's articles; weekly: Sunday-Saturday; digest: top articles ranked by importance",
    )
    parser.add_argument(
        "--date", type=date.fromisoformat, default=None,
        help="Day to report on (YYYY-MM-DD, default: today in the configured timezone)",
    )
    parser.add_argument(
        "--company", action="append", dest="company_ids", metavar="ID",
        help="Restrict the report to this company id (repeatable)",
    )
    args = parser.parse_args()

    cfg = load_config()
    logger = setup_logging(Path(cfg["db_path"]).parent / "delivery.log")

    if not cfg["slack_bot_token"]:
        logger.error("ERROR: No Slack bot token found. Set SLACK_BOT_TOKEN.")
        sys.exit(1)
    if not cfg["anthropic_api_key"] and args.kind != "digest":
        logger.error("ERROR: No Anthropic API key found. Set ANTHROPIC_API_KEY.")
        sys.exit(1)

    tz = ZoneInfo(cfg["timezone"])
    day = args.date or today_in(tz)

    with Database(cfg["db_path"]) as db, \
            build_http_client(cfg["slack_bot_token"], cfg["slack_timeout"]) as slack_http:
        slack = build_slack_client(cfg, slack_http)
        aggregator = ReportAggregator(db, build_llm(cfg), tz, target_language=cfg["target_language"])
        engine = DeliveryEngine(slack, db, ErrorNotifier(slack, db))

        try:
            if args.kind == "daily":
                report = aggregator.build_daily(day, company_ids=args.company_ids)
            elif args.kind == "weekly":
                report = aggregator.build_weekly(day, company_ids=args.company_ids)
            else:
                report = aggregator.build_digest(company_ids=args.company_ids)
            log = engine.deliver(report)
        except ConfigurationError as e:
            logger.error(f"ERROR: {e}. Import channel settings with scripts/import_companies.py.")
            sys.exit(2)
        except DeliveryError as e:
            logger.error(f"ERROR: Delivery failed: {e}")
            sys.exit(1)

    logger.info(
        f"Sent {log.report_type} report to {log.channel_name or log.channel_id}: "
        f"{log.articles_delivered} articles, {log.thread_count} thread messages"
    )


if __name__ == "__main__":
    main()

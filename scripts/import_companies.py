#!/usr/bin/env python3
"""Load companies and Slack settings from a YAML file into the database.

Usage:
    python scripts/import_companies.py companies.yaml

File format:
    companies:
      - id: acme
        name: Acme Corp
        rss_urls: [https://acme.example/feed.xml]
        social_urls: [https://www.reddit.com/r/acme/.rss]
        search_queries: ["Acme Corp"]
        priority: 1
        is_active: true
    slack:
      channel_id: C0123456
      channel_name: competitor-news
      mention_user_id: U0123456
    error_notification:
      mention_user: U0ABCDEF
      fallback_channel_id: C0FEDCBA
    analysis_context: "What this team cares about..."
"""

import argparse
import getpass
import sys
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from rivalwatch.config import load_config
from rivalwatch.models import ChannelSettings, Company, EscalationSettings
from rivalwatch.storage.database import Database


def import_file(db: Database, data: dict, editor: str) -> int:
    """Write everything in ``data`` to ``db``; returns the number of companies saved."""
    count = 0
    for entry in data.get("companies") or []:
        db.save_company(Company(
            id=str(entry["id"]),
            name=entry["name"],
            rss_urls=list(entry.get("rss_urls") or []),
            social_urls=list(entry.get("social_urls") or []),
            search_queries=list(entry.get("search_queries") or []),
            priority=int(entry.get("priority", 0)),
            is_active=bool(entry.get("is_active", True)),
        ))
        count += 1

    slack = data.get("slack")
    if slack:
        db.save_channel_settings(ChannelSettings(
            channel_id=slack["channel_id"],
            channel_name=slack.get("channel_name", ""),
            thread_strategy=slack.get("thread_strategy", "top10-main-rest-thread"),
            mention_user_id=slack.get("mention_user_id"),
            updated_by=editor,
        ))

    escalation = data.get("error_notification")
    if escalation:
        db.save_escalation_settings(EscalationSettings(
            mention_user=escalation["mention_user"],
            fallback_channel_id=escalation.get("fallback_channel_id"),
            updated_by=editor,
        ))

    if data.get("analysis_context"):
        db.save_analysis_context(data["analysis_context"])

    return count


def main():
    parser = argparse.ArgumentParser(description="Import companies and settings from YAML.")
    parser.add_argument("file", type=Path, help="YAML file to import")
    args = parser.parse_args()

    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    with open(args.file) as f:
        data = yaml.safe_load(f) or {}

    cfg = load_config()
    with Database(cfg["db_path"]) as db:
        count = import_file(db, data, editor=getpass.getuser())

    print(f"Imported {count} companies into {cfg['db_path']}")


if __name__ == "__main__":
    main()

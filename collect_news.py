#!/usr/bin/env python3
"""Competitor news collection: fetch, dedup, enrich and store."""

import argparse
import sys
import logging
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime
from pathlib import Path

import anthropic
import httpx

from rivalwatch.config import load_config
from rivalwatch.delivery.escalation import ErrorNotifier
from rivalwatch.delivery.slack import SlackClient, build_http_client
from rivalwatch.fetchers.feed_fetcher import FeedFetcher
from rivalwatch.fetchers.news_searcher import NewsSearcher
from rivalwatch.llm import LLMClient
from rivalwatch.processing.collector import CollectionOrchestrator
from rivalwatch.processing.deduplicator import DuplicateDetector
from rivalwatch.processing.enricher import Enricher
from rivalwatch.storage.database import Database


def setup_logging(log_path: Path):
    """Set up rotating file handler for pipeline logs."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Rotates at midnight, keeps 7 days
    handler = TimedRotatingFileHandler(
        filename=log_path,
        when='midnight',
        interval=1,
        backupCount=7,
        encoding='utf-8'
    )
    handler.suffix = '%Y-%m-%d'

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[handler, logging.StreamHandler(sys.stdout)]
    )

    return logging.getLogger(__name__)


def build_slack_client(cfg: dict, http_client: httpx.Client) -> SlackClient:
    return SlackClient(
        http_client,
        max_attempts=cfg["slack_max_attempts"],
        default_retry_after=cfg["slack_default_retry_after"],
        max_rate_limit_waits=cfg["slack_max_rate_limit_waits"],
    )


def build_llm(cfg: dict) -> LLMClient:
    client = anthropic.Anthropic(api_key=cfg["anthropic_api_key"], timeout=cfg["llm_timeout"])
    return LLMClient(client, cfg["model"])


def main():
    parser = argparse.ArgumentParser(description="Collect and enrich competitor news.")
    parser.add_argument(
        "--company", action="append", dest="company_ids", metavar="ID",
        help="Only collect for this company id (repeatable). Default: all active companies.",
    )
    args = parser.parse_args()

    cfg = load_config()
    data_dir = Path(cfg["db_path"]).parent
    logger = setup_logging(data_dir / "collection.log")

    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("Competitor News — Collection Run")
    logger.info(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 60)

    if not cfg["anthropic_api_key"]:
        logger.error("ERROR: No Anthropic API key found.")
        logger.error("Set ANTHROPIC_API_KEY env var or add to config.yaml")
        sys.exit(1)
    if not cfg["slack_bot_token"]:
        logger.warning("No SLACK_BOT_TOKEN set; error notifications will fail and be logged only.")

    llm = build_llm(cfg)
    with Database(cfg["db_path"]) as db, \
            httpx.Client() as feed_http, \
            build_http_client(cfg["slack_bot_token"], cfg["slack_timeout"]) as slack_http:
        notifier = ErrorNotifier(build_slack_client(cfg, slack_http), db)
        orchestrator = CollectionOrchestrator(
            db=db,
            fetcher=FeedFetcher(feed_http, timeout=cfg["feed_timeout"], max_items=cfg["max_items_per_feed"]),
            searcher=NewsSearcher(max_results=cfg["max_search_results"], delay=cfg["search_delay"]),
            detector=DuplicateDetector(llm, threshold=cfg["dedup_threshold"]),
            enricher=Enricher(
                llm,
                target_language=cfg["target_language"],
                batch_size=cfg["enrichment_batch_size"],
                timeout=cfg["enrichment_timeout"],
            ),
            notifier=notifier,
            context=cfg["analysis_context"],
        )
        result = orchestrator.collect(args.company_ids)

    failed = [log for log in result.logs if log.status == "failed"]
    duration = (datetime.now() - start_time).total_seconds()
    logger.info("=" * 60)
    logger.info("Collection Complete")
    logger.info(f"  Duration:    {duration:.1f}s")
    logger.info(f"  Companies:   {result.companies_processed} ({len(failed)} failed)")
    logger.info(f"  Fetched:     {result.raw_items_collected} raw items")
    logger.info(f"  Articles:    {result.articles_produced} enriched")
    for log in failed:
        logger.info(f"  FAILED {log.company_id}: {log.error_message}")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()

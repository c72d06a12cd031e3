"""Per-company collection run: fetch → dedup → enrich → persist."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from rivalwatch.delivery.escalation import ErrorNotifier
from rivalwatch.errors import CollectionError
from rivalwatch.fetchers.feed_fetcher import FeedFetcher
from rivalwatch.fetchers.news_searcher import NewsSearcher
from rivalwatch.models import (
    CollectionLog,
    CollectionResult,
    Company,
    DedupedItem,
    EnrichedArticle,
    RawItem,
)
from rivalwatch.processing.deduplicator import (
    DuplicateDetector,
    drop_repeated_links,
    merge_duplicates,
    normalize_url,
)
from rivalwatch.processing.enricher import Enricher, Enrichment, EnrichmentInput
from rivalwatch.storage.database import Database

logger = logging.getLogger(__name__)


def article_id(company_id: str, link: str) -> str:
    """Stable id so re-running on the same representative upserts the same row."""
    key = f"{company_id}|{normalize_url(link)}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:24]


class CollectionOrchestrator:
    def __init__(
        self,
        db: Database,
        fetcher: FeedFetcher,
        searcher: NewsSearcher,
        detector: DuplicateDetector,
        enricher: Enricher,
        notifier: ErrorNotifier,
        context: Optional[str] = None,
    ):
        self.db = db
        self.fetcher = fetcher
        self.searcher = searcher
        self.detector = detector
        self.enricher = enricher
        self.notifier = notifier
        self.context = context

    def collect(self, company_ids: Optional[list[str]] = None) -> CollectionResult:
        """Run one collection pass over the given companies, or all active ones.

        Companies run one after another. A failure inside one company is
        logged, escalated and recorded as a ``failed`` CollectionLog; the
        others are unaffected. Everything gathered is persisted at the end.
        """
        companies = self._resolve_companies(company_ids)
        context = self.db.get_analysis_context() or self.context
        logger.info(f"Collecting news for {len(companies)} companies")

        raw_items: list[RawItem] = []
        articles: list[EnrichedArticle] = []
        logs: list[CollectionLog] = []

        for idx, company in enumerate(companies, 1):
            logger.info(f"\n[{idx}/{len(companies)}] {company.name}")
            started_at = datetime.now(timezone.utc)
            fetched: list[RawItem] = []
            try:
                company_articles = self._collect_company(company, fetched, context)
            except Exception as e:
                error = CollectionError(f"Collection failed for {company.name}: {e}")
                logger.error(f"  {error}")
                logs.append(CollectionLog(
                    company_id=company.id,
                    status="failed",
                    articles_fetched=len(fetched),
                    error_code=error.code,
                    error_message=str(e),
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                ))
                raw_items.extend(fetched)
                self.notifier.notify(error, {
                    "operation": "news collection",
                    "company": company.name,
                    "article_count": len(fetched),
                })
                continue

            raw_items.extend(fetched)
            articles.extend(company_articles)
            logs.append(CollectionLog(
                company_id=company.id,
                status="success",
                articles_fetched=len(fetched),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            ))
            logger.info(f"  {len(fetched)} fetched, {len(company_articles)} articles")

        if raw_items:
            self.db.save_raw_items(raw_items)
        if articles:
            self.db.upsert_enriched_articles(articles)
        for log in logs:
            self.db.append_collection_log(log)

        return CollectionResult(
            companies_processed=len(companies),
            raw_items_collected=len(raw_items),
            articles_produced=len(articles),
            logs=logs,
        )

    def _resolve_companies(self, company_ids: Optional[list[str]]) -> list[Company]:
        if not company_ids:
            return self.db.list_active_companies()
        companies = []
        for company_id in company_ids:
            company = self.db.get_company(company_id)
            if company is None:
                logger.warning(f"Unknown company id '{company_id}', skipping")
                continue
            companies.append(company)
        return companies

    def _collect_company(
        self, company: Company, fetched: list[RawItem], context: Optional[str],
    ) -> list[EnrichedArticle]:
        """Fetch into ``fetched`` as items arrive so a failure keeps the count."""
        streams = [self.fetcher.fetch(url, company.id, fetched_via="rss") for url in company.rss_urls]
        streams += [self.fetcher.fetch(url, company.id, fetched_via="social") for url in company.social_urls]
        streams += [self.searcher.search(query, company.id) for query in company.search_queries]
        # Streams are lazy, so sources are still hit one after another
        for stream in streams:
            for item in stream:
                fetched.append(item)

        if not fetched:
            return []

        unique = drop_repeated_links(fetched)
        groups = self.detector.detect_duplicates(unique)
        deduped = merge_duplicates(unique, groups)

        inputs = [
            EnrichmentInput(
                title=d.item.title,
                link=d.item.link,
                snippet=d.item.snippet,
                company_name=company.name,
                published_at=d.item.published_at,
                context=context,
            )
            for d in deduped
        ]
        enrichments = self.enricher.enrich_items(inputs)
        collected_at = datetime.now(timezone.utc)
        return [
            self._build_article(company, d, e, collected_at)
            for d, e in zip(deduped, enrichments)
        ]

    @staticmethod
    def _build_article(
        company: Company, deduped: DedupedItem, enrichment: Enrichment, collected_at: datetime,
    ) -> EnrichedArticle:
        item = deduped.item
        return EnrichedArticle(
            id=article_id(company.id, item.link),
            company_id=company.id,
            title_original=item.title,
            title_translated=enrichment.title_translated,
            summary=enrichment.summary,
            headline=enrichment.headline,
            importance=enrichment.importance,
            categories=enrichment.categories,
            published_at=item.published_at or collected_at,
            source_links=deduped.source_links,
            llm_version=enrichment.llm_version,
        )

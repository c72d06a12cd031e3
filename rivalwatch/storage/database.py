import json
import sqlite3
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rivalwatch.models import (
    ChannelSettings,
    CollectionLog,
    Company,
    DeliveryLog,
    EnrichedArticle,
    EscalationSettings,
    RawItem,
    SourceLink,
)


SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    rss_urls TEXT NOT NULL DEFAULT '[]',
    social_urls TEXT NOT NULL DEFAULT '[]',
    search_queries TEXT NOT NULL DEFAULT '[]',
    priority INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1
);
CREATE TABLE IF NOT EXISTS raw_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id TEXT NOT NULL,
    title TEXT NOT NULL,
    link TEXT NOT NULL,
    source TEXT NOT NULL,
    snippet TEXT,
    published_at TEXT,
    fetched_via TEXT,
    saved_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS enriched_articles (
    id TEXT PRIMARY KEY,
    company_id TEXT NOT NULL,
    title_original TEXT NOT NULL,
    title_translated TEXT NOT NULL,
    summary TEXT,
    headline TEXT,
    importance INTEGER DEFAULT 50,
    categories TEXT NOT NULL DEFAULT '[]',
    published_at TEXT NOT NULL,
    source_links TEXT NOT NULL DEFAULT '[]',
    llm_version TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS collection_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id TEXT NOT NULL,
    status TEXT NOT NULL,
    articles_fetched INTEGER DEFAULT 0,
    error_code TEXT,
    error_message TEXT,
    started_at TEXT NOT NULL,
    completed_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS delivery_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    report_type TEXT NOT NULL,
    channel_id TEXT NOT NULL,
    channel_name TEXT,
    thread_count INTEGER DEFAULT 0,
    articles_delivered INTEGER DEFAULT 0,
    status TEXT NOT NULL,
    error_code TEXT,
    error_message TEXT,
    started_at TEXT NOT NULL,
    completed_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_raw_company ON raw_items(company_id);
CREATE INDEX IF NOT EXISTS idx_article_published ON enriched_articles(published_at DESC);
CREATE INDEX IF NOT EXISTS idx_article_company ON enriched_articles(company_id);
"""

_CHANNEL_KEY = "slack"
_ESCALATION_KEY = "error_notification"
_CONTEXT_KEY = "analysis_context"


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Serialize as UTC so string order equals time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    def save_company(self, company: Company):
        self.conn.execute(
            """INSERT INTO companies
               (id, name, rss_urls, social_urls, search_queries, priority, is_active)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   name = excluded.name,
                   rss_urls = excluded.rss_urls,
                   social_urls = excluded.social_urls,
                   search_queries = excluded.search_queries,
                   priority = excluded.priority,
                   is_active = excluded.is_active""",
            (
                company.id,
                company.name,
                json.dumps(company.rss_urls),
                json.dumps(company.social_urls),
                json.dumps(company.search_queries),
                company.priority,
                int(company.is_active),
            ),
        )
        self.conn.commit()

    def get_company(self, company_id: str) -> Optional[Company]:
        row = self.conn.execute(
            "SELECT * FROM companies WHERE id = ?", (company_id,)
        ).fetchone()
        return self._row_to_company(row) if row else None

    def list_active_companies(self) -> list[Company]:
        rows = self.conn.execute(
            "SELECT * FROM companies WHERE is_active = 1 ORDER BY priority DESC, name"
        ).fetchall()
        return [self._row_to_company(r) for r in rows]

    # ------------------------------------------------------------------
    # Pipeline writes
    # ------------------------------------------------------------------

    def save_raw_items(self, items: list[RawItem]) -> int:
        saved_at = _ts(_now())
        self.conn.executemany(
            """INSERT INTO raw_items
               (company_id, title, link, source, snippet, published_at, fetched_via, saved_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (
                    item.company_id, item.title, item.link, item.source,
                    item.snippet, _ts(item.published_at), item.fetched_via, saved_at,
                )
                for item in items
            ],
        )
        self.conn.commit()
        return len(items)

    def upsert_enriched_articles(self, articles: list[EnrichedArticle]) -> int:
        """Insert or replace articles by id, keeping the original created_at."""
        now = _ts(_now())
        self.conn.executemany(
            """INSERT INTO enriched_articles
               (id, company_id, title_original, title_translated, summary, headline,
                importance, categories, published_at, source_links, llm_version,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   company_id = excluded.company_id,
                   title_original = excluded.title_original,
                   title_translated = excluded.title_translated,
                   summary = excluded.summary,
                   headline = excluded.headline,
                   importance = excluded.importance,
                   categories = excluded.categories,
                   published_at = excluded.published_at,
                   source_links = excluded.source_links,
                   llm_version = excluded.llm_version,
                   updated_at = excluded.updated_at""",
            [
                (
                    a.id, a.company_id, a.title_original, a.title_translated,
                    a.summary, a.headline, a.importance,
                    json.dumps(a.categories, ensure_ascii=False),
                    _ts(a.published_at),
                    json.dumps([asdict(link) for link in a.source_links], ensure_ascii=False),
                    a.llm_version, now, now,
                )
                for a in articles
            ],
        )
        self.conn.commit()
        return len(articles)

    def append_collection_log(self, entry: CollectionLog) -> int:
        cursor = self.conn.execute(
            """INSERT INTO collection_logs
               (company_id, status, articles_fetched, error_code, error_message,
                started_at, completed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.company_id, entry.status, entry.articles_fetched,
                entry.error_code, entry.error_message,
                _ts(entry.started_at), _ts(entry.completed_at),
            ),
        )
        self.conn.commit()
        entry.id = cursor.lastrowid
        return cursor.lastrowid

    def append_delivery_log(self, entry: DeliveryLog) -> int:
        cursor = self.conn.execute(
            """INSERT INTO delivery_logs
               (report_type, channel_id, channel_name, thread_count, articles_delivered,
                status, error_code, error_message, started_at, completed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.report_type, entry.channel_id, entry.channel_name,
                entry.thread_count, entry.articles_delivered, entry.status,
                entry.error_code, entry.error_message,
                _ts(entry.started_at), _ts(entry.completed_at),
            ),
        )
        self.conn.commit()
        entry.id = cursor.lastrowid
        return cursor.lastrowid

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_enriched_articles(
        self,
        company_ids: Optional[list[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[EnrichedArticle]:
        """List articles published within [start, end], newest first."""
        sql = "SELECT * FROM enriched_articles WHERE 1 = 1"
        params: list = []

        if company_ids:
            placeholders = ",".join("?" for _ in company_ids)
            sql += f" AND company_id IN ({placeholders})"
            params.extend(company_ids)

        if start:
            sql += " AND published_at >= ?"
            params.append(_ts(start))

        if end:
            sql += " AND published_at <= ?"
            params.append(_ts(end))

        sql += " ORDER BY published_at DESC, importance DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_article(r) for r in rows]

    def get_enriched_article(self, article_id: str) -> Optional[EnrichedArticle]:
        row = self.conn.execute(
            "SELECT * FROM enriched_articles WHERE id = ?", (article_id,)
        ).fetchone()
        return self._row_to_article(row) if row else None

    def get_raw_items(self, company_id: Optional[str] = None) -> list[RawItem]:
        sql = "SELECT * FROM raw_items"
        params: list = []
        if company_id:
            sql += " WHERE company_id = ?"
            params.append(company_id)
        sql += " ORDER BY id"
        rows = self.conn.execute(sql, params).fetchall()
        return [
            RawItem(
                company_id=r["company_id"],
                title=r["title"],
                link=r["link"],
                source=r["source"],
                snippet=r["snippet"] or "",
                published_at=_parse_ts(r["published_at"]),
                fetched_via=r["fetched_via"] or "",
            )
            for r in rows
        ]

    def list_collection_logs(self, company_id: Optional[str] = None) -> list[CollectionLog]:
        sql = "SELECT * FROM collection_logs"
        params: list = []
        if company_id:
            sql += " WHERE company_id = ?"
            params.append(company_id)
        sql += " ORDER BY id"
        rows = self.conn.execute(sql, params).fetchall()
        return [
            CollectionLog(
                id=r["id"],
                company_id=r["company_id"],
                status=r["status"],
                articles_fetched=r["articles_fetched"],
                error_code=r["error_code"],
                error_message=r["error_message"],
                started_at=_parse_ts(r["started_at"]),
                completed_at=_parse_ts(r["completed_at"]),
            )
            for r in rows
        ]

    def list_delivery_logs(self, report_type: Optional[str] = None) -> list[DeliveryLog]:
        sql = "SELECT * FROM delivery_logs"
        params: list = []
        if report_type:
            sql += " WHERE report_type = ?"
            params.append(report_type)
        sql += " ORDER BY id"
        rows = self.conn.execute(sql, params).fetchall()
        return [
            DeliveryLog(
                id=r["id"],
                report_type=r["report_type"],
                channel_id=r["channel_id"],
                channel_name=r["channel_name"] or "",
                thread_count=r["thread_count"],
                articles_delivered=r["articles_delivered"],
                status=r["status"],
                error_code=r["error_code"],
                error_message=r["error_message"],
                started_at=_parse_ts(r["started_at"]),
                completed_at=_parse_ts(r["completed_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Settings (key -> JSON document)
    # ------------------------------------------------------------------

    def _get_setting(self, key: str):
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return json.loads(row["value"]) if row else None

    def _set_setting(self, key: str, value):
        self.conn.execute(
            """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value = excluded.value, updated_at = excluded.updated_at""",
            (key, json.dumps(value, ensure_ascii=False), _ts(_now())),
        )
        self.conn.commit()

    def get_channel_settings(self) -> Optional[ChannelSettings]:
        data = self._get_setting(_CHANNEL_KEY)
        return ChannelSettings(**data) if data else None

    def save_channel_settings(self, settings: ChannelSettings):
        self._set_setting(_CHANNEL_KEY, asdict(settings))

    def get_escalation_settings(self) -> Optional[EscalationSettings]:
        data = self._get_setting(_ESCALATION_KEY)
        return EscalationSettings(**data) if data else None

    def save_escalation_settings(self, settings: EscalationSettings):
        self._set_setting(_ESCALATION_KEY, asdict(settings))

    def get_analysis_context(self) -> Optional[str]:
        return self._get_setting(_CONTEXT_KEY)

    def save_analysis_context(self, context: str):
        self._set_setting(_CONTEXT_KEY, context)

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _row_to_company(self, row: sqlite3.Row) -> Company:
        return Company(
            id=row["id"],
            name=row["name"],
            rss_urls=json.loads(row["rss_urls"] or "[]"),
            social_urls=json.loads(row["social_urls"] or "[]"),
            search_queries=json.loads(row["search_queries"] or "[]"),
            priority=row["priority"] or 0,
            is_active=bool(row["is_active"]),
        )

    def _row_to_article(self, row: sqlite3.Row) -> EnrichedArticle:
        return EnrichedArticle(
            id=row["id"],
            company_id=row["company_id"],
            title_original=row["title_original"],
            title_translated=row["title_translated"],
            summary=row["summary"] or "",
            headline=row["headline"] or "",
            importance=row["importance"],
            categories=json.loads(row["categories"] or "[]"),
            published_at=_parse_ts(row["published_at"]),
            source_links=[SourceLink(**s) for s in json.loads(row["source_links"] or "[]")],
            llm_version=row["llm_version"] or "",
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.conn.close()

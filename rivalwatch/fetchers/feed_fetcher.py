"""Syndication and social feed fetcher, one best-effort attempt per URL."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterator, Optional
from urllib.parse import urlparse

import feedparser
import httpx
from dateutil import parser as dateparser

from rivalwatch.errors import FetchError
from rivalwatch.models import RawItem

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "application/rss+xml,application/atom+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

SNIPPET_MAX = 500


class FeedFetcher:
    """Turns RSS/Atom feeds (including Reddit-style social feeds) into RawItems.

    The HTTP client is injected so one connection pool is shared across a
    whole collection run.
    """

    def __init__(self, http_client: httpx.Client, timeout: float = 15, max_items: int = 20):
        self.http = http_client
        self.timeout = timeout
        self.max_items = max_items

    def fetch(self, url: str, company_id: str, fetched_via: str = "rss") -> Iterator[RawItem]:
        """Yield items parsed from ``url``; yields nothing if the feed fails."""
        try:
            body = self._download(url)
            feed = _parse_feed(body, url)
        except FetchError as e:
            logger.warning(f"  [Feed] {e}")
            return

        source = feed.feed.get("title", "").strip() or _host(url)
        count = 0
        for item in _entries_to_items(feed.entries, company_id, source, fetched_via, self.max_items):
            count += 1
            yield item
        logger.info(f"  [Feed] {source} — {count} items")

    def _download(self, url: str) -> str:
        try:
            resp = self.http.get(url, timeout=self.timeout, follow_redirects=True, headers=_HEADERS)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"Error fetching {url}: {e}") from e
        return resp.text


def _parse_feed(text: str, url: str):
    try:
        feed = feedparser.parse(text)
    except Exception as e:
        raise FetchError(f"Failed to parse {url}: {e}") from e
    if feed.bozo and not feed.entries:
        raise FetchError(f"Failed to parse {url}: {feed.get('bozo_exception')}")
    return feed


def _entries_to_items(
    entries, company_id: str, source: str, fetched_via: str, max_items: int,
) -> Iterator[RawItem]:
    """Convert feedparser entries to RawItems, skipping ones without title or link."""
    for entry in entries[:max_items]:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            continue

        snippet = entry.get("summary", "") or entry.get("description", "")
        if snippet:
            snippet = re.sub(r"<[^>]+>", "", snippet).strip()
            snippet = snippet[:SNIPPET_MAX]

        yield RawItem(
            company_id=company_id,
            title=title,
            link=link,
            source=source,
            snippet=snippet,
            published_at=_parse_date(entry),
            fetched_via=fetched_via,
        )


def _parse_date(entry) -> Optional[datetime]:
    """Try to parse a publish date from a feed entry, always UTC-aware."""
    for field in ("published", "updated", "created"):
        parsed = entry.get(f"{field}_parsed")
        if parsed:
            try:
                # feedparser normalizes *_parsed to UTC
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                pass
        raw = entry.get(field)
        if isinstance(raw, str) and raw:
            parsed_dt = parse_timestamp(raw)
            if parsed_dt:
                return parsed_dt
    return None


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Parse a free-form timestamp; naive values are taken as UTC."""
    try:
        value = dateparser.parse(raw)
    except (ValueError, OverflowError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _host(url: str) -> str:
    netloc = urlparse(url).netloc.lower()
    return netloc[4:] if netloc.startswith("www.") else netloc or url

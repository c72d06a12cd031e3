from __future__ import annotations

import logging
import time
from typing import Callable, Iterator

from ddgs import DDGS

from rivalwatch.fetchers.feed_fetcher import SNIPPET_MAX, parse_timestamp
from rivalwatch.models import RawItem

logger = logging.getLogger(__name__)


class NewsSearcher:
    """DuckDuckGo news search, throttled so consecutive queries are spaced out."""

    def __init__(self, max_results: int = 5, delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.max_results = max_results
        self.delay = delay
        self._sleep = sleep
        self._last_call: float | None = None

    def search(self, query: str, company_id: str) -> Iterator[RawItem]:
        """Yield news results for ``query``; yields nothing on search failure."""
        self._throttle()
        try:
            with DDGS() as ddgs:
                results = ddgs.news(query, max_results=self.max_results)
        except Exception as e:
            logger.warning(f"  [Search] Error searching '{query}': {e}")
            return

        count = 0
        for r in results or []:
            title = (r.get("title") or "").strip()
            url = (r.get("url") or "").strip()
            if not title or not url:
                continue

            published = None
            date_str = r.get("date")
            if date_str:
                published = parse_timestamp(date_str)

            count += 1
            yield RawItem(
                company_id=company_id,
                title=title,
                link=url,
                source=r.get("source") or "Web Search",
                snippet=(r.get("body") or "")[:SNIPPET_MAX],
                published_at=published,
                fetched_via="search",
            )
        logger.info(f"  [Search] '{query}' — {count} items")

    def _throttle(self):
        if self._last_call is not None and self.delay > 0:
            elapsed = time.monotonic() - self._last_call
            if elapsed < self.delay:
                self._sleep(self.delay - elapsed)
        self._last_call = time.monotonic()

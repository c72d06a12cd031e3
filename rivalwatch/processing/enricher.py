from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rivalwatch.errors import EnrichmentError
from rivalwatch.llm import LLMClient, extract_json

logger = logging.getLogger(__name__)

CATEGORIES = ("strategy", "technology", "personnel", "finance", "partnership", "regulatory", "other")
FALLBACK_VERSION = "fallback"
SUMMARY_MAX = 200
HEADLINE_MAX = 50


ENRICHMENT_SYSTEM_PROMPT = """\
You are a competitive-intelligence analyst. You translate English news about
competitor companies into {language}, summarize it and rate how much it matters.

Importance guide (0-100):
- 90-100: Could reshape the industry
- 80-89: Affects strategic decisions
- 70-79: Useful for competitive analysis
- 60-69: For reference only
- 50 and below: Minor

Categories: choose one or more of: {categories}

Respond with a single JSON object only, no other text:
{{"title_translated": "...", "summary": "...", "headline": "...", "importance": N, "categories": ["..."]}}
- title_translated: the title in {language}
- summary: a detailed summary in {language}, at most 200 characters
- headline: a headline-style summary in {language}, at most 50 characters
"""


@dataclass
class EnrichmentInput:
    title: str
    link: str
    snippet: str
    company_name: str
    published_at: Optional[datetime] = None
    context: Optional[str] = None


@dataclass
class Enrichment:
    title_translated: str
    summary: str
    headline: str
    importance: int
    categories: list[str] = field(default_factory=list)
    llm_version: str = ""


def fallback_enrichment(item: EnrichmentInput) -> Enrichment:
    """Deterministic stand-in used whenever the model cannot enrich an item."""
    return Enrichment(
        title_translated=item.title,
        summary=f"[{item.company_name}] Detailed analysis of this article is unavailable."[:SUMMARY_MAX],
        headline=f"[{item.company_name}] {item.title}"[:HEADLINE_MAX],
        importance=50,
        categories=["other"],
        llm_version=FALLBACK_VERSION,
    )


def _build_prompt(item: EnrichmentInput) -> str:
    published = item.published_at.isoformat() if item.published_at else "unknown"
    parts = [
        "Analyze the following article.",
        "",
        f"Company: {item.company_name}",
        f"Title: {item.title}",
        f"URL: {item.link}",
        f"Published: {published}",
        f"Content: {item.snippet or '(no description available)'}",
    ]
    if item.context:
        parts += ["", "Analysis context:", item.context]
    return "\n".join(parts)


def _clean_categories(raw) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return ["other"]
    cleaned: list[str] = []
    for value in raw:
        name = str(value).strip().lower()
        if name in CATEGORIES and name not in cleaned:
            cleaned.append(name)
    return cleaned or ["other"]


class Enricher:
    """Translates, summarizes, scores and tags items with one model call each."""

    def __init__(
        self,
        llm: LLMClient,
        target_language: str = "Japanese",
        batch_size: int = 5,
        timeout: float = 60,
    ):
        self.llm = llm
        self.target_language = target_language
        self.batch_size = max(1, batch_size)
        self.timeout = timeout
        self.system_prompt = ENRICHMENT_SYSTEM_PROMPT.format(
            language=target_language, categories=", ".join(CATEGORIES),
        )

    def enrich(self, item: EnrichmentInput) -> Enrichment:
        """Enrich one item. Raises EnrichmentError on any model or parse failure."""
        try:
            text = self.llm.complete(self.system_prompt, _build_prompt(item), temperature=0.4)
            data = extract_json(text)
        except Exception as e:
            raise EnrichmentError(f"Enrichment failed for '{item.title[:50]}': {e}") from e

        if not isinstance(data, dict):
            raise EnrichmentError(f"Expected JSON object, got {type(data).__name__}")

        try:
            importance = int(round(float(data["importance"])))
        except (KeyError, TypeError, ValueError) as e:
            raise EnrichmentError(f"Invalid importance in response: {e}") from e

        title = str(data.get("title_translated") or "").strip() or item.title
        summary = str(data.get("summary") or "").strip()
        headline = str(data.get("headline") or "").strip() or f"[{item.company_name}] {title}"

        return Enrichment(
            title_translated=title,
            summary=summary[:SUMMARY_MAX],
            headline=headline[:HEADLINE_MAX],
            importance=max(0, min(100, importance)),
            categories=_clean_categories(data.get("categories")),
            llm_version=self.llm.version,
        )

    def enrich_items(self, items: list[EnrichmentInput]) -> list[Enrichment]:
        """Enrich items in concurrent batches; output order matches input order."""
        if not items:
            return []
        return asyncio.run(self._enrich_all(items))

    async def _enrich_all(self, items: list[EnrichmentInput]) -> list[Enrichment]:
        results: list[Enrichment] = []
        total = len(items)
        num_batches = (total + self.batch_size - 1) // self.batch_size
        for batch_num in range(num_batches):
            start = batch_num * self.batch_size
            batch = items[start:start + self.batch_size]
            logger.info(
                f"  [Enrich] Batch {batch_num + 1}/{num_batches} "
                f"(items {start + 1}-{start + len(batch)} of {total})..."
            )
            results.extend(await asyncio.gather(*(self._enrich_one(item) for item in batch)))
        return results

    async def _enrich_one(self, item: EnrichmentInput) -> Enrichment:
        try:
            result = await asyncio.wait_for(asyncio.to_thread(self.enrich, item), timeout=self.timeout)
        except Exception as e:
            logger.warning(f"  [Enrich] Falling back for '{item.title[:50]}': {e!r}")
            return fallback_enrichment(item)
        logger.info(f"  [Enrich]   {result.importance}/100 | {','.join(result.categories)} | {item.title[:50]}")
        return result

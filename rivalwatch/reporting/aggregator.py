"""Turn stored articles into daily, weekly and ranked-digest Slack reports."""

from __future__ import annotations

import logging
from datetime import date, tzinfo
from typing import Optional

from rivalwatch.errors import ConfigurationError
from rivalwatch.llm import LLMClient, extract_json
from rivalwatch.models import ChannelSettings, EnrichedArticle, Report
from rivalwatch.reporting.periods import day_bounds, week_bounds
from rivalwatch.storage.database import Database

logger = logging.getLogger(__name__)

SPOTLIGHT_COUNT = 5
MAIN_MESSAGE_LIMIT = 10

NO_ARTICLES_TODAY = "No competitor articles today."
SEE_ARTICLES_TODAY = "Please see the articles below for today's developments."
NO_ARTICLES_THIS_WEEK = "No competitor articles this week."
SEE_ARTICLES_THIS_WEEK = "Please see this week's articles for details."
NO_STRATEGIC_ACTION = "No recommended action is available this week."
NO_ARTICLES_DIGEST = "No competitor articles to report."

DAILY_SYSTEM_PROMPT = """\
You write the opening paragraph of a daily competitor news report in {language}.
Summarize the overall trend of the day's articles in about 200 characters.
Do not include numbers, counts or statistics. Reply with the paragraph only."""

WEEKLY_SYSTEM_PROMPT = """\
You are a strategy analyst writing a weekly competitor report in {language}.
Respond with a single JSON object only, no other text:
{{"competitor_summary": "...", "company_summaries": [{{"company": "...", "summary": "..."}}], "strategic_action": "..."}}
- competitor_summary: overall competitor movement this week, about 200 characters
- company_summaries: one entry per company listed, about 100 characters each
- strategic_action: the action we should consider in response, about 200 characters"""


def escape_mrkdwn(text: str) -> str:
    """Escape the characters Slack treats as control sequences."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _link(article: EnrichedArticle, label: str) -> str:
    return f"<{article.link or '#'}|{escape_mrkdwn(label)}>"


def rank_by_importance(articles: list[EnrichedArticle]) -> list[EnrichedArticle]:
    """Importance descending, newest first among equals."""
    return sorted(articles, key=lambda a: (a.importance, a.published_at), reverse=True)


class ReportAggregator:
    def __init__(self, db: Database, llm: LLMClient, tz: tzinfo, target_language: str = "Japanese"):
        self.db = db
        self.llm = llm
        self.tz = tz
        self.target_language = target_language

    # ------------------------------------------------------------------
    # Daily
    # ------------------------------------------------------------------

    def build_daily(self, day: date, company_ids: Optional[list[str]] = None) -> Report:
        channel = self._channel()
        start, end = day_bounds(day, self.tz)
        articles = rank_by_importance(
            self.db.list_enriched_articles(company_ids=company_ids, start=start, end=end)
        )
        logger.info(f"Daily report for {day.isoformat()}: {len(articles)} articles")

        digest = self._daily_digest(articles)
        lines = [
            f":newspaper: *Competitor daily report — {day.isoformat()}* ({len(articles)} articles)",
            "",
            escape_mrkdwn(digest),
        ]
        if articles:
            names = self._company_names(articles)
            lines += ["", "*Highlights*"]
            for article in articles[:SPOTLIGHT_COUNT]:
                lines.append(f"• *{_link(article, article.title_translated)}* [{escape_mrkdwn(names[article.company_id])}]")
                if article.summary:
                    lines.append(f"    {escape_mrkdwn(article.summary)}")
            overflow = len(articles) - SPOTLIGHT_COUNT
            if overflow > 0:
                lines.append(f"_...and {overflow} more articles_")

        return self._report("daily", channel, lines, article_count=len(articles))

    def _daily_digest(self, articles: list[EnrichedArticle]) -> str:
        if not articles:
            return NO_ARTICLES_TODAY
        names = self._company_names(articles)
        listing = "\n".join(
            f"- [{names[a.company_id]}] {a.headline or a.title_translated}" for a in articles
        )
        try:
            return self.llm.complete(
                DAILY_SYSTEM_PROMPT.format(language=self.target_language),
                f"Today's articles:\n{listing}",
                temperature=0.7,
                max_tokens=400,
            )
        except Exception as e:
            logger.warning(f"Daily digest generation failed, using canned text: {e}")
            return SEE_ARTICLES_TODAY

    # ------------------------------------------------------------------
    # Weekly
    # ------------------------------------------------------------------

    def build_weekly(self, day: date, company_ids: Optional[list[str]] = None) -> Report:
        channel = self._channel()
        start, end = week_bounds(day, self.tz)
        articles = rank_by_importance(
            self.db.list_enriched_articles(company_ids=company_ids, start=start, end=end)
        )
        week_label = f"{start.date().isoformat()} to {end.date().isoformat()}"
        logger.info(f"Weekly report for {week_label}: {len(articles)} articles")

        summary, company_summaries, action = self._weekly_analysis(articles)
        lines = [
            f":chart_with_upwards_trend: *Weekly competitor report — {week_label}* ({len(articles)} articles)",
            "",
            "*Competitor summary*",
            escape_mrkdwn(summary),
        ]
        if company_summaries:
            lines += ["", "*By company*"]
            for company, text in company_summaries:
                lines.append(f"• *{escape_mrkdwn(company)}*: {escape_mrkdwn(text)}")
        lines += ["", "*Recommended action*", escape_mrkdwn(action)]

        return self._report("weekly", channel, lines, article_count=len(articles))

    def _weekly_analysis(self, articles: list[EnrichedArticle]) -> tuple[str, list[tuple[str, str]], str]:
        """Return (competitor summary, [(company, summary)], strategic action)."""
        if not articles:
            return NO_ARTICLES_THIS_WEEK, [], NO_STRATEGIC_ACTION

        names = self._company_names(articles)
        by_company: dict[str, list[EnrichedArticle]] = {}
        for article in articles:
            by_company.setdefault(names[article.company_id], []).append(article)

        blocks = []
        for company, company_articles in by_company.items():
            blocks.append(f"## {company}")
            blocks.extend(
                f"- ({a.importance}) {a.headline or a.title_translated}: {a.summary}"
                for a in company_articles
            )

        try:
            text = self.llm.complete(
                WEEKLY_SYSTEM_PROMPT.format(language=self.target_language),
                "This week's articles by company:\n\n" + "\n".join(blocks),
                temperature=0.7,
                max_tokens=1500,
            )
            data = extract_json(text)
            summary = str(data["competitor_summary"]).strip()
            action = str(data["strategic_action"]).strip()
            raw_companies = data.get("company_summaries") or []
        except Exception as e:
            logger.warning(f"Weekly analysis failed, using canned text: {e}")
            return SEE_ARTICLES_THIS_WEEK, [], NO_STRATEGIC_ACTION

        company_summaries = []
        for entry in raw_companies:
            if not isinstance(entry, dict):
                continue
            company = str(entry.get("company", "")).strip()
            if company in by_company and entry.get("summary"):
                company_summaries.append((company, str(entry["summary"]).strip()))

        return summary or SEE_ARTICLES_THIS_WEEK, company_summaries, action or NO_STRATEGIC_ACTION

    # ------------------------------------------------------------------
    # Ranked digest
    # ------------------------------------------------------------------

    def build_digest(self, company_ids: Optional[list[str]] = None, limit: int = 50) -> Report:
        """Ranked variant: top 10 in the main message, the rest one per thread message."""
        channel = self._channel()
        articles = rank_by_importance(
            self.db.list_enriched_articles(company_ids=company_ids, limit=limit)
        )

        lines = [f":bar_chart: *Competitor news digest* ({len(articles)} articles)", ""]
        if not articles:
            lines.append(NO_ARTICLES_DIGEST)
        for index, article in enumerate(articles[:MAIN_MESSAGE_LIMIT], 1):
            lines.append(f"{index}. {_link(article, article.headline or article.title_translated)}")

        threads = [
            f"{index}. {_link(article, article.headline or article.title_translated)}"
            for index, article in enumerate(articles[MAIN_MESSAGE_LIMIT:], MAIN_MESSAGE_LIMIT + 1)
        ]
        return self._report("digest", channel, lines, article_count=len(articles), threads=threads)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _channel(self) -> ChannelSettings:
        channel = self.db.get_channel_settings()
        if channel is None or not channel.channel_id:
            raise ConfigurationError("Slack channel is not configured")
        return channel

    def _company_names(self, articles: list[EnrichedArticle]) -> dict[str, str]:
        names: dict[str, str] = {}
        for article in articles:
            if article.company_id not in names:
                company = self.db.get_company(article.company_id)
                names[article.company_id] = company.name if company else article.company_id
        return names

    @staticmethod
    def _report(
        kind: str,
        channel: ChannelSettings,
        lines: list[str],
        article_count: int,
        threads: Optional[list[str]] = None,
    ) -> Report:
        text = "\n".join(lines)
        if channel.mention_user_id:
            text = f"<@{channel.mention_user_id}>\n{text}"
        return Report(
            kind=kind,
            channel_id=channel.channel_id,
            channel_name=channel.channel_name,
            main_text=text,
            threads=threads or [],
            article_count=article_count,
        )

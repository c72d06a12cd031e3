"""Shared fakes and fixtures for the pipeline tests."""

import json
from datetime import datetime, timezone

import pytest

from rivalwatch.errors import DeliveryError
from rivalwatch.models import (
    ChannelSettings,
    Company,
    EnrichedArticle,
    EscalationSettings,
    RawItem,
    SourceLink,
)
from rivalwatch.storage.database import Database


class FakeLLM:
    """Stands in for LLMClient. ``reply`` is a string or ``f(system, user) -> str``."""

    version = "fake-model"

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_prompt, temperature=0.0, max_tokens=None):
        self.calls.append({"system": system_prompt, "user": user_prompt, "temperature": temperature})
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(system_prompt, user_prompt)
        return self.reply


class FakeSlack:
    """Records posts. ``fail_on`` holds 1-based call numbers that raise DeliveryError."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.posts = []

    def post_message(self, channel, text, thread_ts=None):
        number = len(self.posts) + 1
        self.posts.append({"channel": channel, "text": text, "thread_ts": thread_ts})
        if number in self.fail_on:
            raise DeliveryError(f"channel_not_found (call {number})")
        return {"ok": True, "ts": f"1700000000.{number:06d}", "channel": channel}


def enrichment_json(title="Translated", importance=75, categories=("strategy",), summary="Summary", headline="Headline"):
    return json.dumps({
        "title_translated": title,
        "summary": summary,
        "headline": headline,
        "importance": importance,
        "categories": list(categories),
    })


def make_item(title, link=None, snippet="", company_id="acme", source="Example News", published_at=None):
    return RawItem(
        company_id=company_id,
        title=title,
        link=link or f"https://news.example.com/{title.lower().replace(' ', '-')}",
        source=source,
        snippet=snippet,
        published_at=published_at,
        fetched_via="rss",
    )


def make_article(article_id, company_id="acme", importance=50, published_at=None, **overrides):
    fields = dict(
        id=article_id,
        company_id=company_id,
        title_original=f"Original {article_id}",
        title_translated=f"Translated {article_id}",
        summary=f"Summary of {article_id}",
        headline=f"Headline {article_id}",
        importance=importance,
        categories=["strategy"],
        published_at=published_at or datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc),
        source_links=[SourceLink(
            url=f"https://news.example.com/{article_id}",
            title=f"Original {article_id}",
            source="Example News",
        )],
        llm_version="fake-model",
    )
    fields.update(overrides)
    return EnrichedArticle(**fields)


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    yield database
    database.close()


@pytest.fixture
def configured_db(db):
    """Database with two companies plus channel and escalation settings."""
    db.save_company(Company(id="acme", name="Acme Corp", rss_urls=["https://acme.example/feed"]))
    db.save_company(Company(id="globex", name="Globex", search_queries=["Globex"]))
    db.save_channel_settings(ChannelSettings(
        channel_id="C123", channel_name="competitor-news", mention_user_id="U999", updated_by="admin",
    ))
    db.save_escalation_settings(EscalationSettings(mention_user="UOPS", fallback_channel_id="COPS"))
    return db

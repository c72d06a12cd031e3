"""Tests for LLM enrichment and its fallback."""

import json
import re
import time

import pytest

from conftest import FakeLLM, enrichment_json

from rivalwatch.errors import EnrichmentError
from rivalwatch.processing.enricher import Enricher, EnrichmentInput, fallback_enrichment


def make_input(title="Acme launches card marketplace", company="Acme Corp", **kwargs):
    return EnrichmentInput(
        title=title,
        link="https://acme.example/news/1",
        snippet=kwargs.pop("snippet", "Acme launched a marketplace."),
        company_name=company,
        **kwargs,
    )


def echo_title(system, user):
    """Reply whose translated title echoes the input title."""
    title = re.search(r"^Title: (.*)$", user, re.MULTILINE).group(1)
    return enrichment_json(title=f"JP {title}")


class TestEnrich:
    def test_parses_model_output(self) -> None:
        llm = FakeLLM(reply="Here you go:\n" + enrichment_json(importance=82, categories=["partnership", "finance"]))

        result = Enricher(llm).enrich(make_input(context="NFT platforms"))

        assert result.title_translated == "Translated"
        assert result.importance == 82
        assert result.categories == ["partnership", "finance"]
        assert result.llm_version == "fake-model"
        assert llm.calls[0]["temperature"] == 0.4
        assert "NFT platforms" in llm.calls[0]["user"]
        assert "Japanese" in llm.calls[0]["system"]

    def test_clamps_and_truncates(self) -> None:
        """Out-of-range scores are clamped and long text is cut to its limit."""
        reply = enrichment_json(importance=150, summary="s" * 400, headline="h" * 80, categories=["Weather", "TECHNOLOGY"])

        result = Enricher(FakeLLM(reply=reply)).enrich(make_input())

        assert result.importance == 100
        assert len(result.summary) == 200
        assert len(result.headline) == 50
        assert result.categories == ["technology"]

    def test_unknown_categories_become_other(self) -> None:
        result = Enricher(FakeLLM(reply=enrichment_json(importance=-5, categories=["weather"]))).enrich(make_input())

        assert result.categories == ["other"]
        assert result.importance == 0

    def test_malformed_output_raises(self) -> None:
        with pytest.raises(EnrichmentError):
            Enricher(FakeLLM(reply="not json at all")).enrich(make_input())

    def test_missing_importance_raises(self) -> None:
        reply = json.dumps({"title_translated": "t", "summary": "s", "headline": "h", "categories": []})

        with pytest.raises(EnrichmentError):
            Enricher(FakeLLM(reply=reply)).enrich(make_input())

    def test_model_error_raises_enrichment_error(self) -> None:
        with pytest.raises(EnrichmentError):
            Enricher(FakeLLM(error=ConnectionError("down"))).enrich(make_input())


class TestFallback:
    def test_fallback_record(self) -> None:
        result = fallback_enrichment(make_input())

        assert result.title_translated == "Acme launches card marketplace"
        assert result.importance == 50
        assert result.categories == ["other"]
        assert result.llm_version == "fallback"
        assert "Acme Corp" in result.summary
        assert result.headline.startswith("[Acme Corp]")
        assert len(result.headline) <= 50

    def test_model_failure_yields_fallback_for_every_item(self) -> None:
        inputs = [make_input(title=f"Story {n}") for n in range(3)]

        results = Enricher(FakeLLM(error=RuntimeError("overloaded"))).enrich_items(inputs)

        assert [r.importance for r in results] == [50, 50, 50]
        assert all(r.categories == ["other"] for r in results)
        assert [r.title_translated for r in results] == ["Story 0", "Story 1", "Story 2"]


class TestEnrichItems:
    def test_preserves_order_across_batches(self) -> None:
        inputs = [make_input(title=f"Story {n}") for n in range(7)]
        llm = FakeLLM(reply=echo_title)

        results = Enricher(llm, batch_size=5).enrich_items(inputs)

        assert [r.title_translated for r in results] == [f"JP Story {n}" for n in range(7)]
        assert len(llm.calls) == 7

    def test_failures_are_isolated_per_item(self) -> None:
        def reply(system, user):
            if "Title: Story 1\n" in user:
                raise ValueError("bad item")
            return echo_title(system, user)

        results = Enricher(FakeLLM(reply=reply)).enrich_items([make_input(title=f"Story {n}") for n in range(3)])

        assert [r.llm_version for r in results] == ["fake-model", "fallback", "fake-model"]
        assert results[1].title_translated == "Story 1"

    def test_slow_item_times_out_to_fallback(self) -> None:
        def reply(system, user):
            if "Title: Slow\n" in user:
                time.sleep(0.5)
            return echo_title(system, user)

        results = Enricher(FakeLLM(reply=reply), timeout=0.1).enrich_items(
            [make_input(title="Slow"), make_input(title="Fast")]
        )

        assert results[0].llm_version == "fallback"
        assert results[1].title_translated == "JP Fast"

    def test_empty_input(self) -> None:
        assert Enricher(FakeLLM()).enrich_items([]) == []

"""Tests for the RSS/Atom feed fetcher."""

from datetime import datetime, timezone

import httpx

from rivalwatch.fetchers.feed_fetcher import FeedFetcher, parse_timestamp

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Acme Newsroom</title>
    <link>https://acme.example</link>
    <item>
      <title>Acme launches card marketplace</title>
      <link>https://acme.example/news/marketplace</link>
      <description>&lt;p&gt;Acme &lt;b&gt;today&lt;/b&gt; launched a marketplace.&lt;/p&gt;</description>
      <pubDate>Mon, 19 Oct 2026 09:30:00 GMT</pubDate>
    </item>
    <item>
      <title>No link here</title>
      <description>Dropped</description>
    </item>
    <item>
      <link>https://acme.example/news/untitled</link>
      <description>Dropped too</description>
    </item>
    <item>
      <title>Acme hires new CTO</title>
      <link>https://acme.example/news/cto</link>
    </item>
  </channel>
</rss>
"""


def _fetcher(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return FeedFetcher(client, **kwargs)


def _serve(body, status=200):
    def handler(request):
        return httpx.Response(status, text=body, headers={"content-type": "application/rss+xml"})
    return handler


class TestFeedFetcher:
    def test_parses_valid_entries(self) -> None:
        """Entries become RawItems with the feed title as their source."""
        items = list(_fetcher(_serve(RSS)).fetch("https://acme.example/feed", "acme"))

        assert [i.title for i in items] == ["Acme launches card marketplace", "Acme hires new CTO"]
        first = items[0]
        assert first.company_id == "acme"
        assert first.link == "https://acme.example/news/marketplace"
        assert first.source == "Acme Newsroom"
        assert first.fetched_via == "rss"

    def test_strips_html_from_snippet(self) -> None:
        items = list(_fetcher(_serve(RSS)).fetch("https://acme.example/feed", "acme"))

        assert items[0].snippet == "Acme today launched a marketplace."
        assert items[1].snippet == ""

    def test_published_date_is_utc(self) -> None:
        items = list(_fetcher(_serve(RSS)).fetch("https://acme.example/feed", "acme"))

        assert items[0].published_at == datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
        assert items[1].published_at is None

    def test_social_feeds_are_tagged(self) -> None:
        items = list(_fetcher(_serve(RSS)).fetch("https://reddit.example/r/acme/.rss", "acme", fetched_via="social"))

        assert {i.fetched_via for i in items} == {"social"}

    def test_max_items_limits_entries_considered(self) -> None:
        items = list(_fetcher(_serve(RSS), max_items=1).fetch("https://acme.example/feed", "acme"))

        assert len(items) == 1

    def test_http_error_yields_nothing(self) -> None:
        """A failing URL is treated as an empty feed, not an exception."""
        items = list(_fetcher(_serve("oops", status=503)).fetch("https://acme.example/feed", "acme"))

        assert items == []

    def test_network_error_yields_nothing(self) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert list(_fetcher(handler).fetch("https://acme.example/feed", "acme")) == []

    def test_malformed_url_yields_nothing(self) -> None:
        """A bad port is rejected by httpx before any request is sent."""
        items = list(_fetcher(_serve(RSS)).fetch("https://bad.example:notaport/feed", "acme"))

        assert items == []

    def test_unparseable_body_yields_nothing(self) -> None:
        items = list(_fetcher(_serve("this is not a feed <<<")).fetch("https://acme.example/feed", "acme"))

        assert items == []

    def test_source_falls_back_to_host(self) -> None:
        body = RSS.replace("<title>Acme Newsroom</title>", "")
        items = list(_fetcher(_serve(body)).fetch("https://www.acme.example/feed", "acme"))

        assert items[0].source == "acme.example"


class TestParseTimestamp:
    def test_naive_is_taken_as_utc(self) -> None:
        assert parse_timestamp("2026-10-19 09:30") == datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)

    def test_offsets_are_converted(self) -> None:
        assert parse_timestamp("2026-10-19T18:30:00+09:00") == datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)

    def test_garbage_returns_none(self) -> None:
        assert parse_timestamp("not a date") is None

"""Tests for the YAML company/settings importer."""

import yaml

from scripts.import_companies import import_file

DATA = yaml.safe_load("""
companies:
  - id: acme
    name: Acme Corp
    rss_urls: [https://acme.example/feed.xml]
    search_queries: ["Acme Corp"]
    priority: 2
  - id: old
    name: Old Co
    is_active: false
slack:
  channel_id: C0123456
  channel_name: competitor-news
  mention_user_id: U0123456
error_notification:
  mention_user: U0ABCDEF
analysis_context: Card marketplaces
""")


class TestImportFile:
    def test_imports_companies_and_settings(self, db) -> None:
        count = import_file(db, DATA, editor="alice")

        assert count == 2
        assert [c.id for c in db.list_active_companies()] == ["acme"]
        assert db.get_company("acme").search_queries == ["Acme Corp"]
        channel = db.get_channel_settings()
        assert channel.channel_id == "C0123456"
        assert channel.updated_by == "alice"
        assert db.get_escalation_settings().mention_user == "U0ABCDEF"
        assert db.get_analysis_context() == "Card marketplaces"

    def test_reimport_updates_existing(self, db) -> None:
        import_file(db, DATA, editor="alice")
        changed = {"companies": [{"id": "acme", "name": "Acme Holdings"}]}

        import_file(db, changed, editor="bob")

        assert db.get_company("acme").name == "Acme Holdings"
        assert db.get_channel_settings().updated_by == "alice"

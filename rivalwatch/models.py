from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Company:
    """A watched competitor and the feeds collected for it."""
    id: str
    name: str
    rss_urls: list[str] = field(default_factory=list)
    social_urls: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    priority: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class RawItem:
    """A story as fetched from one source, before dedup and enrichment."""
    company_id: str
    title: str
    link: str
    source: str
    snippet: str = ""
    published_at: Optional[datetime] = None
    fetched_via: str = ""  # "rss", "social", or "search"


@dataclass
class SourceLink:
    url: str
    title: str
    source: str


@dataclass
class DuplicateGroup:
    """Raw items judged to be the same story. Never persisted."""
    members: list[RawItem]
    representative: RawItem
    similarity: float

    @property
    def source_links(self) -> list[SourceLink]:
        return [SourceLink(url=m.link, title=m.title, source=m.source) for m in self.members]


@dataclass
class DedupedItem:
    """A representative item plus the provenance of every story it stands for."""
    item: RawItem
    source_links: list[SourceLink]


@dataclass
class EnrichedArticle:
    """The durable output unit of a collection run."""
    id: str
    company_id: str
    title_original: str
    title_translated: str
    summary: str
    headline: str
    importance: int
    categories: list[str]
    published_at: datetime
    source_links: list[SourceLink] = field(default_factory=list)
    llm_version: str = ""
    created_at: Optional[datetime] = None  # assigned by storage
    updated_at: Optional[datetime] = None  # assigned by storage

    @property
    def link(self) -> str:
        return self.source_links[0].url if self.source_links else ""


@dataclass
class CollectionLog:
    company_id: str
    status: str  # "success", "partial", or "failed"
    articles_fetched: int
    started_at: datetime
    completed_at: datetime
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    id: Optional[int] = None


@dataclass
class DeliveryLog:
    report_type: str  # "daily", "weekly", or "digest"
    channel_id: str
    status: str  # "success" or "failed"
    started_at: datetime
    completed_at: datetime
    channel_name: str = ""
    thread_count: int = 0
    articles_delivered: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    id: Optional[int] = None


@dataclass
class CollectionResult:
    companies_processed: int
    raw_items_collected: int
    articles_produced: int
    logs: list[CollectionLog] = field(default_factory=list)


@dataclass
class ChannelSettings:
    channel_id: str
    channel_name: str = ""
    thread_strategy: str = "top10-main-rest-thread"
    mention_user_id: Optional[str] = None
    updated_by: str = ""


@dataclass
class EscalationSettings:
    mention_user: str
    fallback_channel_id: Optional[str] = None
    updated_by: str = ""


@dataclass
class Report:
    """A formatted report ready for the delivery engine."""
    kind: str  # "daily", "weekly", or "digest"
    channel_id: str
    main_text: str
    channel_name: str = ""
    threads: list[str] = field(default_factory=list)
    article_count: int = 0

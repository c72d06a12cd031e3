from __future__ import annotations

import logging
import math
import re
from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from rivalwatch.errors import SimilarityError
from rivalwatch.llm import LLMClient
from rivalwatch.models import DedupedItem, DuplicateGroup, RawItem, SourceLink

logger = logging.getLogger(__name__)

SIMILARITY_SYSTEM_PROMPT = (
    "You judge whether two news articles cover the same story. "
    "Rate their similarity as a number from 0.0 to 1.0; 0.8 or above means "
    "they report the same event."
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def normalize_url(url: str) -> str:
    """Normalize a URL for comparison: lowercase host, strip tracking params, trailing slashes."""
    try:
        parsed = urlparse(url.strip())
        scheme = parsed.scheme.lower()
        netloc = parsed.netloc.lower()
        if netloc.startswith("www."):
            netloc = netloc[4:]
        tracking_params = {"utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term", "ref", "source"}
        params = parse_qs(parsed.query)
        filtered = {k: v for k, v in params.items() if k.lower() not in tracking_params}
        query = urlencode(filtered, doseq=True) if filtered else ""
        path = parsed.path.rstrip("/")
        return urlunparse((scheme, netloc, path, parsed.params, query, ""))
    except ValueError:
        return url.strip().lower()


def drop_repeated_links(items: list[RawItem]) -> list[RawItem]:
    """Keep the first item per normalized link so links are unique within a run."""
    seen: set[str] = set()
    unique: list[RawItem] = []
    for item in items:
        key = normalize_url(item.link)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def title_overlap(title_a: str, title_b: str) -> float:
    """Shared lowercase title words over all distinct words, in [0, 1]."""
    words_a = set(title_a.lower().split())
    words_b = set(title_b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def select_representative(group: list[RawItem]) -> RawItem:
    """The member with the longest snippet; the earliest wins ties."""
    representative = group[0]
    for item in group[1:]:
        if len(item.snippet) > len(representative.snippet):
            representative = item
    return representative


def parse_score(text: str) -> float:
    """Pull the first number out of a model reply and clamp it to [0, 1]."""
    match = _NUMBER_RE.search(text)
    if not match:
        return 0.0
    score = float(match.group())
    if math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))


class DuplicateDetector:
    """Groups a company's raw items that describe the same real-world story.

    Each unprocessed item opens a group and is compared with every later
    unprocessed item. Comparison is against the group's first member only,
    so membership is transitive through that member rather than checked
    pairwise across the whole group. Items merge when the score is at or
    above ``threshold``, so a reply of exactly 0.8 counts as the same story.
    """

    def __init__(self, llm: LLMClient, threshold: float = 0.8):
        self.llm = llm
        self.threshold = threshold

    def detect_duplicates(self, items: list[RawItem]) -> list[DuplicateGroup]:
        if len(items) <= 1:
            return []

        try:
            groups = self._group(items)
        except Exception as e:
            logger.error(f"  [Dedup] Duplicate detection failed, skipping: {e}")
            return []

        logger.info(
            f"  [Dedup] {len(items)} items, {len(groups)} duplicate groups "
            f"covering {sum(len(g.members) for g in groups)} items"
        )
        return groups

    def _group(self, items: list[RawItem]) -> list[DuplicateGroup]:
        processed = [False] * len(items)
        groups: list[DuplicateGroup] = []

        for i, first in enumerate(items):
            if processed[i]:
                continue
            processed[i] = True
            members = [first]
            scores: list[float] = []

            for j in range(i + 1, len(items)):
                if processed[j]:
                    continue
                score = self.similarity(first, items[j])
                if score >= self.threshold:
                    members.append(items[j])
                    scores.append(score)
                    processed[j] = True

            if len(members) > 1:
                groups.append(DuplicateGroup(
                    members=members,
                    representative=select_representative(members),
                    similarity=min(scores),
                ))
        return groups

    def similarity(self, a: RawItem, b: RawItem) -> float:
        """Model judgment of same-story likelihood, or title overlap if the model fails."""
        try:
            return self._model_similarity(a, b)
        except SimilarityError as e:
            logger.warning(f"  [Dedup] {e}; using title overlap")
            return title_overlap(a.title, b.title)

    def _model_similarity(self, a: RawItem, b: RawItem) -> float:
        prompt = (
            f"Article 1: {a.title}\nContent: {a.snippet}\n\n"
            f"Article 2: {b.title}\nContent: {b.snippet}\n\n"
            "Answer with the similarity as a single number between 0.0 and 1.0."
        )
        try:
            text = self.llm.complete(SIMILARITY_SYSTEM_PROMPT, prompt, temperature=0.1, max_tokens=16)
        except Exception as e:
            raise SimilarityError(f"Similarity call failed: {e}") from e
        return parse_score(text)


def merge_duplicates(items: list[RawItem], groups: list[DuplicateGroup]) -> list[DedupedItem]:
    """Collapse each group onto its representative, in input order.

    Every input item ends up represented exactly once: singletons carry
    their own link, representatives carry one link per group member.
    """
    group_of: dict[int, DuplicateGroup] = {}
    for group in groups:
        for member in group.members:
            group_of[id(member)] = group

    merged: list[DedupedItem] = []
    emitted: set[int] = set()
    for item in items:
        group = group_of.get(id(item))
        if group is None:
            merged.append(DedupedItem(
                item=item,
                source_links=[SourceLink(url=item.link, title=item.title, source=item.source)],
            ))
            continue
        if id(group) in emitted:
            continue
        emitted.add(id(group))
        merged.append(DedupedItem(item=group.representative, source_links=group.source_links))
    return merged

"""Shared pipeline data types.

Topic and Mention mirror rows in Postgres; Candidate is the transient record an
adapter hands to the monitor before persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    UNSCORED = "unscored"

    @classmethod
    def parse(cls, value: Any) -> "Sentiment":
        """Map a stored/free-form value to the enum; anything unknown is UNSCORED."""
        if isinstance(value, Sentiment):
            return value
        s = str(value or "").strip().lower()
        for member in cls:
            if member.value == s:
                return member
        return cls.UNSCORED


@dataclass(frozen=True)
class Topic:
    id: int
    name: str
    keywords: List[str] = field(default_factory=list)
    bill_ids: List[str] = field(default_factory=list)
    state: Optional[str] = None
    active: bool = True

    @property
    def searchable(self) -> bool:
        return any(k.strip() for k in self.keywords) or any(b.strip() for b in self.bill_ids)


@dataclass(frozen=True)
class ClusterHint:
    """Provider-supplied grouping info (NewsAPI.ai eventUri / isDuplicate)."""

    event_id: Optional[str] = None
    is_duplicate: bool = False


@dataclass(frozen=True)
class Candidate:
    """Normalized candidate article (pre-persistence).

    Structured candidates arrive with body/sentiment/authors filled in; web
    candidates only carry url/title/description until they are scraped.
    """

    url: str
    title: str = ""
    excerpt: Optional[str] = None
    body: Optional[str] = None
    sentiment_score: Optional[float] = None
    cluster_hint: ClusterHint = field(default_factory=ClusterHint)
    published_at: Optional[datetime] = None
    raw_html: Optional[str] = None
    authors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    source_type: str = "web"


@dataclass(frozen=True)
class ScrapeResult:
    html: Optional[str]
    markdown: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: str = "ok"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok" and bool(self.markdown or self.html)


@dataclass
class Mention:
    topic_id: int
    url: str
    title: str
    outlet: str
    discovered_at: datetime
    excerpt: Optional[str] = None
    content: Optional[str] = None
    sentiment: Sentiment = Sentiment.UNSCORED
    published_at: Optional[datetime] = None
    story_cluster: Optional[int] = None
    first_seen_for_story: bool = False
    journalist_id: Optional[int] = None
    event_id: Optional[str] = None
    outlet_type: str = "news"
    source_type: str = "web"
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.published_at is None:
            self.published_at = self.discovered_at


@dataclass
class Journalist:
    name: str
    outlet: str
    email: Optional[str] = None
    phone: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    website: Optional[str] = None
    article_count: int = 0
    avg_sentiment: Optional[float] = None
    beats: List[str] = field(default_factory=list)
    last_article_at: Optional[datetime] = None
    id: Optional[int] = None

"""Storage interface used by the mention monitor.

`insert_mention` is idempotent on (topic_id, url): a duplicate returns None
instead of raising.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from policyfront.extraction.byline import Byline
from policyfront.ingestion.article_types import Journalist, Mention, Sentiment, Topic


class MentionStore:
    # Topics
    def active_topics(self) -> List[Topic]:
        raise NotImplementedError

    def mark_topic_scan(self, topic_id: int, status: str, error: Optional[str] = None) -> None:
        raise NotImplementedError

    # Scan runs
    def start_scan(self) -> Optional[int]:
        raise NotImplementedError

    def finish_scan(
        self,
        scan_id: Optional[int],
        *,
        status: str,
        topics_scanned: int = 0,
        mentions_found: int = 0,
        error: Optional[str] = None,
    ) -> None:
        raise NotImplementedError

    # Mentions
    def known_urls(self, topic_id: int) -> Set[str]:
        raise NotImplementedError

    def insert_mention(self, mention: Mention) -> Optional[int]:
        raise NotImplementedError

    def recent_mentions(self, topic_id: int, since: datetime) -> List[Mention]:
        """Mentions discovered at or after `since`, oldest first."""
        raise NotImplementedError

    def find_event_story(self, topic_id: int, event_id: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        raise NotImplementedError

    def set_story(self, mention_id: int, story_cluster: int, first_seen: bool) -> None:
        raise NotImplementedError

    def set_sentiment(self, mention_id: int, sentiment: Sentiment) -> None:
        raise NotImplementedError

    def set_journalist(self, mention_id: int, journalist_id: int) -> None:
        raise NotImplementedError

    def unscored_mentions(self, *, limit: int = 100, exclude_ids: Iterable[int] = ()) -> List[Tuple[Mention, str]]:
        """(mention, topic name) pairs still marked unscored, newest first, minus `exclude_ids`."""
        raise NotImplementedError

    # Journalists
    def upsert_journalist(
        self,
        byline: Byline,
        *,
        outlet: str,
        beat: Optional[str],
        sentiment: Optional[float],
        seen_at: datetime,
    ) -> Journalist:
        raise NotImplementedError

    def link_coverage(self, journalist_id: int, mention_id: int, topic_id: int) -> None:
        raise NotImplementedError

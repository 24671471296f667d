"""Story clustering: group mentions of one topic that cover the same event.

A story is identified by the id of its earliest mention (`story_cluster`), and
only that mention carries `first_seen_for_story`. Joining a story never touches
the existing members.

Assignment order:
1. provider event id matches an existing clustered mention -> join it
2. event id present, no match, not flagged duplicate -> new story
3. otherwise compare titles against the topic's recent window, oldest first
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Set

from policyfront.ingestion.article_types import ClusterHint, Mention


logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 48
DEFAULT_THRESHOLD = 0.4


def significant_words(title: Optional[str]) -> Set[str]:
    return {w for w in (title or "").lower().split() if len(w) > 3}


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Share of the smaller title's significant words found in the other title."""
    wa = significant_words(a)
    wb = significant_words(b)
    if not wa or not wb:
        return 0.0
    return len(wa & wb) / min(len(wa), len(wb))


@dataclass(frozen=True)
class StoryAssignment:
    story_cluster: int
    first_seen: bool
    method: str  # event | duplicate | title | new


class StoryClusterer:
    def __init__(self, store, *, window_hours: float = DEFAULT_WINDOW_HOURS, threshold: float = DEFAULT_THRESHOLD):
        self.store = store
        self.window = timedelta(hours=window_hours)
        self.threshold = threshold

    def assign(self, mention: Mention, hint: Optional[ClusterHint] = None, *, now: Optional[datetime] = None) -> StoryAssignment:
        if mention.id is None:
            raise ValueError("mention must be persisted before clustering")
        hint = hint or ClusterHint()

        if hint.event_id:
            story = self.store.find_event_story(mention.topic_id, hint.event_id, exclude_id=mention.id)
            if story is not None:
                return StoryAssignment(story, False, "duplicate" if hint.is_duplicate else "event")
            if not hint.is_duplicate:
                return StoryAssignment(mention.id, True, "event")
            logger.info(
                f"Mention {mention.id} flagged duplicate but event {hint.event_id} has no story; matching by title"
            )

        since = (now or mention.discovered_at) - self.window
        for other in self.store.recent_mentions(mention.topic_id, since):
            if other.id is None or other.id == mention.id:
                continue
            if title_similarity(mention.title, other.title) > self.threshold:
                return StoryAssignment(other.story_cluster or other.id, False, "title")

        return StoryAssignment(mention.id, True, "new")

    def cluster(self, mention: Mention, hint: Optional[ClusterHint] = None, *, now: Optional[datetime] = None) -> StoryAssignment:
        """Assign and persist; updates the mention in place."""
        assignment = self.assign(mention, hint, now=now)
        self.store.set_story(mention.id, assignment.story_cluster, assignment.first_seen)
        mention.story_cluster = assignment.story_cluster
        mention.first_seen_for_story = assignment.first_seen
        return assignment

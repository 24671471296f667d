"""Relevance gate for scraped (web search) candidates.

Fails closed on the answer (only an explicit yes passes) but fails open on the
service: if the classifier is down or unconfigured the article is kept.
"""

from __future__ import annotations

import logging
from typing import Optional

from policyfront.ingestion.article_types import Topic
from policyfront.ingestion.ingestors import EXCERPT_CHARS
from policyfront.ingestion.query_builder import region_name
from policyfront.scoring.classifier import TextClassification


logger = logging.getLogger(__name__)

DEFAULT_MIN_CHARS = 200


def topic_description(topic: Topic) -> str:
    parts = [topic.name.strip() or "Untitled topic"]
    if topic.keywords:
        parts.append("keywords: " + ", ".join(k for k in topic.keywords if k.strip()))
    if topic.bill_ids:
        parts.append("bills: " + ", ".join(b for b in topic.bill_ids if b.strip()))
    region = region_name(topic.state)
    if region:
        parts.append(f"jurisdiction: {region}")
    return "; ".join(parts)


class RelevanceGate:
    def __init__(self, classifier: Optional[TextClassification] = None, *, min_chars: int = DEFAULT_MIN_CHARS):
        self.classifier = classifier
        self.min_chars = min_chars

    def should_check(self, text: Optional[str]) -> bool:
        return self.classifier is not None and len((text or "").strip()) >= self.min_chars

    def is_relevant(self, topic: Topic, title: str, text: Optional[str], excerpt: Optional[str] = None) -> bool:
        """Length is judged on the full text; the classifier sees title + excerpt."""
        if not self.should_check(text):
            return True
        snippet = excerpt or (text or "")[:EXCERPT_CHARS]
        try:
            return bool(self.classifier.classify_relevance(topic_description(topic), f"{title}\n\n{snippet}"))
        except Exception as e:
            logger.warning(f"Relevance check unavailable for topic {topic.name!r}, keeping article: {e}")
            return True

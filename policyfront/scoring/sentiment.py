"""Mention sentiment scoring.

Primary path is the text classifier; the keyword lexicon below is the
deterministic fallback used when no classifier is configured or a call fails.
Structured-provider articles come with a numeric score that is mapped with a
dead band instead.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Set, Tuple

from policyfront.ingestion.article_types import Sentiment
from policyfront.scoring.classifier import TextClassification


logger = logging.getLogger(__name__)


# -----------------------------
# Keyword lexicon (fallback)
# -----------------------------
POSITIVE_TERMS = [
    "benefit",
    "benefits",
    "support",
    "supports",
    "growth",
    "opportunity",
    "innovation",
    "savings",
    "success",
    "improve",
    "advances",
    "progress",
    "bipartisan",
    "unanimous",
    "approved",
    "passed",
    "signed into law",
    "clean energy",
    "renewable",
    "affordable",
    "popular",
    "investment",
    "incentive",
    "tax credit",
    "jobs",
    "economic",
    "consumer protection",
]

NEGATIVE_TERMS = [
    "oppose",
    "opposes",
    "opposition",
    "threat",
    "risk",
    "concerns",
    "controversial",
    "criticism",
    "critics",
    "failed",
    "defeated",
    "blocked",
    "lawsuit",
    "penalty",
    "burden",
    "costly",
    "expensive",
    "mandated",
    "tax",
    "fee",
    "surcharge",
    "forced",
    "compulsory",
    "anti-solar",
    "anti-renewable",
    "rollback",
    "repeal",
    "restrict",
    "lobby",
    "lobbyist",
    "special interest",
    "bailout",
    "subsidy",
]


def _compile(terms):
    return [re.compile(r"(?<![\w-])" + re.escape(t) + r"(?![\w-])") for t in terms]


_POSITIVE_RES = _compile(POSITIVE_TERMS)
_NEGATIVE_RES = _compile(NEGATIVE_TERMS)

# |score| at or below this is neutral
DEAD_BAND = 0.15

SENTIMENT_VALUES = {
    Sentiment.POSITIVE: 1.0,
    Sentiment.NEGATIVE: -1.0,
    Sentiment.NEUTRAL: 0.0,
}


def lexicon_counts(text: str) -> Tuple[int, int]:
    lower = (text or "").lower()
    pos = sum(len(p.findall(lower)) for p in _POSITIVE_RES)
    neg = sum(len(p.findall(lower)) for p in _NEGATIVE_RES)
    return pos, neg


def keyword_sentiment(text: str) -> Sentiment:
    pos, neg = lexicon_counts(text)
    if pos > neg + 1:
        return Sentiment.POSITIVE
    if neg > pos + 1:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def score_to_sentiment(score: Optional[float], *, dead_band: float = DEAD_BAND) -> Sentiment:
    if score is None:
        return Sentiment.UNSCORED
    if score > dead_band:
        return Sentiment.POSITIVE
    if score < -dead_band:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def sentiment_value(sentiment: Sentiment, score: Optional[float] = None) -> Optional[float]:
    """Numeric value fed into a journalist's running average."""
    if score is not None:
        return max(-1.0, min(1.0, float(score)))
    return SENTIMENT_VALUES.get(sentiment)


class SentimentClassifier:
    """Best-effort sentiment: classifier first, keyword lexicon on any failure."""

    def __init__(self, classifier: Optional[TextClassification] = None):
        self.classifier = classifier

    def classify(self, topic_name: str, title: str, text: str) -> Tuple[Sentiment, str]:
        """Returns (sentiment, method) where method is 'classifier' or 'keywords'."""
        if self.classifier is not None:
            try:
                result = self.classifier.classify_sentiment(topic_name, title, text)
                if not isinstance(result, Sentiment) or result is Sentiment.UNSCORED:
                    result = Sentiment.NEUTRAL
                return result, "classifier"
            except Exception as e:
                logger.warning(f"Sentiment classifier failed, using keyword fallback: {e}")
        return keyword_sentiment(f"{title or ''} {text or ''}"), "keywords"


BACKFILL_TEXT_CHARS = 600
BACKFILL_MIN_CHARS = 30


def backfill_unscored(
    store,
    scorer: SentimentClassifier,
    *,
    limit: int = 100,
    min_chars: int = BACKFILL_MIN_CHARS,
    seen: Optional[Set[int]] = None,
) -> Dict[str, int]:
    """Score mentions still marked unscored. Returns counts by outcome.

    Pass the same `seen` set across batches: every row read is added to it and
    excluded from later reads, so skipped or failed rows don't come back and
    block older ones.
    """
    stats = {"found": 0, "scored": 0, "skipped": 0, "failed": 0}
    rows = store.unscored_mentions(limit=limit, exclude_ids=seen or ())
    stats["found"] = len(rows)
    if seen is not None:
        seen.update(m.id for m, _ in rows if m.id is not None)
    for mention, topic_name in rows:
        title = mention.title or ""
        body = (mention.excerpt or mention.content or "")[: max(0, BACKFILL_TEXT_CHARS - len(title) - 1)]
        if len(f"{title}\n{body}".strip()) < min_chars:
            stats["skipped"] += 1
            continue
        sentiment, method = scorer.classify(topic_name, title, body)
        try:
            store.set_sentiment(mention.id, sentiment)
        except Exception as e:
            stats["failed"] += 1
            logger.warning(f"Could not store sentiment for mention {mention.id}: {e}")
            continue
        stats["scored"] += 1
        logger.debug(f"mention {mention.id} -> {sentiment.value} ({method})")
    return stats

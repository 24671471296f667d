"""Journalist identity bookkeeping.

A journalist is keyed by (name, outlet). Every attributed mention bumps the
article count, folds its sentiment into the running mean, unions the beat and
backfills contact fields that are still empty. Existing contact values are
never overwritten.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from policyfront.extraction.byline import Byline
from policyfront.ingestion.article_types import Journalist


CONTACT_FIELDS = ("email", "phone", "twitter", "linkedin", "website")

# First match wins; order matters ("energy tax" is Energy, not Finance).
BEAT_RULES = [
    ("Energy", r"solar|energy|nv energy|demand charge|utility|utilities|grid|power|electric|renewable|wind|nuclear|oil|gas|fossil"),
    ("Healthcare", r"health|medical|pharma|hospital|insurance|medicare|medicaid"),
    ("Education", r"school|education|charter|university|college|student"),
    ("Environment", r"environment|climate|emission|emissions|pollution|conservation|epa"),
    ("Housing", r"housing|real estate|rent|mortgage|zoning|permit|construction"),
    ("Finance", r"finance|banking|tax|budget|economic|gold|silver|crypto"),
    ("Technology", r"tech|technology|ai|software|data|cyber|internet|telecom"),
    ("Transportation", r"transport|transportation|highway|rail|transit|aviation|ev|vehicle"),
    ("State Government", r"legislature|governor|county|city|state|bill|law|regulation|checkoff|site plan"),
    ("Federal Government", r"federal|congress|senate|house|white house|executive order"),
]
_BEAT_RES = [(beat, re.compile(r"\b(?:" + pattern + r")\b")) for beat, pattern in BEAT_RULES]
DEFAULT_BEAT = "Policy"


def infer_beat(topic_or_keyword: Optional[str]) -> Optional[str]:
    """Broad beat category for a topic name (never the topic name itself)."""
    lower = (topic_or_keyword or "").lower().strip()
    if not lower:
        return None
    for beat, pattern in _BEAT_RES:
        if pattern.search(lower):
            return beat
    return DEFAULT_BEAT


def running_average(old_avg: Optional[float], old_count: int, value: float) -> float:
    """Incremental mean: (old_avg * old_count + value) / (old_count + 1)."""
    if old_avg is None:
        return float(value)
    count = max(0, int(old_count or 0))
    return (old_avg * count + value) / (count + 1)


def _merge_beats(beats: List[str], beat: Optional[str]) -> List[str]:
    out = list(beats or [])
    if beat and beat not in out:
        out.append(beat)
    return out


def merge_journalist(
    existing: Optional[Journalist],
    byline: Byline,
    *,
    outlet: str,
    beat: Optional[str],
    sentiment: Optional[float],
    seen_at: datetime,
) -> Journalist:
    if existing is None:
        return Journalist(
            name=byline.name,
            outlet=outlet or "",
            email=byline.email,
            phone=byline.phone,
            twitter=byline.twitter,
            linkedin=byline.linkedin,
            article_count=1,
            avg_sentiment=sentiment,
            beats=[beat] if beat else [],
            last_article_at=seen_at,
        )

    updated = replace(existing, beats=_merge_beats(existing.beats, beat))
    for name in CONTACT_FIELDS:
        incoming = getattr(byline, name, None)
        if incoming and not getattr(existing, name):
            setattr(updated, name, incoming)
    if sentiment is not None:
        updated.avg_sentiment = running_average(existing.avg_sentiment, existing.article_count, sentiment)
    updated.article_count = (existing.article_count or 0) + 1
    if existing.last_article_at is None or seen_at > existing.last_article_at:
        updated.last_article_at = seen_at
    return updated

"""Outlet classification: which domains count as news sources.

Deny-list only. Unknown domains are permitted; the relevance gate handles
precision later. Everything here must stay total (no exceptions) since it runs
once per candidate.
"""

from __future__ import annotations

import re
from typing import Any


# Matched against the domain itself or any parent domain ("x.com" blocks
# "mobile.x.com" but not "fox.com").
BLOCKED_DOMAINS = {
    # Bill tracking / legislative tools
    "legiscan.com",
    "billtrack50.com",
    "fastdemocracy.com",
    "pluralpolicy.com",
    "openstates.org",
    "trackbill.com",
    "govtrack.us",
    "quorum.us",
    "fiscalnote.com",
    # Social media
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "tiktok.com",
    "linkedin.com",
    "reddit.com",
    "youtube.com",
    "spotify.com",
    "threads.net",
    "bsky.app",
    "pinterest.com",
    "nextdoor.com",
    # Law firms / bar associations / legal publishing
    "jdsupra.com",
    "lexology.com",
    "natlawreview.com",
    "justia.com",
    "findlaw.com",
    "martindale.com",
    "americanbar.org",
    # Meeting minutes / document and file hosts
    "eminutes.com",
    "granicus.com",
    "legistar.com",
    "scribd.com",
    "issuu.com",
    "dropbox.com",
    "box.com",
    # Raw CDN / storage hosts
    "blob.core.windows.net",
    "s3.amazonaws.com",
    "cloudfront.net",
    "storage.googleapis.com",
    "akamaized.net",
    # Generic non-news
    "wikipedia.org",
    "amazon.com",
    "google.com",
    "quora.com",
    "ballotpedia.org",
    "change.org",
}

BLOCKED_PATTERNS = [
    # Government & legislature
    re.compile(r"(^|\.)gov(\.[a-z]{2})?$"),
    re.compile(r"(^|\.)mil$"),
    re.compile(r"(^|\.)(legislature|legis|leginfo|mgaleg)\."),
    re.compile(r"(^|\.)leg\.state\."),
    re.compile(r"\.[a-z]{2}\.us$"),
    re.compile(r"(^|\.)citizenportal\."),
    # Academic
    re.compile(r"(^|\.)edu(\.[a-z]{2})?$"),
    re.compile(r"(^|\.)ac\.[a-z]{2}$"),
    # Law firms and bar associations
    re.compile(r"(^|\.)[a-z0-9-]*(lawfirm|lawgroup|lawyers?|attorneys?|llp)\.[a-z]+$"),
    re.compile(r"(^|\.)[a-z0-9-]*bar(assoc|association)?\.org$"),
    re.compile(r"\.law$"),
    # S3-style bucket hosts
    re.compile(r"(^|\.)s3[.-][a-z0-9-]+\.amazonaws\.com$"),
]

MAJOR_NEWS_PATTERN = re.compile(
    r"politico|reuters|bloomberg|nytimes|washingtonpost|wsj|apnews|cnn|fox|abcnews|nbc|cbs|npr|pbs|axios"
)
TRADE_PATTERN = re.compile(
    r"utilitydive|energynews|seia\.org|solarpowerworldonline|pv-magazine|greentechmedia|canarymedia|eenews|rtoinsider"
)
ADVOCACY_PATTERN = re.compile(r"edf\.org|sierraclub|nrdc|advancedenergy|\.org$")


def _normalize(domain: Any) -> str:
    if not isinstance(domain, str):
        return ""
    d = domain.strip().lower().strip(".")
    if d.startswith("www."):
        d = d[4:]
    return d


def _blocked_suffix(domain: str) -> bool:
    parts = domain.split(".")
    for i in range(len(parts) - 1):
        if ".".join(parts[i:]) in BLOCKED_DOMAINS:
            return True
    return False


def is_news_outlet(domain: Any) -> bool:
    d = _normalize(domain)
    if not d or "." not in d:
        return False
    if _blocked_suffix(d):
        return False
    return not any(p.search(d) for p in BLOCKED_PATTERNS)


def outlet_type(domain: Any) -> str:
    """Display category for an outlet: news | trade | advocacy | other."""
    d = _normalize(domain)
    if not d:
        return "other"
    if MAJOR_NEWS_PATTERN.search(d):
        return "news"
    if TRADE_PATTERN.search(d):
        return "trade"
    if ADVOCACY_PATTERN.search(d):
        return "advocacy"
    return "news"

"""Search query construction for discovery providers.

Web queries favor recall: keywords and every surface form of each bill number
are OR'ed together. The state name only appears inside an extra OR'ed group,
so it can lift regional coverage in ranking but never filters anything out.
The relevance gate is what enforces precision afterwards.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence

from policyfront.ingestion.article_types import Topic


STATE_NAMES = {
    "AL": "Alabama",
    "AK": "Alaska",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "DC": "District of Columbia",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "PR": "Puerto Rico",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
    "US": "Congress",
}

# Keep each OR-chain short enough for web search providers.
MAX_TERMS_PER_QUERY = 8

_BILL_ID_RE = re.compile(r"^([A-Za-z]{1,6})[\s.\-_]*(\d{1,6})([A-Za-z]?)$")


def region_name(state: Optional[str]) -> Optional[str]:
    code = (state or "").strip().upper()
    if not code:
        return None
    if code in STATE_NAMES:
        return STATE_NAMES[code]
    # Already a full name ("California")
    for name in STATE_NAMES.values():
        if name.upper() == code:
            return name
    return None


def quote_term(term: str) -> str:
    t = " ".join((term or "").replace('"', " ").split())
    if not t:
        return ""
    return f'"{t}"' if (" " in t or "-" in t) else t


def expand_bill_id(bill_id: str) -> List[str]:
    """Surface forms a bill number can take in prose.

    "AB-123" -> ["AB-123", "AB 123", "AB123"]. Identifiers that don't look like
    PREFIX + NUMBER come back unchanged.
    """
    raw = " ".join((bill_id or "").split())
    if not raw:
        return []
    m = _BILL_ID_RE.match(raw)
    if not m:
        return [raw]
    prefix = m.group(1).upper()
    number = m.group(2) + m.group(3).upper()
    return _unique([f"{prefix}-{number}", f"{prefix} {number}", f"{prefix}{number}"])


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for it in items:
        key = it.lower()
        if not it or key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


def web_search_terms(topic: Topic) -> List[str]:
    terms = [quote_term(k) for k in topic.keywords]
    for bill in topic.bill_ids:
        terms.extend(quote_term(form) for form in expand_bill_id(bill))
    return _unique(t for t in terms if t)


def build_web_queries(topic: Topic, *, max_terms: int = MAX_TERMS_PER_QUERY) -> List[str]:
    """Queries for the web search adapter; empty when the topic has nothing to search."""
    terms = web_search_terms(topic)
    if not terms:
        return []
    region = region_name(topic.state)
    step = max(1, int(max_terms))
    return [_with_region(terms[i : i + step], region) for i in range(0, len(terms), step)]


def _with_region(terms: Sequence[str], region: Optional[str]) -> str:
    """OR the terms; the region only ever adds an alternative, never a required word.

    ["a", "b"] + California -> 'a OR b OR ((a OR b) California)'
    """
    base = " OR ".join(terms)
    if not region:
        return base
    group = f"({base})" if len(terms) > 1 else base
    return f"{base} OR ({group} {quote_term(region)})"


def build_structured_keywords(topic: Topic) -> List[str]:
    """Keyword list for the structured provider (sent with keywordOper=or).

    No bill-number expansion: the provider does its own stemming/matching.
    """
    return _unique(" ".join(k.split()) for k in list(topic.keywords) + list(topic.bill_ids) if k and k.strip())


def structured_query_text(keywords: Sequence[str]) -> str:
    return " OR ".join(keywords)

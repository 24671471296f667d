"""URL helpers for mention dedup and outlet lookup."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


TRACKING_QUERY_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_name",
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "cmpid",
    "smid",
    "taid",
}


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a URL so the same article found twice maps to one dedup key.

    - Lowercase scheme + hostname
    - Remove fragments
    - Strip tracking query parameters
    - Sort remaining query params
    - Drop a trailing slash on non-root paths
    """
    if not url:
        return ""
    strip = set(strip_params) if strip_params is not None else TRACKING_QUERY_PARAMS
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    kept = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k.lower() not in strip]
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def outlet_domain(url: str) -> str:
    """Bare outlet domain for a URL: lowercased, port and leading 'www.' removed.

    Returns '' for anything unparseable.
    """
    try:
        host = (urlparse((url or "").strip()).hostname or "").lower().strip(".")
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host

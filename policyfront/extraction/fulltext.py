"""Direct fulltext fetch + extraction (no hosted scrape API).

Used when Firecrawl is not configured, or as a second attempt when a Firecrawl
scrape fails. Returns the raw HTML as well as extracted text because byline
extraction works on markup.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
import trafilatura

from policyfront.ingestion.article_types import ScrapeResult
from policyfront.ingestion.throttle import ScrapeThrottle


logger = logging.getLogger(__name__)

USER_AGENT = "PolicyFront/1.0 (+mention monitor)"

_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return an error string if the URL should not be fetched (SSRF guard)."""
    try:
        p = urlparse(url)
        host = (p.hostname or "").strip().lower()
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def _metadata_from_html(html: str, url: str) -> Dict[str, Any]:
    meta: Dict[str, Any] = {}
    try:
        doc = trafilatura.extract_metadata(html, default_url=url)
    except Exception as e:
        logger.debug(f"metadata extraction failed for {url}: {e}")
        return meta
    if doc is None:
        return meta
    for key in ("title", "author", "date", "description", "sitename"):
        value = getattr(doc, key, None)
        if value:
            meta[key] = value
    if "date" in meta:
        meta["publishedTime"] = meta.pop("date")
    return meta


@dataclass
class DirectScraper:
    timeout: int = 25
    max_bytes: int = 2_000_000
    throttle: ScrapeThrottle = field(default_factory=lambda: ScrapeThrottle(1.0))

    name: str = "direct"

    def scrape(self, url: str) -> ScrapeResult:
        if not url:
            return ScrapeResult(html=None, markdown=None, status="error", error="empty_url")
        err = validate_fetch_url(url)
        if err:
            return ScrapeResult(html=None, markdown=None, status="blocked", error=err)
        self.throttle.wait()
        try:
            resp = requests.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=(5, self.timeout),
                allow_redirects=True,
                stream=True,
            )
            if resp.status_code >= 400:
                return ScrapeResult(
                    html=None, markdown=None, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}"
                )
            content = b""
            for chunk in resp.iter_content(chunk_size=64 * 1024):
                if not chunk:
                    continue
                content += chunk
                if len(content) > self.max_bytes:
                    return ScrapeResult(html=None, markdown=None, status="too_large", error="too_large")
        except requests.RequestException as e:
            return ScrapeResult(html=None, markdown=None, status="error", error=str(e))

        try:
            html = content.decode(resp.encoding or "utf-8", errors="replace")
        except LookupError:
            html = content.decode("utf-8", errors="replace")
        if not html.strip():
            return ScrapeResult(html=None, markdown=None, status="empty", error="empty_html")
        text = trafilatura.extract(html, include_comments=False, include_tables=False)
        if not text:
            return ScrapeResult(html=html, markdown=None, status="no_extract", error="no_extract")
        return ScrapeResult(html=html, markdown=text.strip(), metadata=_metadata_from_html(html, url))
